"""Typed git queries for git-worktree-keeper."""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from git_worktree_keeper.constants import SHORT_SHA_LENGTH
from git_worktree_keeper.exceptions import GitOperationError
from git_worktree_keeper.models.worktree import CommitInfo
from git_worktree_keeper.services.git.gateway import GitProcessGateway
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


class RepositoryQueries:
    """Parsed answers to the git questions the engine asks.

    Methods take the directory to run in, so the same instance serves the
    primary checkout and every linked worktree.
    """

    def __init__(self, gateway: Optional[GitProcessGateway] = None):
        self.gateway = gateway or GitProcessGateway()

    # Refs and branches

    def branch_exists(self, cwd: PathLike, branch: str) -> bool:
        return self.gateway.succeeds(cwd, "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")

    def ref_resolves(self, cwd: PathLike, ref: str) -> bool:
        return self.gateway.succeeds(cwd, "rev-parse", "--verify", "--quiet", ref)

    def current_branch(self, cwd: PathLike) -> str:
        """Checked-out branch name, ``HEAD`` when detached."""
        return self.gateway.run(cwd, "rev-parse", "--abbrev-ref", "HEAD").strip()

    def head_sha(self, cwd: PathLike) -> str:
        return self.gateway.run(cwd, "rev-parse", "HEAD").strip()

    def toplevel(self, cwd: PathLike) -> Optional[Path]:
        """Root of the worktree containing ``cwd``, or None if not in one."""
        try:
            return Path(self.gateway.run(cwd, "rev-parse", "--show-toplevel").strip())
        except GitOperationError as e:
            logger.debug(f"{cwd} is not inside a worktree: {e}")
            return None

    def repository_root(self, cwd: PathLike) -> Optional[Path]:
        """Top level of the primary checkout, even when ``cwd`` is a linked worktree."""
        try:
            common_dir = self.gateway.run(cwd, "rev-parse", "--git-common-dir").strip()
        except GitOperationError as e:
            logger.debug(f"{cwd} is not inside a repository: {e}")
            return None
        common = Path(common_dir)
        if not common.is_absolute():
            common = Path(cwd) / common
        common = common.resolve()
        if common.name == ".git":
            return common.parent
        return self.toplevel(cwd)

    def merge_base(self, cwd: PathLike, first: str, second: str) -> Optional[str]:
        try:
            return self.gateway.run(cwd, "merge-base", first, second).strip() or None
        except GitOperationError as e:
            logger.debug(f"No merge base for {first} and {second}: {e}")
            return None

    def merged_branches(self, cwd: PathLike, target: str) -> List[str]:
        """Local branches whose tips are reachable from ``target``."""
        output = self.gateway.run(cwd, "branch", "--merged", target)
        branches = []
        for line in output.splitlines():
            name = line.strip().lstrip("*+").strip()
            if name:
                branches.append(name)
        return branches

    # Diffs and history

    def diff_is_empty(self, cwd: PathLike, base: str, branch: str) -> bool:
        return self.gateway.succeeds(cwd, "diff", "--quiet", "--exit-code", f"{base}..{branch}")

    def changed_files(self, cwd: PathLike, base: str, branch: str) -> List[str]:
        output = self.gateway.run(cwd, "diff", "--name-only", f"{base}..{branch}")
        return [line for line in output.splitlines() if line.strip()]

    def log_mentions(self, cwd: PathLike, revision_range: str, text: str) -> List[str]:
        """One-line log entries in ``revision_range`` whose message contains ``text``."""
        output = self.gateway.run(
            cwd, "log", "--oneline", "--fixed-strings", f"--grep={text}", revision_range
        )
        return [line for line in output.splitlines() if line.strip()]

    def log_mentions_pr(self, cwd: PathLike, revision_range: str, number: int) -> List[str]:
        """Log entries mentioning ``#<number>`` as a whole PR reference."""
        output = self.gateway.run(
            cwd, "log", "--oneline", "--extended-regexp", f"--grep=#{number}([^0-9]|$)", revision_range
        )
        return [line for line in output.splitlines() if line.strip()]

    def commit_timestamps(self, cwd: PathLike, revision_range: str) -> List[int]:
        output = self.gateway.run(cwd, "log", "--format=%ct", revision_range)
        return [int(line) for line in output.split() if line.isdigit()]

    def commits_in_window(self, cwd: PathLike, revision_range: str, since: int, until: int) -> List[str]:
        """Commit ids in ``revision_range`` committed between two unix times."""
        output = self.gateway.run(
            cwd, "log", "--format=%H", f"--since=@{since}", f"--until=@{until}", revision_range
        )
        return output.split()

    def file_at_ref(self, cwd: PathLike, ref: str, path: str) -> Optional[bytes]:
        """Raw content of ``path`` at ``ref``; None when it does not exist there."""
        try:
            return self.gateway.run_binary(cwd, "show", f"{ref}:{path}")
        except GitOperationError:
            return None

    def commit_count(self, cwd: PathLike, revision_range: str) -> int:
        return int(self.gateway.run(cwd, "rev-list", "--count", revision_range).strip() or 0)

    def first_commit(self, cwd: PathLike, revision_range: str) -> Optional[str]:
        output = self.gateway.run(cwd, "rev-list", "--reverse", revision_range)
        commits = output.split()
        return commits[0] if commits else None

    def has_commits_since(self, cwd: PathLike, days: int) -> bool:
        output = self.gateway.run(cwd, "log", "-1", "--format=%H", f"--since={days}.days.ago")
        return bool(output.strip())

    # Working tree state

    def porcelain_status(self, cwd: PathLike) -> List[Tuple[str, str]]:
        """(two-letter status code, path) pairs from ``git status``.

        For renames and copies the path is the new name.
        """
        output = self.gateway.run(cwd, "status", "--porcelain=v1", "-z")
        entries = []
        tokens = output.split("\0")
        i = 0
        while i < len(tokens):
            token = tokens[i]
            i += 1
            if len(token) < 4:
                continue
            code, path = token[:2], token[3:]
            entries.append((code, path))
            if "R" in code or "C" in code:
                # -z puts the original path in its own field
                i += 1
        return entries

    def conflicted_files(self, cwd: PathLike) -> List[str]:
        output = self.gateway.run(cwd, "diff", "--name-only", "--diff-filter=U")
        return [line for line in output.splitlines() if line.strip()]

    def diff(self, cwd: PathLike, stat_only: bool = False) -> str:
        args = ["diff", "HEAD"]
        if stat_only:
            args.append("--stat")
        return self.gateway.run(cwd, *args)

    # Upstream tracking

    def upstream(self, cwd: PathLike) -> Optional[str]:
        """Short name of the upstream branch, None when it does not resolve."""
        try:
            return self.gateway.run(cwd, "rev-parse", "--abbrev-ref", "@{u}").strip() or None
        except GitOperationError:
            return None

    def configured_upstream(self, cwd: PathLike, branch: str) -> Optional[str]:
        """Upstream recorded in config, even if that remote branch is gone."""
        try:
            output = self.gateway.run(
                cwd, "for-each-ref", "--format=%(upstream:short)", f"refs/heads/{branch}"
            )
        except GitOperationError:
            return None
        return output.strip() or None

    def ahead_behind(self, cwd: PathLike) -> Optional[Tuple[int, int]]:
        """(ahead, behind) of HEAD relative to its upstream."""
        try:
            output = self.gateway.run(cwd, "rev-list", "--count", "--left-right", "@{u}...HEAD")
        except GitOperationError as e:
            logger.debug(f"Cannot count commits against upstream in {cwd}: {e}")
            return None
        parts = output.split()
        if len(parts) != 2:
            return None
        behind, ahead = int(parts[0]), int(parts[1])
        return ahead, behind

    def unpushed_commits(self, cwd: PathLike, limit: Optional[int] = None) -> List[CommitInfo]:
        args = ["log", "--format=%H|%s|%an|%ct"]
        if limit:
            args.append(f"-{limit}")
        args.append("@{u}..HEAD")
        output = self.gateway.run(cwd, *args)

        commits = []
        for line in output.splitlines():
            parts = line.split("|")
            if len(parts) < 4:
                continue
            sha, author, stamp = parts[0], parts[-2], parts[-1]
            message = "|".join(parts[1:-2])
            try:
                when = datetime.fromtimestamp(int(stamp), tz=timezone.utc)
            except ValueError:
                when = datetime.now(timezone.utc)
            commits.append(CommitInfo(
                id=sha,
                short_id=sha[:SHORT_SHA_LENGTH],
                message=message,
                author=author,
                timestamp=when,
            ))
        return commits

    # Worktree metadata

    def worktree_list(self, cwd: PathLike) -> str:
        return self.gateway.run(cwd, "worktree", "list", "--porcelain")

    def remote_url(self, cwd: PathLike, remote: str = "origin") -> Optional[str]:
        try:
            return self.gateway.run(cwd, "remote", "get-url", remote).strip() or None
        except GitOperationError:
            return None
