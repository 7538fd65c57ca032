"""Worktree operations for git-worktree-keeper.

This module is the only place that creates or removes worktrees and their
branches. Callers go through WorktreeOperations, which serializes mutations
per repository.
"""

import re
import time
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

from git_worktree_keeper.config import WorktreeConfig, WorktreeMode
from git_worktree_keeper.constants import (
    BARE_BRANCH,
    DANGEROUS_BRANCH_CHARS,
    DETACHED_BRANCH,
    GITIGNORE_HEADER,
    MAX_BRANCH_NAME_LENGTH,
    PATH_TIMESTAMP_SEPARATOR,
)
from git_worktree_keeper.exceptions import (
    BranchExistsError,
    InvalidBranchNameError,
    InvalidTaskIdError,
    NotAWorktreeError,
    WorktreeNotFoundError,
)
from git_worktree_keeper.models.worktree import WorktreeRecord
from git_worktree_keeper.services.git.gateway import GitProcessGateway
from git_worktree_keeper.services.git.queries import RepositoryQueries
from git_worktree_keeper.utils.locks import ReadWriteLock, get_repository_lock
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_TASK_CHARS = re.compile(r"[^a-zA-Z0-9\-_/]")
_DASH_RUNS = re.compile(r"-+")


def sanitize_task_id(task_id: str) -> str:
    """Turn a free-form task id into a branch-safe name.

    ``"Fix: issue #456"`` becomes ``"Fix-issue-456"``.

    Raises:
        InvalidTaskIdError: If nothing usable remains
    """
    cleaned = _UNSAFE_TASK_CHARS.sub("-", task_id)
    cleaned = _DASH_RUNS.sub("-", cleaned)
    cleaned = cleaned.strip("-/")
    if not cleaned:
        raise InvalidTaskIdError(task_id)
    return cleaned


def validate_branch_name(name: str) -> None:
    """Reject branch names that are unsafe or that git would refuse.

    Raises:
        InvalidBranchNameError: With the first rule the name breaks
    """
    if not name:
        raise InvalidBranchNameError(name, "name is empty")
    bad = sorted({c for c in name if c in DANGEROUS_BRANCH_CHARS})
    if bad:
        raise InvalidBranchNameError(name, f"contains forbidden characters {bad!r}")
    if name.startswith((".", "/")) or name.endswith((".", "/")):
        raise InvalidBranchNameError(name, "cannot start or end with '.' or '/'")
    if ".." in name:
        raise InvalidBranchNameError(name, "cannot contain '..'")
    if "@{" in name:
        raise InvalidBranchNameError(name, "cannot contain '@{'")
    if len(name) > MAX_BRANCH_NAME_LENGTH:
        raise InvalidBranchNameError(name, f"longer than {MAX_BRANCH_NAME_LENGTH} characters")


def directory_age(path: Path) -> timedelta:
    """Time since ``path`` was created; zero if it is gone."""
    try:
        st = path.stat()
    except OSError:
        return timedelta(0)
    created = getattr(st, "st_birthtime", None) or st.st_ctime
    return timedelta(seconds=max(0.0, time.time() - created))


def parse_worktree_porcelain(output: str) -> List[Dict[str, str]]:
    """Split ``git worktree list --porcelain`` output into raw entries."""
    entries: List[Dict[str, str]] = []
    current: Dict[str, str] = {}
    for line in output.splitlines():
        line = line.strip()
        if not line:
            if current:
                entries.append(current)
                current = {}
            continue
        if line.startswith("worktree "):
            if current:
                entries.append(current)
            current = {"path": line[len("worktree "):]}
        elif line.startswith("HEAD "):
            current["head"] = line[len("HEAD "):]
        elif line.startswith("branch "):
            ref = line[len("branch "):]
            current["branch"] = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        elif line == "detached":
            current["branch"] = DETACHED_BRANCH
        elif line == "bare":
            current["branch"] = BARE_BRANCH
    if current:
        entries.append(current)
    return entries


class WorktreeOperations:
    """Creates, removes and lists the worktrees of one repository."""

    def __init__(
        self,
        repo_root: Union[str, Path],
        config: WorktreeConfig,
        queries: Optional[RepositoryQueries] = None,
        lock: Optional[ReadWriteLock] = None,
    ):
        """Initialize the operations service.

        Args:
            repo_root: Top level of the primary checkout
            config: Effective worktree configuration for this repository
            queries: Query service (a default one is created if omitted)
            lock: Repository lock (the shared registry lock if omitted)
        """
        self.repo_root = Path(repo_root)
        self.config = config
        self.queries = queries or RepositoryQueries()
        self.gateway: GitProcessGateway = self.queries.gateway
        self.lock = lock or get_repository_lock(self.repo_root)

    @property
    def base_dir(self) -> Path:
        return self.config.resolve_base_dir(self.repo_root)

    def branch_name_for(self, task_id: str) -> str:
        branch = f"{self.config.prefix}{sanitize_task_id(task_id)}"
        validate_branch_name(branch)
        return branch

    def worktree_path_for(self, sanitized_id: str, timestamp: Optional[int] = None) -> Path:
        """Base dir plus the id's path segments, the last one timestamped."""
        stamp = format(int(timestamp if timestamp is not None else time.time()), "x")
        segments = sanitized_id.split("/")
        segments[-1] = f"{segments[-1]}{PATH_TIMESTAMP_SEPARATOR}{stamp}"
        return self.base_dir.joinpath(*segments)

    def create(
        self,
        task_id: str,
        base_branch: Optional[str] = None,
        force: bool = False,
        custom_path: Optional[Union[str, Path]] = None,
    ) -> WorktreeRecord:
        """Create a branch and worktree for ``task_id``.

        Args:
            task_id: Free-form task identifier, sanitized into the branch name
            base_branch: Starting point of the new branch (HEAD if omitted)
            force: Replace an existing branch of the same name, and any
                worktree that has it checked out
            custom_path: Place the worktree here instead of under base_dir

        Returns:
            The new worktree's record

        Raises:
            InvalidTaskIdError, InvalidBranchNameError: Before any git call
            BranchExistsError: If the branch exists and force is False
            GitOperationError: If git refuses any step
        """
        sanitized = sanitize_task_id(task_id)
        branch = f"{self.config.prefix}{sanitized}"
        validate_branch_name(branch)
        path = Path(custom_path) if custom_path else self.worktree_path_for(sanitized)

        with self.lock.write():
            if self.queries.branch_exists(self.repo_root, branch):
                if not force:
                    raise BranchExistsError(branch)
                self._drop_branch(branch)

            if custom_path is None:
                self._ensure_base_dir()
            path.parent.mkdir(parents=True, exist_ok=True)

            self.gateway.run(
                self.repo_root, "worktree", "add", "-b", branch, str(path), base_branch or "HEAD"
            )
            head = self.queries.head_sha(path)

        logger.info(f"Created worktree {path} on branch {branch}")
        return WorktreeRecord(path=path, branch=branch, head=head, age=timedelta(0))

    def remove(self, target: Union[str, Path], force: bool = False, delete_branch: bool = False) -> Path:
        """Remove a worktree given its path or its branch name.

        Returns:
            Path of the removed worktree

        Raises:
            WorktreeNotFoundError: If ``target`` is neither a path nor a worktree branch
            NotAWorktreeError: If git does not recognize the resolved path
            GitOperationError: If git refuses the removal
        """
        with self.lock.write():
            path = self._resolve_path(str(target))
            if self.queries.toplevel(path) is None:
                raise NotAWorktreeError(str(path))

            branch = self.queries.current_branch(path) if delete_branch else None

            args = ["worktree", "remove"]
            if force:
                args.append("--force")
            args.append(str(path))
            self.gateway.run(self.repo_root, *args)
            logger.info(f"Removed worktree at {path}")

            if branch and branch != "HEAD":
                self.gateway.run(self.repo_root, "branch", "-D", branch)
                logger.info(f"Deleted branch {branch}")
        return path

    def list(self) -> List[WorktreeRecord]:
        """Every worktree of the repository, the primary checkout first."""
        with self.lock.read():
            return self._list()

    def resolve_target(self, target: str) -> WorktreeRecord:
        """Find a worktree by path, branch name or task id.

        Raises:
            WorktreeNotFoundError: If nothing matches
        """
        with self.lock.read():
            records = self._list()

        candidate = Path(target).expanduser()
        if candidate.exists():
            resolved = candidate.resolve()
            for record in records:
                if record.path.resolve() == resolved:
                    return record

        for record in records:
            if record.branch == target:
                return record

        try:
            branch = self.branch_name_for(target)
        except (InvalidTaskIdError, InvalidBranchNameError):
            branch = None
        if branch:
            for record in records:
                if record.branch == branch:
                    return record

        raise WorktreeNotFoundError(target)

    def prune(self) -> None:
        """Drop metadata of worktrees whose directories are gone."""
        with self.lock.write():
            self.gateway.run(self.repo_root, "worktree", "prune")
        logger.info("Pruned stale worktree metadata")

    def _list(self) -> List[WorktreeRecord]:
        records = []
        for entry in parse_worktree_porcelain(self.queries.worktree_list(self.repo_root)):
            path = Path(entry["path"])
            records.append(WorktreeRecord(
                path=path,
                branch=entry.get("branch", DETACHED_BRANCH),
                head=entry.get("head", ""),
                age=directory_age(path),
            ))
        logger.debug(f"Found {len(records)} worktrees")
        return records

    def _resolve_path(self, target: str) -> Path:
        candidate = Path(target).expanduser()
        if candidate.exists():
            return candidate
        for record in self._list():
            if record.branch == target:
                return record.path
        raise WorktreeNotFoundError(target)

    def _drop_branch(self, branch: str) -> None:
        """Force-remove every worktree on ``branch``, then the branch itself."""
        for record in self._list():
            if record.branch == branch:
                logger.info(f"Force-removing worktree {record.path} holding {branch}")
                self.gateway.run(self.repo_root, "worktree", "remove", "--force", str(record.path))
        self.gateway.run(self.repo_root, "branch", "-D", branch)

    def _ensure_base_dir(self) -> None:
        base = self.base_dir
        base.mkdir(parents=True, exist_ok=True)
        if (
            self.config.auto_gitignore
            and self.config.mode is WorktreeMode.LOCAL
            and not Path(self.config.base_dir).expanduser().is_absolute()
        ):
            self._ensure_gitignored(self.config.base_dir)

    def _ensure_gitignored(self, base_dir: str) -> None:
        entry = base_dir.strip().rstrip("/")
        gitignore = self.repo_root / ".gitignore"
        existing = gitignore.read_text() if gitignore.exists() else ""

        accepted = {entry, f"{entry}/", f"/{entry}", f"/{entry}/"}
        if any(line.strip() in accepted for line in existing.splitlines()):
            return

        with open(gitignore, "a") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(f"{GITIGNORE_HEADER}\n{entry}/\n")
        logger.info(f"Added {entry}/ to {gitignore}")
