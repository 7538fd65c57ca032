"""Worktree status inspection for git-worktree-keeper."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence, Union

from git_worktree_keeper.exceptions import GitHubAPIError, GitOperationError
from git_worktree_keeper.models.worktree import (
    BranchInfo,
    MergeInfo,
    RemoteState,
    RemoteStatus,
    StatusSeverity,
    WorktreeRecord,
    WorktreeStatus,
)
from git_worktree_keeper.services.cache_service import StatusCache
from git_worktree_keeper.services.git.merge_detector import MergeDetector
from git_worktree_keeper.services.git.operations import directory_age
from git_worktree_keeper.services.git.queries import RepositoryQueries
from git_worktree_keeper.utils.locks import ReadWriteLock
from git_worktree_keeper.utils.logging import get_logger
from git_worktree_keeper.utils.threading import get_optimal_worker_count

logger = get_logger(__name__)

_CHANGE_KINDS = {
    "M": "modified",
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "T": "type changed",
}
_UNMERGED_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


def describe_change(code: str) -> str:
    """Human-readable category for a two-letter porcelain status code.

    The first letter is the index (staged) state, the second the worktree state.
    """
    if code in _UNMERGED_CODES or "U" in code:
        return "unmerged"
    staged = _CHANGE_KINDS.get(code[0])
    unstaged = _CHANGE_KINDS.get(code[1])
    if staged and unstaged:
        if staged == unstaged:
            return f"{staged} (staged and unstaged)"
        return f"{staged} (staged), {unstaged} (unstaged)"
    if staged:
        return f"{staged} (staged)"
    if unstaged:
        return f"{unstaged} (unstaged)"
    return "changed"


def determine_severity(
    is_clean: bool,
    has_changes: bool,
    remote_status: RemoteStatus,
    ahead: int,
    behind: int,
    merge_info: Optional[MergeInfo] = None,
) -> StatusSeverity:
    """Rank how risky it is to leave or retire a worktree. First match wins."""
    if merge_info is not None and merge_info.is_merged and merge_info.confidence > 0.8:
        return StatusSeverity.CLEAN if is_clean else StatusSeverity.LIGHT_WARNING

    if is_clean and ahead == 0 and behind == 0:
        return StatusSeverity.CLEAN

    state = remote_status.state
    if state is RemoteState.REMOTE_DELETED or behind > 10:
        return StatusSeverity.WARNING
    if state is RemoteState.DIVERGED and (behind > 5 or ahead > 20):
        return StatusSeverity.WARNING

    if has_changes or ahead > 0 or behind > 0 or state is RemoteState.NO_REMOTE:
        return StatusSeverity.LIGHT_WARNING
    return StatusSeverity.CLEAN


class StatusInspector:
    """Builds read-only WorktreeStatus snapshots."""

    def __init__(
        self,
        queries: Optional[RepositoryQueries] = None,
        merge_detector: Optional[MergeDetector] = None,
        cache: Optional[StatusCache] = None,
        lock: Optional[ReadWriteLock] = None,
        main_branches: Sequence[str] = ("main", "master"),
        workers: Optional[int] = None,
    ):
        """Initialize the status inspector.

        Args:
            queries: Query service (a default one is created if omitted)
            merge_detector: Consulted for the branch's merge state when given
            cache: Status cache consulted before running git
            lock: Repository lock, taken shared while inspecting
            main_branches: Branches never checked for merge state
            workers: Thread count for batch inspection (auto when None)
        """
        self.queries = queries or RepositoryQueries()
        self.merge_detector = merge_detector
        self.cache = cache
        self.lock = lock
        self.main_branches = list(main_branches)
        self.workers = workers

    def inspect(self, path: Union[str, Path], use_cache: bool = True) -> WorktreeStatus:
        """Snapshot one worktree.

        Raises:
            GitOperationError: If git cannot report on the path
        """
        if use_cache and self.cache is not None:
            cached = self.cache.get(path)
            if cached is not None:
                return cached

        if self.lock is not None:
            with self.lock.read():
                status = self._compute(Path(path))
        else:
            status = self._compute(Path(path))

        if self.cache is not None:
            self.cache.insert(path, status)
        return status

    def inspect_record(self, record: WorktreeRecord, use_cache: bool = True) -> WorktreeRecord:
        """Copy of ``record`` with fresh status, head and age."""
        status = self.inspect(record.path, use_cache=use_cache)
        try:
            head = self.queries.head_sha(record.path)
        except GitOperationError:
            head = record.head
        return replace(record, status=status, head=head, age=directory_age(record.path))

    def batch_inspect(self, records: Sequence[WorktreeRecord], use_cache: bool = True) -> List[WorktreeRecord]:
        """Inspect many worktrees in parallel, keeping input order.

        Worktrees that cannot be inspected come back without a status.
        """
        if not records:
            return []

        results: List[Optional[WorktreeRecord]] = [None] * len(records)
        max_workers = get_optimal_worker_count(self.workers, task_count=len(records))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(self.inspect_record, record, use_cache): index
                for index, record in enumerate(records)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except GitOperationError as e:
                    logger.warning(f"Could not inspect worktree {records[index].path}: {e}")
                    results[index] = records[index]
        return [r for r in results if r is not None]

    def check_activity(self, path: Union[str, Path], days: int) -> bool:
        """True if the worktree's branch has commits from the last ``days`` days."""
        return self.queries.has_commits_since(path, days)

    def get_diff(self, path: Union[str, Path], compact: bool = False) -> str:
        """Uncommitted changes of a worktree, as a diffstat when ``compact``."""
        return self.queries.diff(path, stat_only=compact)

    def get_branch_info(self, path: Union[str, Path]) -> BranchInfo:
        branch = self.queries.current_branch(path)
        base = next((b for b in self.main_branches if self.queries.ref_resolves(path, b)), None)
        if base is None:
            return BranchInfo(branch=branch, base_branch=None, commit_count=0)
        revision_range = f"{base}..HEAD"
        return BranchInfo(
            branch=branch,
            base_branch=base,
            commit_count=self.queries.commit_count(path, revision_range),
            first_commit=self.queries.first_commit(path, revision_range),
        )

    def _compute(self, path: Path) -> WorktreeStatus:
        uncommitted, untracked = [], []
        for code, file_path in self.queries.porcelain_status(path):
            if code == "??":
                untracked.append(file_path)
            else:
                uncommitted.append(f"{file_path} ({describe_change(code)})")

        branch = self.queries.current_branch(path)
        remote_status = self._remote_status(path, branch)
        ahead, behind = remote_status.ahead, remote_status.behind

        unpushed = []
        if ahead > 0:
            unpushed = self.queries.unpushed_commits(path)

        merge_info = self._merge_info(branch)

        has_changes = bool(uncommitted or untracked)
        is_clean = not has_changes and (ahead == 0 or remote_status.state is RemoteState.NO_REMOTE)
        severity = determine_severity(is_clean, has_changes, remote_status, ahead, behind, merge_info)

        return WorktreeStatus(
            is_clean=is_clean,
            severity=severity,
            uncommitted_changes=uncommitted,
            untracked_files=untracked,
            unpushed_commits=unpushed,
            remote_status=remote_status,
            merge_info=merge_info,
            ahead_count=ahead,
            behind_count=behind,
        )

    def _remote_status(self, path: Path, branch: str) -> RemoteStatus:
        if self.queries.upstream(path) is None:
            if branch != "HEAD" and self.queries.configured_upstream(path, branch):
                return RemoteStatus.remote_deleted()
            return RemoteStatus.no_remote()
        counts = self.queries.ahead_behind(path)
        if counts is None:
            return RemoteStatus.remote_deleted()
        return RemoteStatus.from_counts(*counts)

    def _merge_info(self, branch: str) -> Optional[MergeInfo]:
        if self.merge_detector is None or branch == "HEAD" or branch in self.main_branches:
            return None
        try:
            return self.merge_detector.detect(branch).to_merge_info()
        except (GitOperationError, GitHubAPIError) as e:
            logger.debug(f"Merge detection failed for {branch}: {e}")
            return None
