"""Worktree data models."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import List, Optional

from git_worktree_keeper.constants import (
    DETACHED_BRANCH,
    BARE_BRANCH,
    SYMBOL_CLEAN,
    SYMBOL_LIGHT_WARNING,
    SYMBOL_WARNING,
)


class StatusSeverity(Enum):
    """How much attention a worktree needs before it can be retired."""
    CLEAN = "clean"
    LIGHT_WARNING = "light_warning"
    WARNING = "warning"

    @property
    def priority(self) -> int:
        """Sort key, most severe first."""
        return {StatusSeverity.WARNING: 0, StatusSeverity.LIGHT_WARNING: 1, StatusSeverity.CLEAN: 2}[self]

    @property
    def icon(self) -> str:
        if self is StatusSeverity.CLEAN:
            return SYMBOL_CLEAN
        if self is StatusSeverity.WARNING:
            return SYMBOL_WARNING
        return SYMBOL_LIGHT_WARNING


class RemoteState(Enum):
    """Relationship between a branch and its upstream."""
    NO_REMOTE = "no_remote"
    UP_TO_DATE = "up_to_date"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    REMOTE_DELETED = "remote_deleted"


@dataclass(frozen=True)
class RemoteStatus:
    """Upstream tracking state, with counts where they apply."""
    state: RemoteState
    ahead: int = 0
    behind: int = 0

    @classmethod
    def no_remote(cls) -> "RemoteStatus":
        return cls(RemoteState.NO_REMOTE)

    @classmethod
    def remote_deleted(cls) -> "RemoteStatus":
        return cls(RemoteState.REMOTE_DELETED)

    @classmethod
    def from_counts(cls, ahead: int, behind: int) -> "RemoteStatus":
        if ahead and behind:
            return cls(RemoteState.DIVERGED, ahead, behind)
        if ahead:
            return cls(RemoteState.AHEAD, ahead=ahead)
        if behind:
            return cls(RemoteState.BEHIND, behind=behind)
        return cls(RemoteState.UP_TO_DATE)

    def __str__(self) -> str:
        if self.state is RemoteState.AHEAD:
            return f"ahead {self.ahead}"
        if self.state is RemoteState.BEHIND:
            return f"behind {self.behind}"
        if self.state is RemoteState.DIVERGED:
            return f"diverged (+{self.ahead}/-{self.behind})"
        return self.state.value.replace("_", " ")


@dataclass
class CommitInfo:
    """A commit that exists locally but not on the upstream."""
    id: str
    short_id: str
    message: str
    author: str
    timestamp: datetime


@dataclass
class MergeInfo:
    """Fused verdict on whether a branch has landed upstream."""
    is_merged: bool
    detection_method: str
    confidence: float
    details: Optional[str] = None


@dataclass
class WorktreeStatus:
    """Point-in-time snapshot of one worktree."""
    is_clean: bool
    severity: StatusSeverity
    uncommitted_changes: List[str] = field(default_factory=list)
    untracked_files: List[str] = field(default_factory=list)
    unpushed_commits: List[CommitInfo] = field(default_factory=list)
    remote_status: RemoteStatus = field(default_factory=RemoteStatus.no_remote)
    merge_info: Optional[MergeInfo] = None
    ahead_count: int = 0
    behind_count: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.uncommitted_changes or self.untracked_files)

    def is_safe_to_cleanup(self) -> bool:
        """True when removing the worktree cannot lose work."""
        merged = self.merge_info is not None and self.merge_info.is_merged
        return self.is_clean and not self.has_changes and (not self.unpushed_commits or merged)

    def status_icon(self) -> str:
        return self.severity.icon

    def status_description(self) -> str:
        """Short human summary such as ``1 uncommitted, 2 unpushed``."""
        parts = []
        if self.uncommitted_changes:
            parts.append(f"{len(self.uncommitted_changes)} uncommitted")
        if self.untracked_files:
            parts.append(f"{len(self.untracked_files)} untracked")
        if self.ahead_count:
            parts.append(f"{self.ahead_count} unpushed")

        state = self.remote_status.state
        if state is RemoteState.NO_REMOTE:
            parts.append("no remote")
        elif state is RemoteState.REMOTE_DELETED:
            parts.append("remote deleted")
        if self.behind_count:
            parts.append(f"{self.behind_count} behind")

        if self.merge_info and self.merge_info.is_merged:
            parts.append(f"merged ({self.merge_info.detection_method})")

        return ", ".join(parts) if parts else "clean"


@dataclass
class WorktreeRecord:
    """A worktree as reported by ``git worktree list``.

    Recomputed on every listing, never persisted.
    """
    path: Path
    branch: str
    head: str
    age: timedelta = field(default_factory=timedelta)
    status: Optional[WorktreeStatus] = None

    @property
    def is_detached(self) -> bool:
        return self.branch in (DETACHED_BRANCH, BARE_BRANCH)

    def __str__(self) -> str:
        return f"{self.branch} @ {self.path}"


@dataclass
class CreateOptions:
    """Parameters for creating a task worktree."""
    task_id: str
    base_branch: Optional[str] = None
    force: bool = False
    custom_path: Optional[Path] = None


@dataclass
class RemoveOptions:
    """Parameters for removing a worktree by path or branch."""
    target: str
    force: bool = False
    delete_branch: bool = False


@dataclass
class BranchInfo:
    """Where a worktree branch stands relative to the default branch."""
    branch: str
    base_branch: Optional[str]
    commit_count: int
    first_commit: Optional[str] = None
