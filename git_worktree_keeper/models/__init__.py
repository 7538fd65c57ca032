"""Data models for git-worktree-keeper."""

from .worktree import (
    BranchInfo,
    CommitInfo,
    CreateOptions,
    MergeInfo,
    RemoteState,
    RemoteStatus,
    RemoveOptions,
    StatusSeverity,
    WorktreeRecord,
    WorktreeStatus,
)
from .cleanup import (
    CleanupAction,
    CleanupOptions,
    CleanupReport,
    CleanupStrategy,
    SafetyViolation,
    ViolationSeverity,
    ViolationType,
    WorktreeCleanupResult,
    merged_worktrees_cleanup_options,
    old_worktrees_cleanup_options,
)

__all__ = [
    "BranchInfo",
    "CommitInfo",
    "CreateOptions",
    "MergeInfo",
    "RemoteState",
    "RemoteStatus",
    "RemoveOptions",
    "StatusSeverity",
    "WorktreeRecord",
    "WorktreeStatus",
    "CleanupAction",
    "CleanupOptions",
    "CleanupReport",
    "CleanupStrategy",
    "SafetyViolation",
    "ViolationSeverity",
    "ViolationType",
    "WorktreeCleanupResult",
    "merged_worktrees_cleanup_options",
    "old_worktrees_cleanup_options",
]
