"""Cleanup policy and report models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class CleanupStrategy(Enum):
    """What happens to a worktree's work when it is retired."""
    DISCARD = "discard"
    MERGE_TO_FEATURE = "merge_to_feature"
    BACKUP_TO_ORIGIN = "backup_to_origin"
    STASH_AND_DISCARD = "stash_and_discard"


class ViolationType(Enum):
    UNCOMMITTED_CHANGES = "uncommitted_changes"
    UNPUSHED_COMMITS = "unpushed_commits"
    BRANCH_TOO_NEW = "branch_too_new"
    LOW_MERGE_CONFIDENCE = "low_merge_confidence"
    REMOTE_BRANCH_MISSING = "remote_branch_missing"
    WORKTREE_IN_USE = "worktree_in_use"


class ViolationSeverity(Enum):
    """Warnings can be overridden with force, critical violations never."""
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class SafetyViolation:
    type: ViolationType
    description: str
    severity: ViolationSeverity

    @property
    def is_critical(self) -> bool:
        return self.severity is ViolationSeverity.CRITICAL


class CleanupAction(Enum):
    """Terminal outcome for one evaluated worktree."""
    CLEANED = "cleaned"
    SKIPPED = "skipped"
    FAILED = "failed"
    STASH_CREATED = "stash_created"
    MERGED_TO_FEATURE = "merged_to_feature"
    BACKED_UP_TO_ORIGIN = "backed_up_to_origin"

    @property
    def counts_as_cleaned(self) -> bool:
        return self in (
            CleanupAction.CLEANED,
            CleanupAction.STASH_CREATED,
            CleanupAction.MERGED_TO_FEATURE,
            CleanupAction.BACKED_UP_TO_ORIGIN,
        )


@dataclass(frozen=True)
class CleanupOptions:
    """Caller-supplied policy for one cleanup run.

    ``min_age_hours`` of None means the configured age threshold.
    """
    strategy: CleanupStrategy = CleanupStrategy.DISCARD
    min_age_hours: Optional[int] = None
    force: bool = False
    dry_run: bool = False
    auto_confirm: bool = False
    branch_prefix_filter: Optional[str] = None
    merged_only: bool = False
    min_merge_confidence: float = 0.8


def merged_worktrees_cleanup_options(**overrides) -> CleanupOptions:
    """Options retiring only worktrees whose branch has landed upstream."""
    values = dict(merged_only=True, min_merge_confidence=0.7)
    values.update(overrides)
    return CleanupOptions(**values)


def old_worktrees_cleanup_options(days: int, **overrides) -> CleanupOptions:
    """Options retiring worktrees older than ``days`` days."""
    values = dict(min_age_hours=days * 24)
    values.update(overrides)
    return CleanupOptions(**values)


@dataclass
class WorktreeCleanupResult:
    path: Path
    branch: str
    action: CleanupAction
    reason: str
    error: Optional[str] = None
    violations: List[SafetyViolation] = field(default_factory=list)


@dataclass
class CleanupReport:
    """Totals and per-worktree outcomes of a cleanup run."""
    dry_run: bool = False
    results: List[WorktreeCleanupResult] = field(default_factory=list)

    def add(self, result: WorktreeCleanupResult) -> None:
        self.results.append(result)

    @property
    def total_evaluated(self) -> int:
        return len(self.results)

    @property
    def cleaned(self) -> int:
        return sum(1 for r in self.results if r.action.counts_as_cleaned)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.action is CleanupAction.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.action is CleanupAction.FAILED)
