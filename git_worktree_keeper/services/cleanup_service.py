"""Cleanup engine for retiring worktrees safely."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from git_worktree_keeper.config import WorktreeConfig
from git_worktree_keeper.constants import NO_LOCAL_CHANGES_MARKER, STASH_MESSAGE_PREFIX
from git_worktree_keeper.exceptions import GitOperationError, WorktreeKeeperError
from git_worktree_keeper.formatters.duration import format_duration
from git_worktree_keeper.formatters.prompt import confirm_cleanup
from git_worktree_keeper.models.cleanup import (
    CleanupAction,
    CleanupOptions,
    CleanupReport,
    CleanupStrategy,
    SafetyViolation,
    ViolationSeverity,
    ViolationType,
    WorktreeCleanupResult,
)
from git_worktree_keeper.models.worktree import RemoteState, WorktreeRecord, WorktreeStatus
from git_worktree_keeper.services.git.operations import WorktreeOperations
from git_worktree_keeper.services.git.status import StatusInspector
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)

ConfirmCallback = Callable[[WorktreeRecord, List[SafetyViolation]], bool]


def is_main_checkout(path: Path) -> bool:
    """The primary checkout holds a ``.git`` directory; linked worktrees a file."""
    return (Path(path) / ".git").is_dir()


def _is_within(child: Path, parent: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


class CleanupEngine:
    """Evaluates worktrees against safety rules and retires the eligible ones.

    A failure on one worktree is recorded in the report and never stops the
    rest of the batch.
    """

    def __init__(
        self,
        operations: WorktreeOperations,
        inspector: StatusInspector,
        config: WorktreeConfig,
        confirm: Optional[ConfirmCallback] = None,
        current_dir: Optional[Path] = None,
    ):
        """Initialize the cleanup engine.

        Args:
            operations: Worktree operations of the repository being cleaned
            inspector: Status inspector (should carry a merge detector)
            config: Effective worktree configuration for the repository
            confirm: Asked before each destructive action; defaults to a
                console prompt
            current_dir: Caller's working directory; sampled from the
                process at the start of each run when omitted
        """
        self.operations = operations
        self.inspector = inspector
        self.config = config
        self.queries = operations.queries
        self.gateway = operations.gateway
        self.repo_root = operations.repo_root
        self.current_dir = current_dir
        self.confirm = confirm or confirm_cleanup
        self._strategies: Dict[CleanupStrategy, Callable[[WorktreeRecord], WorktreeCleanupResult]] = {
            CleanupStrategy.DISCARD: self._discard,
            CleanupStrategy.MERGE_TO_FEATURE: self._merge_to_feature,
            CleanupStrategy.BACKUP_TO_ORIGIN: self._backup_to_origin,
            CleanupStrategy.STASH_AND_DISCARD: self._stash_and_discard,
        }

    def cleanup(self, options: CleanupOptions) -> CleanupReport:
        """Evaluate every worktree and retire those that pass."""
        report = CleanupReport(dry_run=options.dry_run)
        current_dir = Path(self.current_dir) if self.current_dir else Path.cwd()

        candidates = []
        for record in self.operations.list():
            if is_main_checkout(record.path):
                report.add(self._skipped(record, "Main repository checkout"))
            elif options.branch_prefix_filter and not record.branch.startswith(options.branch_prefix_filter):
                report.add(self._skipped(record, f"Branch does not match '{options.branch_prefix_filter}'"))
            else:
                candidates.append(record)

        for record in self.inspector.batch_inspect(candidates, use_cache=False):
            try:
                result = self._process(record, options, current_dir)
            except (WorktreeKeeperError, OSError) as e:
                logger.error(f"Failed to process worktree {record.path}: {e}")
                result = WorktreeCleanupResult(
                    path=record.path,
                    branch=record.branch,
                    action=CleanupAction.FAILED,
                    reason="Processing error",
                    error=str(e),
                )
            report.add(result)

        logger.info(
            f"Cleanup finished: {report.cleaned} cleaned, {report.skipped} skipped, "
            f"{report.failed} failed of {report.total_evaluated}"
        )
        return report

    def evaluate_safety(
        self,
        record: WorktreeRecord,
        status: WorktreeStatus,
        options: CleanupOptions,
        current_dir: Path,
    ) -> List[SafetyViolation]:
        """Every safety rule ``record`` breaks under ``options``."""
        violations = []
        warning, critical = ViolationSeverity.WARNING, ViolationSeverity.CRITICAL

        min_age_hours = options.min_age_hours
        if min_age_hours is None:
            min_age_hours = self.config.cleanup.age_threshold_hours
        if record.age.total_seconds() < min_age_hours * 3600:
            violations.append(SafetyViolation(
                ViolationType.BRANCH_TOO_NEW,
                f"Worktree is only {format_duration(record.age)} old (minimum {min_age_hours}h)",
                warning,
            ))

        if status.has_changes:
            violations.append(SafetyViolation(
                ViolationType.UNCOMMITTED_CHANGES,
                f"{len(status.uncommitted_changes)} uncommitted change(s), "
                f"{len(status.untracked_files)} untracked file(s)",
                warning,
            ))

        if status.unpushed_commits:
            violations.append(SafetyViolation(
                ViolationType.UNPUSHED_COMMITS,
                f"{len(status.unpushed_commits)} unpushed commit(s)",
                warning,
            ))

        if options.merged_only:
            merge_info = status.merge_info
            if merge_info is None or not merge_info.is_merged:
                violations.append(SafetyViolation(
                    ViolationType.LOW_MERGE_CONFIDENCE, "Branch is not merged", critical,
                ))
            elif merge_info.confidence < options.min_merge_confidence:
                violations.append(SafetyViolation(
                    ViolationType.LOW_MERGE_CONFIDENCE,
                    f"Merge confidence {merge_info.confidence:.2f} below {options.min_merge_confidence:.2f}",
                    warning,
                ))

        if self.config.cleanup.verify_remote and status.remote_status.state is RemoteState.REMOTE_DELETED:
            violations.append(SafetyViolation(
                ViolationType.REMOTE_BRANCH_MISSING, "Upstream branch was deleted", warning,
            ))

        if _is_within(current_dir, record.path):
            violations.append(SafetyViolation(
                ViolationType.WORKTREE_IN_USE, "Current directory is inside this worktree", critical,
            ))

        return violations

    def _process(self, record: WorktreeRecord, options: CleanupOptions, current_dir: Path) -> WorktreeCleanupResult:
        if record.status is None:
            record.status = self.inspector.inspect(record.path, use_cache=False)

        violations = self.evaluate_safety(record, record.status, options, current_dir)
        critical = [v for v in violations if v.is_critical]
        if critical:
            return self._skipped(
                record, f"Critical safety violations: {self._describe(critical)}", violations
            )
        if violations and not options.force:
            return self._skipped(
                record, f"Safety violations (use --force to override): {self._describe(violations)}", violations
            )

        needs_confirmation = (
            self.config.cleanup.require_confirmation and not options.auto_confirm and not options.dry_run
        )
        if needs_confirmation and not self.confirm(record, violations):
            logger.warning(f"Cleanup of {record.path} declined")
            return self._skipped(record, "User declined cleanup", violations)

        if options.dry_run:
            return WorktreeCleanupResult(
                path=record.path,
                branch=record.branch,
                action=CleanupAction.CLEANED,
                reason="Would be cleaned (dry run)",
                violations=violations,
            )

        with self.operations.lock.write():
            result = self._strategies[options.strategy](record)
        result.violations = violations
        if result.action is CleanupAction.FAILED:
            logger.warning(f"Cleanup of {record.path} failed: {result.reason}")
        return result

    def _discard(self, record: WorktreeRecord) -> WorktreeCleanupResult:
        delete_branch = self.config.cleanup.auto_delete_branch
        self.operations.remove(record.path, force=True, delete_branch=delete_branch)
        reason = "Worktree and branch removed" if delete_branch else "Worktree removed"
        return WorktreeCleanupResult(record.path, record.branch, CleanupAction.CLEANED, reason)

    def _merge_to_feature(self, record: WorktreeRecord) -> WorktreeCleanupResult:
        prefix = self.config.prefix
        if not record.branch.startswith(prefix):
            return WorktreeCleanupResult(
                record.path, record.branch, CleanupAction.FAILED,
                f"Branch does not carry the worktree prefix '{prefix}'",
            )
        target = record.branch[len(prefix):]
        if not self.queries.branch_exists(self.repo_root, target):
            return WorktreeCleanupResult(
                record.path, record.branch, CleanupAction.FAILED,
                f"Feature branch '{target}' does not exist",
            )

        self.gateway.run(self.repo_root, "checkout", target)
        try:
            self.gateway.run(self.repo_root, "merge", "--no-edit", record.branch)
        except GitOperationError as e:
            conflicts = self.queries.conflicted_files(self.repo_root)
            if not conflicts:
                raise
            self.gateway.run(self.repo_root, "merge", "--abort")
            return WorktreeCleanupResult(
                record.path, record.branch, CleanupAction.FAILED,
                f"Merge into '{target}' hit {len(conflicts)} conflicted files; worktree left intact",
                error=e.stderr.strip() or str(e),
            )

        self.operations.remove(record.path, force=True, delete_branch=True)
        return WorktreeCleanupResult(
            record.path, record.branch, CleanupAction.MERGED_TO_FEATURE, f"Merged into '{target}'",
        )

    def _backup_to_origin(self, record: WorktreeRecord) -> WorktreeCleanupResult:
        self.gateway.run(record.path, "push", "origin", record.branch)
        self.operations.remove(record.path, force=True, delete_branch=False)
        return WorktreeCleanupResult(
            record.path, record.branch, CleanupAction.BACKED_UP_TO_ORIGIN,
            f"Pushed {record.branch} to origin",
        )

    def _stash_and_discard(self, record: WorktreeRecord) -> WorktreeCleanupResult:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        slug = record.branch.replace("/", "-")
        message = f"{STASH_MESSAGE_PREFIX}-{slug}-{stamp}"
        output = self.gateway.run(record.path, "stash", "push", "--include-untracked", "-m", message)
        stashed = NO_LOCAL_CHANGES_MARKER not in output

        delete_branch = self.config.cleanup.auto_delete_branch
        self.operations.remove(record.path, force=True, delete_branch=delete_branch)
        reason = f"Changes stashed as '{message}'" if stashed else "No local changes to stash"
        return WorktreeCleanupResult(record.path, record.branch, CleanupAction.STASH_CREATED, reason)

    @staticmethod
    def _describe(violations: Sequence[SafetyViolation]) -> str:
        return "; ".join(v.description for v in violations)

    @staticmethod
    def _skipped(
        record: WorktreeRecord, reason: str, violations: Optional[List[SafetyViolation]] = None
    ) -> WorktreeCleanupResult:
        return WorktreeCleanupResult(
            path=record.path,
            branch=record.branch,
            action=CleanupAction.SKIPPED,
            reason=reason,
            violations=violations or [],
        )
