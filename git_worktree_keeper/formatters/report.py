"""Rich rendering of worktree listings, cleanup reports and config summaries."""

from typing import List, Optional

from rich.console import Console
from rich.table import Table

from git_worktree_keeper.config import WorktreeStatusConfig
from git_worktree_keeper.constants import SEVERITY_COLORS
from git_worktree_keeper.formatters.duration import format_duration
from git_worktree_keeper.models.cleanup import CleanupAction, CleanupReport
from git_worktree_keeper.models.worktree import WorktreeRecord

console = Console()

ACTION_COLORS = {
    CleanupAction.CLEANED: "green",
    CleanupAction.STASH_CREATED: "green",
    CleanupAction.MERGED_TO_FEATURE: "green",
    CleanupAction.BACKED_UP_TO_ORIGIN: "green",
    CleanupAction.SKIPPED: "yellow",
    CleanupAction.FAILED: "red",
}


def build_worktree_table(records: List[WorktreeRecord]) -> Table:
    """Table with one row per worktree, colored by severity."""
    table = Table()
    for label in ("", "Branch", "Path", "Age", "Status"):
        table.add_column(label)

    for record in records:
        status = record.status
        if status is None:
            table.add_row("?", record.branch, str(record.path), format_duration(record.age), "unknown")
            continue
        table.add_row(
            status.status_icon(),
            record.branch,
            str(record.path),
            format_duration(record.age),
            status.status_description(),
            style=SEVERITY_COLORS.get(status.severity.value),
        )
    return table


def format_status_details(record: WorktreeRecord, config: Optional[WorktreeStatusConfig] = None) -> List[str]:
    """Detail lines for one worktree, truncated per the status config."""
    config = config or WorktreeStatusConfig()
    status = record.status
    if status is None:
        return []

    lines = [f"{status.status_icon()} {record.branch}: {status.status_description()}"]
    if config.show_files:
        files = status.uncommitted_changes + [f"{f} (untracked)" for f in status.untracked_files]
        for entry in files[:config.max_files_shown]:
            lines.append(f"    {entry}")
        if len(files) > config.max_files_shown:
            lines.append(f"    ... and {len(files) - config.max_files_shown} more")
    if config.show_commit_messages:
        for commit in status.unpushed_commits[:config.max_commits_shown]:
            lines.append(f"    {commit.short_id} {commit.message}")
        if len(status.unpushed_commits) > config.max_commits_shown:
            lines.append(f"    ... and {len(status.unpushed_commits) - config.max_commits_shown} more commits")
    if status.merge_info and status.merge_info.details:
        lines.append(f"    merge: {status.merge_info.details} ({status.merge_info.confidence:.0%})")
    return lines


def build_cleanup_table(report: CleanupReport) -> Table:
    title = "Cleanup preview (dry run)" if report.dry_run else "Cleanup results"
    table = Table(title=title)
    for label in ("Branch", "Action", "Reason"):
        table.add_column(label)
    for result in report.results:
        reason = result.reason if not result.error else f"{result.reason}: {result.error}"
        table.add_row(
            result.branch,
            result.action.value.replace("_", " "),
            reason,
            style=ACTION_COLORS.get(result.action),
        )
    return table


def format_report_summary(report: CleanupReport) -> str:
    return (
        f"Evaluated {report.total_evaluated}: {report.cleaned} cleaned, "
        f"{report.skipped} skipped, {report.failed} failed"
    )


def print_cleanup_report(report: CleanupReport, out: Optional[Console] = None) -> None:
    out = out or console
    out.print(build_cleanup_table(report))
    out.print(format_report_summary(report))
