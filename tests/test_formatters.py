"""Tests for report rendering and the cleanup prompt."""
from datetime import datetime, timedelta, timezone
from io import StringIO
from pathlib import Path

from rich.console import Console

from git_worktree_keeper.config import WorktreeStatusConfig
from git_worktree_keeper.formatters import (
    build_worktree_table,
    confirm_cleanup,
    format_report_summary,
    format_status_details,
    format_violations,
    print_cleanup_report,
)
from git_worktree_keeper.models.cleanup import (
    CleanupAction,
    CleanupReport,
    SafetyViolation,
    ViolationSeverity,
    ViolationType,
    WorktreeCleanupResult,
)
from git_worktree_keeper.models.worktree import CommitInfo, WorktreeRecord


def record_with(status):
    return WorktreeRecord(path=Path("/repo/.worktrees/task"), branch="vibe-ws/task", head="abc",
                          age=timedelta(hours=5), status=status)


class TestStatusDetails:

    def test_files_are_truncated(self, make_status):
        status = make_status(uncommitted_changes=[f"f{i}.txt (modified (unstaged))" for i in range(4)],
                             untracked_files=["new.txt"])
        lines = format_status_details(record_with(status), WorktreeStatusConfig(max_files_shown=2))

        assert lines[0].endswith("4 uncommitted, 1 untracked, no remote")
        assert lines[1:3] == ["    f0.txt (modified (unstaged))", "    f1.txt (modified (unstaged))"]
        assert lines[3] == "    ... and 3 more"

    def test_commits_and_merge_details(self, make_status, merged_info):
        commits = [
            CommitInfo(id=f"{i}" * 40, short_id=f"{i}" * 7, message=f"change {i}", author="Test User",
                       timestamp=datetime.now(timezone.utc))
            for i in range(3)
        ]
        status = make_status(unpushed_commits=commits, ahead_count=3, merge_info=merged_info)

        lines = format_status_details(record_with(status), WorktreeStatusConfig(max_commits_shown=1))

        assert "    0000000 change 0" in lines
        assert "    ... and 2 more commits" in lines
        assert lines[-1] == "    merge: merged into main (90%)"

    def test_no_status(self):
        assert format_status_details(record_with(None)) == []


class TestTables:

    def test_worktree_table(self, clean_status):
        table = build_worktree_table([record_with(clean_status), record_with(None)])
        assert table.row_count == 2

    def test_cleanup_report(self):
        report = CleanupReport(dry_run=True)
        report.add(WorktreeCleanupResult(Path("/a"), "vibe-ws/a", CleanupAction.CLEANED, "Would be cleaned (dry run)"))
        report.add(WorktreeCleanupResult(Path("/b"), "vibe-ws/b", CleanupAction.FAILED, "Processing error", error="boom"))
        out = Console(file=StringIO(), width=160)

        print_cleanup_report(report, out)

        text = out.file.getvalue()
        assert "Cleanup preview (dry run)" in text
        assert "Processing error: boom" in text
        assert format_report_summary(report) == "Evaluated 2: 1 cleaned, 0 skipped, 1 failed"


class TestConfirmCleanup:

    violations = [SafetyViolation(ViolationType.UNCOMMITTED_CHANGES, "1 uncommitted change(s)", ViolationSeverity.WARNING)]

    def test_format_violations(self):
        assert format_violations(self.violations) == "  • 1 uncommitted change(s) (warning)"

    def test_yes_confirms(self, clean_status, monkeypatch):
        out = Console(file=StringIO(), width=120)
        monkeypatch.setattr(out, "input", lambda prompt: "yes")
        assert confirm_cleanup(record_with(clean_status), self.violations, out)
        assert "1 uncommitted change(s)" in out.file.getvalue()

    def test_anything_else_declines(self, clean_status, monkeypatch):
        out = Console(file=StringIO(), width=120)
        monkeypatch.setattr(out, "input", lambda prompt: "")
        assert not confirm_cleanup(record_with(clean_status), [], out)
