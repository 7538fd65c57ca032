"""Formatting utilities for git-worktree-keeper.

- duration: Worktree age formatting
- prompt: Console confirmation before destructive cleanup
- report: Tables for worktree listings and cleanup reports
"""

from .duration import format_duration
from .prompt import confirm_cleanup, format_violations
from .report import (
    build_cleanup_table,
    build_worktree_table,
    format_report_summary,
    format_status_details,
    print_cleanup_report,
)

__all__ = [
    "format_duration",
    "confirm_cleanup",
    "format_violations",
    "build_cleanup_table",
    "build_worktree_table",
    "format_report_summary",
    "format_status_details",
    "print_cleanup_report",
]
