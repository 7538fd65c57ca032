"""Interactive confirmation for destructive cleanup actions."""

from typing import List, Optional

from rich.console import Console

from git_worktree_keeper.models.cleanup import SafetyViolation
from git_worktree_keeper.models.worktree import WorktreeRecord

console = Console()


def format_violations(violations: List[SafetyViolation]) -> str:
    """
    Format safety violations as a bullet list for a prompt.

    Args:
        violations: Violations found for one worktree

    Returns:
        One ``  • description (severity)`` line per violation
    """
    return "\n".join(f"  • {v.description} ({v.severity.value})" for v in violations)


def confirm_cleanup(
    record: WorktreeRecord,
    violations: List[SafetyViolation],
    prompt_console: Optional[Console] = None,
) -> bool:
    """Ask on the console whether ``record`` may be removed."""
    out = prompt_console or console
    out.print(f"\n[bold]Remove worktree[/bold] {record.path} ([cyan]{record.branch}[/cyan])?")
    if violations:
        out.print("[yellow]Safety warnings:[/yellow]")
        out.print(format_violations(violations), markup=False)
    response = out.input("Proceed? \\[y/N] ")
    return response.strip().lower() in ("y", "yes")
