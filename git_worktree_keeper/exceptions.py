"""Custom exceptions for git-worktree-keeper"""

from typing import List, Optional, Sequence


class WorktreeKeeperError(Exception):
    """Base exception for all git-worktree-keeper errors."""
    pass


class InputValidationError(WorktreeKeeperError):
    """Raised for bad caller input, before any git command runs."""
    pass


class InvalidTaskIdError(InputValidationError):
    """Exception raised when a task id sanitizes to nothing."""

    def __init__(self, task_id: str, message: Optional[str] = None):
        self.task_id = task_id
        super().__init__(
            message or f"Task id '{task_id}' contains no usable characters"
        )


class InvalidBranchNameError(InputValidationError):
    """Exception raised when a branch name fails validation."""

    def __init__(self, branch: str, reason: str):
        self.branch = branch
        self.reason = reason
        super().__init__(f"Invalid branch name '{branch}': {reason}")


class StateConflictError(WorktreeKeeperError):
    """Raised when the repository state conflicts with the request."""
    pass


class BranchExistsError(StateConflictError):
    """Exception raised when creating a branch that already exists."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Branch '{branch}' already exists (use force to recreate it)")


class NotFoundError(WorktreeKeeperError):
    """Raised when a worktree or branch cannot be resolved."""
    pass


class WorktreeNotFoundError(NotFoundError):
    """Exception raised when no worktree matches a path or branch."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"No worktree found for '{target}'")


class NotAWorktreeError(NotFoundError):
    """Exception raised when a path is not recognized by git as a worktree."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"'{path}' is not a git worktree")


class GitOperationError(WorktreeKeeperError):
    """Exception raised for errors in Git operations.

    The stderr of the failing command is kept verbatim on ``stderr``.
    """

    def __init__(
        self,
        operation: str,
        branch: Optional[str] = None,
        message: Optional[str] = None,
        status: Optional[int] = None,
        stderr: str = "",
        command: Optional[Sequence[str]] = None,
    ):
        self.operation = operation
        self.branch = branch
        self.status = status
        self.stderr = stderr
        self.command = list(command) if command else []
        self.message = message if message is not None else (
            stderr.strip() or (f"exit code {status}" if status is not None else None)
        )

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if self.message:
            error_msg += f": {self.message}"

        super().__init__(error_msg)


class GitHubAPIError(WorktreeKeeperError):
    """Exception raised for errors in GitHub CLI or API operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"GitHub operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class ConfigurationError(WorktreeKeeperError):
    """Exception raised when a worktree configuration does not validate."""

    def __init__(self, errors: List[str], repository: Optional[str] = None):
        self.errors = list(errors)
        self.repository = repository
        where = f" for repository '{repository}'" if repository else ""
        super().__init__(f"Invalid worktree configuration{where}: {'; '.join(self.errors)}")
