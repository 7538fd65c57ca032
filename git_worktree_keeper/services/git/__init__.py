"""Git-related services for git-worktree-keeper."""

from .gateway import GitProcessGateway
from .queries import RepositoryQueries
from .operations import WorktreeOperations, sanitize_task_id, validate_branch_name
from .github import GitHubService
from .merge_detector import MergeDetector, MergeDetectionMethod, MergeDetectionResult, MethodResult, fuse_results
from .status import StatusInspector, determine_severity, describe_change

__all__ = [
    "GitProcessGateway",
    "RepositoryQueries",
    "WorktreeOperations",
    "sanitize_task_id",
    "validate_branch_name",
    "GitHubService",
    "MergeDetector",
    "MergeDetectionMethod",
    "MergeDetectionResult",
    "MethodResult",
    "fuse_results",
    "StatusInspector",
    "determine_severity",
    "describe_change",
]
