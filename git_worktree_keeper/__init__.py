"""
git-worktree-keeper - Worktree lifecycle engine: create, inspect and safely retire git worktrees
"""

from .__version__ import __version__
from .core import WorktreeManager, create_worktree_manager
from .config import WorktreeConfig
from .config_manager import WorktreeConfigManager
from .models import CleanupOptions, CleanupStrategy, CreateOptions, RemoveOptions

__all__ = [
    "WorktreeManager",
    "create_worktree_manager",
    "WorktreeConfig",
    "WorktreeConfigManager",
    "CleanupOptions",
    "CleanupStrategy",
    "CreateOptions",
    "RemoveOptions",
    "__version__",
]
