"""Core functionality for git-worktree-keeper."""

from .worktree_manager import WorktreeManager, create_worktree_manager

__all__ = ["WorktreeManager", "create_worktree_manager"]
