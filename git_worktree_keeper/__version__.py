"""Version information for git-worktree-keeper."""

__version__ = "0.1.0"
