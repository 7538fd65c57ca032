"""Utility functions for git-worktree-keeper.

This package provides utility modules:
- logging: Logging configuration and logger creation
- threading: Worker sizing for parallel status queries
- locks: Per-repository readers/writer locks
"""

from .logging import setup_logging, get_logger, ColoredFormatter
from .threading import is_free_threading_enabled, get_optimal_worker_count
from .locks import ReadWriteLock, get_repository_lock

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "ColoredFormatter",
    # Threading
    "is_free_threading_enabled",
    "get_optimal_worker_count",
    # Locks
    "ReadWriteLock",
    "get_repository_lock",
]
