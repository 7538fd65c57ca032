"""Worker sizing for the parallel status fan-out."""

import os
import sys
from typing import Optional


def is_free_threading_enabled() -> bool:
    """Detect if Python is running with the GIL disabled.

    Returns:
        True on a free-threaded 3.13+ build with the GIL off, False otherwise
    """
    try:
        return hasattr(sys, "_is_gil_enabled") and not sys._is_gil_enabled()
    except Exception:
        return False


def get_optimal_worker_count(
    user_specified: Optional[int] = None, task_count: Optional[int] = None
) -> int:
    """Calculate how many threads to use for subprocess-bound work.

    Args:
        user_specified: Explicit worker count, used as-is when positive
        task_count: Number of items to process; the pool never exceeds it

    Returns:
        Number of workers for a ThreadPoolExecutor (at least 1)
    """
    if user_specified is not None and user_specified > 0:
        workers = user_specified
    else:
        cpu_count = os.cpu_count() or 1
        if is_free_threading_enabled():
            workers = min(64, cpu_count * 2)
        else:
            # git status work is I/O bound
            workers = min(32, cpu_count + 4)

    if task_count is not None:
        workers = min(workers, max(1, task_count))
    return max(1, workers)
