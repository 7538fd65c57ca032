"""Per-repository readers/writer locks.

Mutations of one repository (worktree add/remove, branch deletion, cleanup
strategies) take the exclusive side; status and merge queries take the
shared side. Both sides are re-entrant for the thread already holding them.
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional, Union


class ReadWriteLock:
    """A writer-preferring readers/writer lock built on a Condition."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers: Dict[int, int] = {}
        self._writer: Optional[int] = None
        self._write_depth = 0
        self._waiting_writers = 0

    @contextmanager
    def read(self):
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
                as_writer = True
            else:
                if me not in self._readers:
                    while self._writer is not None or self._waiting_writers:
                        self._cond.wait()
                self._readers[me] = self._readers.get(me, 0) + 1
                as_writer = False
        try:
            yield
        finally:
            with self._cond:
                if as_writer:
                    self._write_depth -= 1
                else:
                    self._readers[me] -= 1
                    if not self._readers[me]:
                        del self._readers[me]
                    if not self._readers:
                        self._cond.notify_all()

    @contextmanager
    def write(self):
        me = threading.get_ident()
        with self._cond:
            if self._writer == me:
                self._write_depth += 1
            else:
                if me in self._readers:
                    raise RuntimeError("Cannot upgrade a read lock to a write lock")
                self._waiting_writers += 1
                try:
                    while self._writer is not None or self._readers:
                        self._cond.wait()
                finally:
                    self._waiting_writers -= 1
                self._writer = me
                self._write_depth = 1
        try:
            yield
        finally:
            with self._cond:
                self._write_depth -= 1
                if not self._write_depth:
                    self._writer = None
                    self._cond.notify_all()


_registry: Dict[str, ReadWriteLock] = {}
_registry_lock = threading.Lock()


def get_repository_lock(repo_root: Union[str, Path]) -> ReadWriteLock:
    """Return the lock shared by every component working on ``repo_root``."""
    key = str(Path(repo_root).resolve())
    with _registry_lock:
        lock = _registry.get(key)
        if lock is None:
            lock = _registry[key] = ReadWriteLock()
        return lock
