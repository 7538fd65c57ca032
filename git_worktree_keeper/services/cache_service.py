"""Cache service for worktree status snapshots."""

import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Optional, Union

from git_worktree_keeper.constants import STATUS_CACHE_TTL_SECONDS
from git_worktree_keeper.models.worktree import WorktreeStatus
from git_worktree_keeper.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    status: WorktreeStatus
    last_updated: float
    mtime: float


@dataclass
class CacheStats:
    total_entries: int
    valid_entries: int
    hits: int
    misses: int

    @property
    def hit_ratio(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class StatusCache:
    """In-memory status cache keyed by worktree path.

    An entry is served only while it is younger than the TTL and the
    worktree directory's mtime is unchanged since it was stored.
    """

    def __init__(
        self,
        ttl_seconds: float = STATUS_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Maximum age of a served entry
            clock: Source of the current time, replaceable in tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(path: Union[str, Path]) -> str:
        return str(Path(path))

    @staticmethod
    def _mtime(path: Union[str, Path]) -> Optional[float]:
        try:
            return Path(path).stat().st_mtime
        except OSError:
            return None

    def _is_valid(self, path: str, entry: CacheEntry, now: float) -> bool:
        if now - entry.last_updated >= self.ttl_seconds:
            return False
        return self._mtime(path) == entry.mtime

    def get(self, path: Union[str, Path]) -> Optional[WorktreeStatus]:
        key = self._key(path)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_valid(key, entry, now):
                self._hits += 1
                return entry.status
            self._misses += 1
        return None

    def insert(self, path: Union[str, Path], status: WorktreeStatus) -> None:
        key = self._key(path)
        now = self._clock()
        mtime = self._mtime(key)
        with self._lock:
            self._entries[key] = CacheEntry(
                status=status,
                last_updated=now,
                mtime=mtime if mtime is not None else now,
            )

    def invalidate(self, path: Union[str, Path]) -> None:
        with self._lock:
            self._entries.pop(self._key(path), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_stale_entries(self) -> int:
        """Drop expired entries and entries for deleted directories.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            stale = [
                key for key, entry in self._entries.items()
                if now - entry.last_updated >= self.ttl_seconds or not Path(key).exists()
            ]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug(f"Dropped {len(stale)} stale status cache entries")
        return len(stale)

    def stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            valid = sum(1 for key, entry in self._entries.items() if self._is_valid(key, entry, now))
            return CacheStats(
                total_entries=len(self._entries),
                valid_entries=valid,
                hits=self._hits,
                misses=self._misses,
            )
