"""
ProjectCache
============

Per-file cache of parse results, validated by modification time.

Entry lifecycle::

    Empty --set--> Cached(index, mtime) --set--> Cached(index', mtime')
                          |
                          +--delete/clear--> Empty

``get`` serves an entry while the stored mtime is greater than or equal to
the file's current mtime.  A file whose mtime moved backwards (a revert, or
clock skew) therefore keeps its cached result.  A file that can no longer be
stat'd is a miss.

An entry may also record the files its index was built from (its includes).
It is a miss once any of them has a different mtime than when the entry was
stored, or has appeared or disappeared since.

Cached values are immutable :class:`~ledger_index.models.LedgerIndex`
objects, so handing the same instance to several callers is safe.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from ..models import LedgerIndex

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_MISSING = -1


@dataclass(frozen=True)
class CacheEntry:
    index: LedgerIndex
    mtime_ns: int
    dependencies: Tuple[Tuple[str, int], ...] = ()


@dataclass(frozen=True)
class CacheStats:
    size: int
    hit_count: int
    miss_count: int

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "hit_rate": self.hit_rate,
        }


def _key(path: PathLike) -> str:
    return os.fspath(path)


def _mtime_ns(path: str) -> Optional[int]:
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return None


def _dependency_mtime(path: str) -> int:
    mtime = _mtime_ns(path)
    return _MISSING if mtime is None else mtime


class ProjectCache:
    """mtime-validated cache of parsed journal files, keyed by path."""

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, path: PathLike) -> Optional[LedgerIndex]:
        """Return the cached index for *path*, or ``None`` on a miss."""
        key = _key(path)
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        current = _mtime_ns(key)
        if current is None or entry.mtime_ns < current:
            logger.debug("Cache miss for %s (modified or missing)", key)
            self._misses += 1
            return None
        for dependency, recorded in entry.dependencies:
            if _dependency_mtime(dependency) != recorded:
                logger.debug("Cache miss for %s (%s changed)", key, dependency)
                self._misses += 1
                return None
        self._hits += 1
        return entry.index

    def set(
        self,
        path: PathLike,
        index: LedgerIndex,
        dependencies: Iterable[PathLike] = (),
    ) -> None:
        """
        Store *index* with the file's current mtime.

        *dependencies* are the other files the index was built from; their
        mtimes are recorded alongside.  Nothing is stored when *path* cannot
        be stat'd.
        """
        key = _key(path)
        mtime = _mtime_ns(key)
        if mtime is None:
            logger.debug("Not caching %s: cannot stat file", key)
            return
        recorded = tuple(
            sorted((_key(dep), _dependency_mtime(_key(dep))) for dep in dependencies)
        )
        self._entries[key] = CacheEntry(index, mtime, recorded)

    def delete(self, path: PathLike) -> bool:
        return self._entries.pop(_key(path), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def has(self, path: PathLike) -> bool:
        return _key(path) in self._entries

    def stored_mtime(self, path: PathLike) -> Optional[int]:
        entry = self._entries.get(_key(path))
        return None if entry is None else entry.mtime_ns

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, os.PathLike)) and self.has(path)

    def get_stats(self) -> CacheStats:
        return CacheStats(len(self._entries), self._hits, self._misses)

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
