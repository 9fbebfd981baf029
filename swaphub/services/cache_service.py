"""
Short-TTL read-through cache.

One instance is created per application and handed to request handlers and
services as an explicit collaborator. Values are whatever the loader returns;
callers cache serialised response models, never ORM instances bound to a
database session.
"""

from __future__ import annotations

import fnmatch
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

_MISSING = object()


class CacheService:
    def __init__(self, default_ttl: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        """Return the cached value for ``key`` or call ``loader`` and cache its result."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = loader()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop every key matching a glob pattern such as ``sessions:user:7*``."""
        with self._lock:
            doomed = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cache keys for pattern %s", len(doomed), pattern)
        return len(doomed)

    def invalidate_patterns(self, patterns: Iterable[str]) -> int:
        return sum(self.invalidate_pattern(pattern) for pattern in patterns)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Cache key builders shared by routers (readers) and services (invalidators)

def session_list_key(user_id: int, status: Optional[str] = None) -> str:
    return f"sessions:user:{user_id}:{status or 'all'}"


def meeting_rows_key(user_id: int) -> str:
    # Raw rows only; phases depend on the clock and are computed per read
    return f"meetings:user:{user_id}:rows"


def rating_key(user_id: Optional[int], skill_id: Optional[int], session_id: Optional[int]) -> str:
    return f"reviews:rating:{user_id}:{skill_id}:{session_id}"


def invalidate_users(cache: Optional[CacheService], prefix: str, *user_ids: int) -> None:
    """Invalidate ``<prefix>:user:<id>*`` for every party of a mutated entity."""
    if cache is None:
        return
    cache.invalidate_patterns(f"{prefix}:user:{user_id}:*" for user_id in user_ids)
