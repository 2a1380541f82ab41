"""In-process "already posted" markers with a time-to-live."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_POST_TTL_SECONDS = 24 * 3600


@dataclass(frozen=True)
class PostCacheEntry:
    posted: bool
    timestamp: float
    post_type: str


class PostCache:
    """TTL map of idempotency keys to post markers.

    Expired entries are dropped lazily on lookup and in bulk by
    ``purge_expired``.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_POST_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, PostCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: PostCacheEntry) -> bool:
        return self._clock() - entry.timestamp >= self._ttl

    def get(self, key: str) -> PostCacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return entry

    def is_posted(self, key: str) -> bool:
        entry = self.get(key)
        return entry is not None and entry.posted

    def mark(self, key: str, post_type: str) -> None:
        self._entries[key] = PostCacheEntry(posted=True, timestamp=self._clock(), post_type=post_type)

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        expired = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired post markers", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)
