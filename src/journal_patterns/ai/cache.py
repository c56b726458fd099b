"""Per-User Reflection Cache.

This module keeps the most recent non-silent reflection for each user in
process memory so repeated views don't trigger repeated model calls.

A cached entry is tied to a coarse fingerprint of the entry list and is
served only while it is younger than the TTL. The cache is a pure
optimization: the engine works identically without hits, just with more
provider calls.

Rules (enforced by the engine, see journal_patterns.ai.analyzer):
- One slot per user, overwritten by each non-silent outcome
- Silent outcomes are never written
- No eviction and no locking; concurrent writers race, last one wins

Example:
    >>> cache = PatternCache(ttl_seconds=300)
    >>> fp = fingerprint_entries(sorted_entries)
    >>> entry = cache.get("user-1")
    >>> if entry is not None and cache.is_fresh(entry, fp):
    ...     return entry.value
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Callable

from pydantic import BaseModel, Field

from journal_patterns.core.models import JournalEntry, PatternsSuccess

logger = logging.getLogger(__name__)

FINGERPRINT_BODY_PREFIX = 120
FINGERPRINT_LENGTH = 16


# =============================================================================
# Data Structures
# =============================================================================


class CacheEntry(BaseModel):
    """One user's cached reflection.

    Attributes:
        user_id: Owner of the slot.
        fingerprint: fingerprint_entries() of the snapshot it was computed from.
        timestamp_ms: Wall-clock write time in milliseconds.
        value: The success envelope exactly as it was returned.
    """

    user_id: str
    fingerprint: str
    timestamp_ms: int = Field(ge=0)
    value: PatternsSuccess


# =============================================================================
# Helper Functions
# =============================================================================


def fingerprint_entries(entries: list[JournalEntry]) -> str:
    """Create a cheap fingerprint of an ordered entry list.

    Combines the total entry count (vent entries included), the newest
    entry's date and the first 120 characters of its body.

    Args:
        entries: Entries sorted oldest -> newest.

    Returns:
        First 16 hex characters of a SHA-256 digest.

    Note:
        Coarse by construction: an edit to an older entry, or to the newest
        entry past its first 120 characters, keeps the same fingerprint.
        Such stale results live at most one TTL.
    """
    newest = entries[-1] if entries else None
    newest_date = newest.entry_date if newest else ""
    newest_prefix = newest.body[:FINGERPRINT_BODY_PREFIX] if newest else ""

    combined = f"{len(entries)}|{newest_date}|{newest_prefix}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


# =============================================================================
# Cache
# =============================================================================


class PatternCache:
    """In-process, per-user cache of reflection results.

    Attributes:
        ttl_seconds: Maximum age of a servable entry.

    Example:
        >>> clock = lambda: 1_000.0
        >>> cache = PatternCache(ttl_seconds=300, clock=clock)
        >>> cache.put("u1", CacheEntry(user_id="u1", fingerprint="ab", timestamp_ms=cache.now_ms(), value=result))
        >>> cache.is_fresh(cache.get("u1"), "ab")
        True
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: How long an entry may be served, in seconds.
            clock: Returns the current time in seconds. Injected by tests.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def ttl_ms(self) -> int:
        return self.ttl_seconds * 1000

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self, user_id: str) -> CacheEntry | None:
        return self._entries.get(user_id)

    def put(self, user_id: str, entry: CacheEntry) -> None:
        self._entries[user_id] = entry
        self._logger.debug(f"Cached reflection (fingerprint {entry.fingerprint})")

    def age_ms(self, entry: CacheEntry) -> int:
        return self.now_ms() - entry.timestamp_ms

    def is_fresh(self, entry: CacheEntry, fingerprint: str | None = None) -> bool:
        """Check whether an entry may be served.

        Args:
            entry: The cached entry.
            fingerprint: Expected fingerprint. None skips the comparison,
                which the stale-fallback path relies on.

        Returns:
            True if the fingerprint matches (when given) and the age is
            within [0, TTL]. A negative age (clock went backwards) is not
            fresh.
        """
        if fingerprint is not None and entry.fingerprint != fingerprint:
            return False
        age = self.age_ms(entry)
        return 0 <= age <= self.ttl_ms

    def invalidate(self, user_id: str) -> bool:
        """Drop a user's slot. Returns True if one existed."""
        return self._entries.pop(user_id, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
