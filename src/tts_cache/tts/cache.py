"""
In-Memory Artifact Cache with LRU Eviction.

Stores the outcome of generation calls keyed by fingerprint. Every key
maps to exactly one CacheEntry, which is in one of three states:

    PENDING    a generation call is in flight (size 0)
    COMPLETED  the artifact is stored (size = estimated artifact size)
    FAILED     the call raised, returned None or timed out (size 0)

Bounds:
    The cache is bounded both by entry count (max_entries) and by the
    aggregate estimated size of stored artifacts (max_size_bytes).

Eviction:
    Recency is the insertion/overwrite stamp, not access time: reads
    never refresh an entry, only put() does. After every put() that leaves
    the cache over either bound, entries are walked oldest first and
    removed until both bounds hold. PENDING entries are never evicted, so
    the cache can stay over its bounds while everything left is in flight.

    Removal notifies eviction listeners with the fingerprint; the service
    uses this to prune session sequences and pending-handle tracking.

Concurrency:
    No locks. All methods are synchronous and are meant to be called from
    a single asyncio event loop, where they run without interleaving.

Example:
    >>> cache = ArtifactCache(max_entries=2, max_size_bytes=1024)
    >>> cache.put("k1", CacheEntry.completed(b"audio", size_bytes=5))
    >>> cache.is_completed("k1")
    True
    >>> cache.stats()["current_size"]
    5
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from tts_cache.core.config import Defaults
from tts_cache.core.logging import debug, get_logger, info
from tts_cache.core.metrics import CacheMetrics

_LOG = get_logger("tts-cache.cache")

EvictionListener = Callable[[str], None]


class EntryStatus(str, Enum):
    """State of one cache slot."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CacheEntry:
    """
    One cache slot.

    Attributes:
        status: PENDING, COMPLETED or FAILED.
        artifact: The generated artifact; set only when COMPLETED.
        size_bytes: Estimated artifact size; 0 unless COMPLETED.
        in_flight: Task producing the GenerationResult. Kept after the
            entry turns terminal so late waiters see the same outcome.
        error: Error code for FAILED entries.
        created_at: Monotonic stamp assigned by ArtifactCache.put().
    """
    status: EntryStatus
    artifact: Any = None
    size_bytes: int = 0
    in_flight: Optional["asyncio.Task[Any]"] = None
    error: Optional[str] = None
    created_at: int = 0

    @classmethod
    def pending(cls, handle: Optional["asyncio.Task[Any]"] = None) -> "CacheEntry":
        return cls(status=EntryStatus.PENDING, in_flight=handle)

    @classmethod
    def completed(
        cls,
        artifact: Any,
        size_bytes: int,
        handle: Optional["asyncio.Task[Any]"] = None,
    ) -> "CacheEntry":
        return cls(status=EntryStatus.COMPLETED, artifact=artifact, size_bytes=size_bytes, in_flight=handle)

    @classmethod
    def failed(cls, error: str, handle: Optional["asyncio.Task[Any]"] = None) -> "CacheEntry":
        return cls(status=EntryStatus.FAILED, error=error, in_flight=handle)

    @property
    def is_terminal(self) -> bool:
        return self.status is not EntryStatus.PENDING


class ArtifactCache:
    """
    Bounded fingerprint -> CacheEntry store with LRU eviction.

    put() is the only way entries get in and the only place the aggregate
    size grows; remove(), clear() and eviction are the only ways out.

    Attributes:
        max_entries: Maximum number of entries before eviction starts.
        max_size_bytes: Maximum aggregate artifact size before eviction starts.
    """

    def __init__(
        self,
        max_entries: int = Defaults.CACHE_MAX_ENTRIES,
        max_size_bytes: int = Defaults.CACHE_MAX_SIZE_BYTES,
        metrics: Optional[CacheMetrics] = None,
    ):
        self.max_entries = int(max_entries)
        self.max_size_bytes = int(max_size_bytes)

        self._d: Dict[str, CacheEntry] = {}
        self._current_size = 0
        self._last_stamp = 0
        self._evictions = 0
        self._listeners: List[EvictionListener] = []
        self._metrics = metrics

    # ─────────────────────────────────────────────────────────────────────────
    # Read side
    # ─────────────────────────────────────────────────────────────────────────

    def lookup(self, fp: str) -> Optional[CacheEntry]:
        """Return the entry for a fingerprint, or None. Does not touch recency."""
        return self._d.get(fp)

    def is_completed(self, fp: str) -> bool:
        entry = self._d.get(fp)
        return entry is not None and entry.status is EntryStatus.COMPLETED and entry.artifact is not None

    def is_pending(self, fp: str) -> bool:
        entry = self._d.get(fp)
        return entry is not None and entry.status is EntryStatus.PENDING

    @property
    def current_size(self) -> int:
        return self._current_size

    def stats(self) -> Dict[str, int]:
        """
        Get cache statistics.

        Returns:
            Dictionary with:
                - entry_count: Entries currently stored (any status)
                - max_entries: Configured entry bound
                - current_size: Aggregate size of stored artifacts
                - max_size: Configured size bound
                - pending: Entries still in flight
                - evictions: Entries removed by LRU eviction so far
        """
        pending = sum(1 for e in self._d.values() if e.status is EntryStatus.PENDING)
        return {
            "entry_count": len(self._d),
            "max_entries": self.max_entries,
            "current_size": self._current_size,
            "max_size": self.max_size_bytes,
            "pending": pending,
            "evictions": self._evictions,
        }

    def __len__(self) -> int:
        return len(self._d)

    def __contains__(self, fp: object) -> bool:
        return fp in self._d

    # ─────────────────────────────────────────────────────────────────────────
    # Write side
    # ─────────────────────────────────────────────────────────────────────────

    def add_eviction_listener(self, listener: EvictionListener) -> None:
        """Register a callback invoked with the fingerprint of every removed entry."""
        self._listeners.append(listener)

    def resize(self, max_entries: int, max_size_bytes: int) -> None:
        """Change both bounds and evict right away if the cache no longer fits."""
        self.max_entries = int(max_entries)
        self.max_size_bytes = int(max_size_bytes)
        self._enforce_limits()
        self._publish_state()

    def put(self, fp: str, entry: CacheEntry) -> None:
        """
        Insert or replace the entry for a fingerprint, then enforce bounds.

        The entry is stamped with a fresh created_at, so a replaced entry
        becomes the most recent one.

        Args:
            fp: Fingerprint.
            entry: New entry for the fingerprint.
        """
        old = self._d.get(fp)
        if old is not None:
            self._current_size -= old.size_bytes

        entry.created_at = self._stamp()
        self._d[fp] = entry
        self._current_size += entry.size_bytes

        debug(
            _LOG, "put",
            key=fp[:8],
            status=entry.status.value,
            size=entry.size_bytes,
            replaced=old is not None,
        )

        self._enforce_limits()
        self._publish_state()

    def remove(self, fp: str) -> bool:
        """
        Remove one entry, whatever its status.

        Returns:
            True if an entry was removed, False if none was present.
        """
        entry = self._d.get(fp)
        if entry is None:
            return False
        self._drop(fp, entry)
        self._publish_state()
        return True

    def clear(self) -> int:
        """
        Drop every entry without notifying eviction listeners.

        Returns:
            Number of entries that were cleared.
        """
        count = len(self._d)
        self._d.clear()
        self._current_size = 0
        self._publish_state()
        return count

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _stamp(self) -> int:
        # Strictly increasing even when two puts land in the same clock tick
        self._last_stamp = max(time.monotonic_ns(), self._last_stamp + 1)
        return self._last_stamp

    def _over_limits(self) -> bool:
        return len(self._d) > self.max_entries or self._current_size > self.max_size_bytes

    def _enforce_limits(self) -> None:
        if not self._over_limits():
            return

        candidates = sorted(self._d.items(), key=lambda kv: kv[1].created_at)
        evicted = 0
        for fp, entry in candidates:
            if not self._over_limits():
                break
            if entry.status is EntryStatus.PENDING:
                continue
            self._drop(fp, entry)
            evicted += 1
            info(
                _LOG, "evict",
                key=fp[:8],
                status=entry.status.value,
                size=entry.size_bytes,
            )

        if evicted:
            self._evictions += evicted
            if self._metrics is not None:
                self._metrics.record_eviction(evicted)

        if self._over_limits():
            debug(
                _LOG, "over_limits_pending",
                entries=len(self._d),
                size=self._current_size,
                fill=round(self._current_size / self.max_size_bytes, 3) if self.max_size_bytes > 0 else None,
            )

    def _drop(self, fp: str, entry: CacheEntry) -> None:
        del self._d[fp]
        self._current_size -= entry.size_bytes
        entry.in_flight = None
        for listener in self._listeners:
            listener(fp)

    def _publish_state(self) -> None:
        if self._metrics is not None:
            self._metrics.set_cache_state(len(self._d), self._current_size)
