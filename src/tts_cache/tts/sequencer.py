"""
Per-Session Ordering for Cached Generations.

Each session keeps:
    - default generation parameters (service, language, voice), latest wins
    - the ordered list of fingerprints it has issued, without duplicates

The barrier makes a request for item i wait until items 0..i-1 of the
same session are terminal (completed or failed), whatever order their
generation calls actually finish in:

    session "s1":  [First, Second, Third]
                              Third finishes first, but
    barrier("s1", Third)  ->  waits for First and Second to settle

Failures of earlier items are swallowed while waiting, so one failed
item never blocks or poisons the items after it. Waiting never cancels
an earlier item's task, even when the waiter itself is cancelled.

Fingerprints evicted from the cache are removed from every session
(forget), and a waiter simply stops waiting for a predecessor that
vanished.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from tts_cache.core.logging import debug, get_logger, verbose
from tts_cache.core.metrics import CacheMetrics
from tts_cache.tts.cache import ArtifactCache
from tts_cache.utils.timeit import timeit

_LOG = get_logger("tts-cache.sequencer")


@dataclass(frozen=True)
class SessionDefaults:
    """Generation parameters used by preload() for one session."""
    service: str
    language: str
    voice: str


class SequenceCoordinator:
    """
    Per-session sequences and the ordering barrier.

    The coordinator reads entry status and in-flight handles from the
    cache it was built with but never writes to it.
    """

    def __init__(self, cache: ArtifactCache, metrics: Optional[CacheMetrics] = None):
        self._cache = cache
        self._metrics = metrics
        self._defaults: Dict[str, SessionDefaults] = {}
        self._sequences: Dict[str, List[str]] = {}

    # ─────────────────────────────────────────────────────────────────────────
    # Session defaults
    # ─────────────────────────────────────────────────────────────────────────

    def record_defaults(self, session_id: str, service: str, language: str, voice: str) -> None:
        self._defaults[session_id] = SessionDefaults(service, language, voice)

    def defaults_for(self, session_id: str) -> Optional[SessionDefaults]:
        return self._defaults.get(session_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Sequences
    # ─────────────────────────────────────────────────────────────────────────

    def enqueue(self, session_id: str, fp: str) -> bool:
        """
        Append a fingerprint to the session's sequence unless already there.

        Returns:
            True if the fingerprint was appended.
        """
        sequence = self._sequences.setdefault(session_id, [])
        if fp in sequence:
            return False
        sequence.append(fp)
        debug(_LOG, "enqueue", session=session_id, key=fp[:8], position=len(sequence) - 1)
        return True

    def is_enqueued(self, session_id: str, fp: str) -> bool:
        return fp in self._sequences.get(session_id, ())

    def sequence(self, session_id: str) -> List[str]:
        """Snapshot of the session's fingerprints in issue order."""
        return list(self._sequences.get(session_id, ()))

    def sessions(self) -> List[str]:
        """Ids of every session with recorded defaults or a sequence."""
        return sorted(set(self._defaults) | set(self._sequences))

    def forget(self, fp: str) -> None:
        """Remove a fingerprint from every session sequence."""
        for session_id, sequence in self._sequences.items():
            if fp in sequence:
                sequence.remove(fp)
                debug(_LOG, "dequeue", session=session_id, key=fp[:8])

    def clear(self) -> None:
        self._defaults.clear()
        self._sequences.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Barrier
    # ─────────────────────────────────────────────────────────────────────────

    async def barrier(self, session_id: str, fp: str) -> None:
        """
        Wait until every fingerprint issued before fp in this session is terminal.

        Returns at once when fp is first in the sequence or not in it at all.

        Args:
            session_id: Session whose ordering applies.
            fp: Fingerprint about to be delivered.
        """
        sequence = self._sequences.get(session_id, [])
        try:
            position = sequence.index(fp)
        except ValueError:
            return
        if position == 0:
            return

        handles = []
        for earlier in sequence[:position]:
            entry = self._cache.lookup(earlier)
            if entry is None or entry.is_terminal or entry.in_flight is None:
                continue
            handles.append(entry.in_flight)

        if not handles:
            return

        verbose(_LOG, "barrier_wait", session=session_id, key=fp[:8], predecessors=len(handles))
        with timeit("barrier") as t:
            await self._settle_all(handles)

        verbose(_LOG, "barrier_released", session=session_id, key=fp[:8], seconds=round(t.seconds, 4))
        if self._metrics is not None:
            self._metrics.record_barrier_wait(t.seconds)

    @staticmethod
    async def _settle_all(handles: List["asyncio.Task[Any]"]) -> None:
        # asyncio.wait neither raises the tasks' exceptions nor cancels
        # them when this waiter is cancelled
        pending = {h for h in handles if not h.done()}
        if pending:
            await asyncio.wait(pending)
