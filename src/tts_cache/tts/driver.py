"""
Generation Driver: starts calls, applies the timeout, settles the cache.

Every generation call goes through one path:

    preload/request
        -> _start(): create task, put PENDING entry (with the task as handle)
        -> _run():   race generate(...) against the timeout
        -> _settle(): replace the entry with COMPLETED or FAILED

State machine per fingerprint:

    Absent -> PENDING -> COMPLETED
                      -> FAILED      (raised, returned None, or timed out)

Terminal entries only leave the cache through removal (LRU eviction,
explicit evict, reset); a new call can then start from Absent.

Timeouts:
    A call that outlives the timeout is recorded as FAILED/TIMEOUT and
    abandoned, not cancelled. It keeps running; when it finally settles
    its outcome is logged and discarded. The same applies to a call
    whose entry was removed or replaced while it was running.

Results:
    Failures never surface as exceptions. request() and the in-flight
    handles resolve to a GenerationResult that carries either the
    artifact or an error code.
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from tts_cache.core.config import Defaults
from tts_cache.core.logging import debug, fail, get_logger, info, verbose, warn
from tts_cache.core.metrics import CacheMetrics
from tts_cache.tts.cache import ArtifactCache, CacheEntry, EntryStatus
from tts_cache.tts.keys import estimate_size, make_fingerprint
from tts_cache.tts.sequencer import SequenceCoordinator
from tts_cache.utils.timeit import timeit

_LOG = get_logger("tts-cache.driver")

GenerateFn = Callable[[str, str, str, str], Awaitable[Any]]


class ErrorCode:
    """
    Error codes carried by failed GenerationResults and FAILED entries.

    Also used as TTSCacheError.code by the service layer.
    """
    NOT_CONFIGURED = "NOT_CONFIGURED"                       # Used before configure()
    GENERATION_FAILED = "GENERATION_FAILED"                 # generate() raised
    INVALID_RESULT = "INVALID_RESULT"                       # generate() returned None
    TIMEOUT = "TIMEOUT"                                     # Exceeded timeout_ms
    MISSING_SESSION_DEFAULTS = "MISSING_SESSION_DEFAULTS"   # preload() on unknown session
    NO_EVENT_LOOP = "NO_EVENT_LOOP"                         # preload() outside a running loop


class TTSCacheError(Exception):
    """
    Base exception for tts-cache errors.

    The public API reports failures through return values; these
    exceptions exist for callers that opt in via
    GenerationResult.raise_for_error(), and for internal guards.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode class.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.GENERATION_FAILED, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a serializable error payload."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotConfiguredError(TTSCacheError):
    """Raised internally when an operation runs before configure()."""
    def __init__(self, message: str = "TTSCacheService is not configured", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NOT_CONFIGURED, details)


class GenerationError(TTSCacheError):
    """Generation raised, returned None, or could not run."""
    pass


class GenerationTimeoutError(TTSCacheError):
    """Generation exceeded the configured timeout."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.TIMEOUT, details)


@dataclass(frozen=True)
class GenerationResult:
    """
    Outcome of one generation request.

    Attributes:
        fingerprint: Cache key of the request.
        artifact: Generated artifact when ok, else None.
        error: Error code from ErrorCode when not ok.
        seconds: Time spent producing this result (0.0 for cache hits).
    """
    fingerprint: str
    artifact: Any = None
    error: Optional[str] = None
    seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, fingerprint: str, artifact: Any, seconds: float = 0.0) -> "GenerationResult":
        return cls(fingerprint=fingerprint, artifact=artifact, seconds=seconds)

    @classmethod
    def failure(cls, fingerprint: str, error: str, seconds: float = 0.0) -> "GenerationResult":
        return cls(fingerprint=fingerprint, error=error, seconds=seconds)

    def raise_for_error(self) -> Any:
        """
        Return the artifact, or raise the exception matching the error code.

        Raises:
            GenerationTimeoutError: error is TIMEOUT.
            NotConfiguredError: error is NOT_CONFIGURED.
            GenerationError: any other error.
        """
        if self.error is None:
            return self.artifact
        details = {"key": self.fingerprint[:8]}
        if self.error == ErrorCode.TIMEOUT:
            raise GenerationTimeoutError("generation timed out", details)
        if self.error == ErrorCode.NOT_CONFIGURED:
            raise NotConfiguredError(details=details)
        raise GenerationError(f"generation failed: {self.error}", self.error, details)


class RequestDriver:
    """
    Issues generation calls and routes their outcome into the cache.

    Attributes:
        timeout_s: Per-call timeout in seconds.
    """

    def __init__(
        self,
        generate: GenerateFn,
        cache: ArtifactCache,
        sequencer: SequenceCoordinator,
        timeout_s: float = Defaults.GENERATION_TIMEOUT_MS / 1000.0,
        fallback_entry_size: int = Defaults.CACHE_FALLBACK_ENTRY_SIZE,
        metrics: Optional[CacheMetrics] = None,
        text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS,
    ):
        self._generate = generate
        self._cache = cache
        self._sequencer = sequencer
        self.timeout_s = float(timeout_s)
        self._fallback_entry_size = int(fallback_entry_size)
        self._metrics = metrics
        self._text_preview_chars = int(text_preview_chars)

        # fingerprint -> task still producing its entry
        self._pending: Dict[str, "asyncio.Task[GenerationResult]"] = {}
        # timed-out calls that are still running; held so they aren't collected
        self._abandoned: Set["asyncio.Future[Any]"] = set()

    # ─────────────────────────────────────────────────────────────────────────
    # Tracking
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    def reconfigure(self, generate: GenerateFn, timeout_s: float) -> None:
        """Swap the generation function and timeout; calls already running are unaffected."""
        self._generate = generate
        self.timeout_s = float(timeout_s)

    def forget(self, fp: str) -> None:
        """Stop tracking the in-flight handle for a removed entry."""
        self._pending.pop(fp, None)

    def clear(self) -> None:
        self._pending.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Public operations
    # ─────────────────────────────────────────────────────────────────────────

    def preload(self, service: str, language: str, voice: str, text: str, session_id: str) -> Optional[str]:
        """
        Start generation in the background unless the cache already has the key.

        Must be called with a running event loop. Returns immediately; the
        outcome lands in the cache when the call settles.

        Returns:
            The fingerprint, or None when no event loop is running.
        """
        fp = make_fingerprint(service, language, voice, text)

        if fp in self._cache:
            # Existing work is reused; the session still records its position
            self._sequencer.enqueue(session_id, fp)
            debug(_LOG, "preload_skip", key=fp[:8], status=self._cache.lookup(fp).status.value)
            return fp

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            warn(_LOG, "no_event_loop", op="preload", key=fp[:8])
            return None

        self._start(fp, service, language, voice, text)
        self._sequencer.enqueue(session_id, fp)
        return fp

    async def request(self, service: str, language: str, voice: str, text: str, session_id: str) -> GenerationResult:
        """
        Fetch one artifact, respecting the session's issue order.

        Records the session defaults, makes sure the fingerprint is tracked
        (starting generation if needed), waits for every earlier item of
        the session to settle, then resolves this item.

        Returns:
            GenerationResult; never raises for generation failures.
        """
        self._sequencer.record_defaults(session_id, service, language, voice)
        fp = make_fingerprint(service, language, voice, text)

        if not self._sequencer.is_enqueued(session_id, fp):
            self.preload(service, language, voice, text, session_id)

        await self._sequencer.barrier(session_id, fp)

        entry = self._cache.lookup(fp)
        if entry is not None and entry.status is EntryStatus.COMPLETED and entry.artifact is not None:
            self._record_lookup("hit", fp)
            return GenerationResult.success(fp, entry.artifact)

        if entry is not None and entry.in_flight is not None:
            self._record_lookup("hit" if entry.is_terminal else "wait", fp)
            return await self._await_handle(fp, entry.in_flight)

        if entry is not None and entry.status is EntryStatus.FAILED:
            # A failure recorded without a handle; no automatic retry
            self._record_lookup("hit", fp)
            return GenerationResult.failure(fp, entry.error or ErrorCode.GENERATION_FAILED)

        # Evicted while waiting: generate again through the regular path
        self._record_lookup("miss", fp)
        handle = self._start(fp, service, language, voice, text)
        self._sequencer.enqueue(session_id, fp)
        return await self._await_handle(fp, handle)

    # ─────────────────────────────────────────────────────────────────────────
    # Generation path
    # ─────────────────────────────────────────────────────────────────────────

    def _start(self, fp: str, service: str, language: str, voice: str, text: str) -> "asyncio.Task[GenerationResult]":
        task = asyncio.ensure_future(self._run(fp, service, language, voice, text))
        self._pending[fp] = task
        self._cache.put(fp, CacheEntry.pending(task))
        info(
            _LOG, "generation_started",
            key=fp[:8],
            service=service,
            language=language,
            voice=voice,
            text=text[: self._text_preview_chars],
        )
        return task

    async def _run(self, fp: str, service: str, language: str, voice: str, text: str) -> GenerationResult:
        with timeit("generation") as t:
            result = await self._call_with_timeout(fp, service, language, voice, text)
        result = GenerationResult(fp, result.artifact, result.error, round(t.seconds, 6))
        self._settle(fp, result, asyncio.current_task())
        return result

    async def _call_with_timeout(self, fp: str, service: str, language: str, voice: str, text: str) -> GenerationResult:
        call = asyncio.ensure_future(self._invoke(service, language, voice, text))

        done, _ = await asyncio.wait({call}, timeout=self.timeout_s)
        if call not in done:
            self._abandon(fp, call)
            warn(_LOG, "timeout", key=fp[:8], timeout_s=self.timeout_s)
            return GenerationResult.failure(fp, ErrorCode.TIMEOUT)

        if call.cancelled():
            fail(_LOG, "generation_failed", key=fp[:8], error="cancelled")
            return GenerationResult.failure(fp, ErrorCode.GENERATION_FAILED)

        exc = call.exception()
        if exc is not None:
            fail(_LOG, "generation_failed", key=fp[:8], error=repr(exc))
            return GenerationResult.failure(fp, ErrorCode.GENERATION_FAILED)

        artifact = call.result()
        if artifact is None:
            fail(_LOG, "generation_failed", key=fp[:8], error=ErrorCode.INVALID_RESULT)
            return GenerationResult.failure(fp, ErrorCode.INVALID_RESULT)

        return GenerationResult.success(fp, artifact)

    async def _invoke(self, service: str, language: str, voice: str, text: str) -> Any:
        outcome = self._generate(service, language, voice, text)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    def _abandon(self, fp: str, call: "asyncio.Future[Any]") -> None:
        self._abandoned.add(call)

        def _on_done(fut: "asyncio.Future[Any]") -> None:
            self._abandoned.discard(fut)
            # Retrieve the outcome so asyncio doesn't report it as unhandled
            outcome = "cancelled" if fut.cancelled() else ("error" if fut.exception() else "ok")
            verbose(_LOG, "abandoned_settled", key=fp[:8], outcome=outcome)

        call.add_done_callback(_on_done)

    def _settle(self, fp: str, result: GenerationResult, task: Optional["asyncio.Task[Any]"]) -> None:
        if self._pending.get(fp) is task:
            del self._pending[fp]

        current = self._cache.lookup(fp)
        if current is None or current.in_flight is not task:
            # Entry removed (eviction, evict(), reset) or replaced by a newer call
            verbose(_LOG, "stale_settlement", key=fp[:8], ok=result.ok)
            return

        if result.ok:
            size = estimate_size(result.artifact, fallback=self._fallback_entry_size)
            self._cache.put(fp, CacheEntry.completed(result.artifact, size, task))
            info(
                _LOG, "generation_completed",
                key=fp[:8],
                status=EntryStatus.COMPLETED.value,
                size=size,
                seconds=result.seconds,
            )
            self._record_generation("completed", result.seconds)
        else:
            self._cache.put(fp, CacheEntry.failed(result.error or ErrorCode.GENERATION_FAILED, task))
            info(
                _LOG, "generation_settled",
                key=fp[:8],
                status=EntryStatus.FAILED.value,
                code=result.error,
                seconds=result.seconds,
            )
            self._record_generation("timeout" if result.error == ErrorCode.TIMEOUT else "failed", result.seconds)

    async def _await_handle(self, fp: str, handle: "asyncio.Task[GenerationResult]") -> GenerationResult:
        # shield: a cancelled caller must not cancel work other waiters share
        try:
            return await asyncio.shield(handle)
        except asyncio.CancelledError:
            if handle.cancelled():
                return GenerationResult.failure(fp, ErrorCode.GENERATION_FAILED)
            raise

    # ─────────────────────────────────────────────────────────────────────────
    # Metrics
    # ─────────────────────────────────────────────────────────────────────────

    def _record_lookup(self, result: str, fp: str) -> None:
        debug(_LOG, result, key=fp[:8])
        if self._metrics is not None:
            self._metrics.record_lookup(result)

    def _record_generation(self, status: str, seconds: float) -> None:
        if self._metrics is not None:
            self._metrics.record_generation(status, seconds)
