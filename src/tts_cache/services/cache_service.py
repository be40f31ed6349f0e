"""
TTSCacheService - the public surface of tts-cache.

One TTSCacheService owns one artifact cache, one sequence coordinator
and one request driver, wired together:

    preload / request ──> RequestDriver ──> generate(service, language, voice, text)
                              │
                              ├──> ArtifactCache (entries, size, LRU eviction)
                              └──> SequenceCoordinator (session defaults, order)

    ArtifactCache eviction ──> SequenceCoordinator.forget + RequestDriver.forget

Lifecycle:
    service = TTSCacheService()               # unconfigured: every call is a safe no-op
    service.configure(generate_fn, ...)       # limits + timeout, state kept on reconfigure
    ...                                       # preload / request / stats
    service.reset()                           # drop all state, keep configuration

Error Handling:
    Nothing raises at runtime. Calls made before configure() log a
    warning and return False/None/empty stats. Generation failures and
    timeouts are stored as FAILED entries and surface as None from
    request() or as a failed GenerationResult from request_result().
    Only wiring mistakes raise: ConfigValidationError for bad limits and
    TypeError for a non-callable generate_fn.

Process-wide use:
    get_service() returns a lazily created module-level instance for
    hosts that want one shared cache; tests build their own instances.

Example:
    >>> async def generate(service, language, voice, text):
    ...     return {"audio": f"<{text}>"}
    >>>
    >>> async def main():
    ...     svc = TTSCacheService()
    ...     svc.configure(generate, max_cache_entries=50, timeout_ms=2000)
    ...     svc.set_session_defaults("s1", "aws", "en-US", "female")
    ...     svc.preload("Hello", "s1")
    ...     svc.preload("World", "s1")
    ...     first = await svc.request("aws", "en-US", "female", "Hello", "s1")
    ...     second = await svc.request("aws", "en-US", "female", "World", "s1")
    ...     return first, second
"""
from __future__ import annotations

import dataclasses
import os
import threading
from typing import Any, Dict, List, Optional

from tts_cache.core.config import (
    CacheConfig,
    CacheServiceConfig,
    Defaults,
    GenerationConfig,
    Settings,
)
from tts_cache.core.logging import configure_logging, debug, get_logger, info, warn
from tts_cache.core.metrics import CacheMetrics
from tts_cache.tts.cache import ArtifactCache
from tts_cache.tts.driver import ErrorCode, GenerateFn, GenerationResult, RequestDriver
from tts_cache.tts.keys import make_fingerprint
from tts_cache.tts.sequencer import SequenceCoordinator

_LOG = get_logger("tts-cache.service")


class TTSCacheService:
    """
    Result cache and per-session sequencer for an async generation function.

    The cache, sequences and pending-handle maps are private; they are
    only changed through the methods below, all of which run without
    suspending except request() and request_result().
    """

    def __init__(self, config: Optional[CacheServiceConfig] = None):
        """
        Build an unconfigured service.

        Args:
            config: Optional validated configuration; supplies limits,
                timeout, metrics switch and log preview length. Limits
                and timeout only take effect once configure() provides
                the generation function.
        """
        self._config = config or CacheServiceConfig()
        self._metrics = CacheMetrics(enabled=self._config.metrics.enabled)

        self._cache = ArtifactCache(
            max_entries=self._config.cache.max_entries,
            max_size_bytes=self._config.cache.max_size_bytes,
            metrics=self._metrics,
        )
        self._sequencer = SequenceCoordinator(self._cache, metrics=self._metrics)
        self._driver: Optional[RequestDriver] = None

        self._cache.add_eviction_listener(self._on_removed)

    @classmethod
    def from_settings(cls, settings: Settings, generate_fn: GenerateFn) -> "TTSCacheService":
        """
        Build and configure a service from loaded settings.

        Raises:
            ConfigValidationError: If the settings fail validation.
        """
        config = CacheServiceConfig.from_settings(settings)

        # TTS_CACHE_LOG_LEVEL still outranks the file
        logging_raw = settings.raw.get("logging", {}) or {}
        if "level" in logging_raw and not os.getenv("TTS_CACHE_LOG_LEVEL"):
            configure_logging(config.logging.level, force=True)

        service = cls(config)
        service.configure(
            generate_fn,
            max_cache_size_bytes=config.cache.max_size_bytes,
            max_cache_entries=config.cache.max_entries,
            timeout_ms=config.generation.timeout_ms,
        )
        return service

    # =========================================================================
    # Configuration and lifecycle
    # =========================================================================

    def configure(
        self,
        generate_fn: GenerateFn,
        max_cache_size_bytes: int = Defaults.CACHE_MAX_SIZE_BYTES,
        max_cache_entries: int = Defaults.CACHE_MAX_ENTRIES,
        timeout_ms: int = Defaults.GENERATION_TIMEOUT_MS,
    ) -> None:
        """
        Provide the generation function and limits.

        May be called again; existing entries and sessions are kept and
        the new bounds are enforced immediately.

        Raises:
            TypeError: generate_fn is not callable.
            ConfigValidationError: a limit or the timeout is not positive.
        """
        if not callable(generate_fn):
            raise TypeError(f"generate_fn must be callable, got {type(generate_fn).__name__}")

        cache_cfg = CacheConfig(
            max_size_bytes=int(max_cache_size_bytes),
            max_entries=int(max_cache_entries),
            fallback_entry_size=self._config.cache.fallback_entry_size,
        )
        generation_cfg = GenerationConfig(timeout_ms=int(timeout_ms))
        CacheServiceConfig.validate_cache(cache_cfg)
        CacheServiceConfig.validate_generation(generation_cfg)
        self._config = dataclasses.replace(self._config, cache=cache_cfg, generation=generation_cfg)

        if self._driver is None:
            self._driver = RequestDriver(
                generate_fn,
                self._cache,
                self._sequencer,
                timeout_s=generation_cfg.timeout_s,
                fallback_entry_size=cache_cfg.fallback_entry_size,
                metrics=self._metrics,
                text_preview_chars=self._config.logging.text_preview_chars,
            )
        else:
            self._driver.reconfigure(generate_fn, generation_cfg.timeout_s)

        self._cache.resize(cache_cfg.max_entries, cache_cfg.max_size_bytes)

        info(
            _LOG, "configured",
            max_entries=cache_cfg.max_entries,
            max_size=cache_cfg.max_size_bytes,
            timeout_ms=generation_cfg.timeout_ms,
        )

    @property
    def is_configured(self) -> bool:
        return self._driver is not None

    @property
    def config(self) -> CacheServiceConfig:
        return self._config

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    def reset(self) -> None:
        """
        Drop all entries, sessions and pending-handle tracking.

        Configuration is kept. Calls still running when reset() happens
        finish in the background and their results are discarded.
        """
        cleared = self._cache.clear()
        self._sequencer.clear()
        if self._driver is not None:
            self._driver.clear()
        info(_LOG, "reset", cleared=cleared)

    def _ready(self, op: str) -> bool:
        if self._driver is None:
            warn(_LOG, "not_configured", op=op, code=ErrorCode.NOT_CONFIGURED)
            return False
        return True

    def _on_removed(self, fp: str) -> None:
        self._sequencer.forget(fp)
        if self._driver is not None:
            self._driver.forget(fp)

    # =========================================================================
    # Queries
    # =========================================================================

    def stats(self) -> Dict[str, int]:
        """
        Snapshot of cache occupancy.

        Returns:
            entry_count, max_entries, current_size, max_size, plus pending
            and evictions counters. All zeros before configure().
        """
        if not self._ready("stats"):
            return {
                "entry_count": 0,
                "max_entries": 0,
                "current_size": 0,
                "max_size": 0,
                "pending": 0,
                "evictions": 0,
            }
        return self._cache.stats()

    def is_completed(self, service: str, language: str, voice: str, text: str) -> bool:
        if not self._ready("is_completed"):
            return False
        return self._cache.is_completed(make_fingerprint(service, language, voice, text))

    def is_pending(self, service: str, language: str, voice: str, text: str) -> bool:
        if not self._ready("is_pending"):
            return False
        return self._cache.is_pending(make_fingerprint(service, language, voice, text))

    def session_sequence(self, session_id: str) -> List[str]:
        """Fingerprints issued by a session, oldest first."""
        if not self._ready("session_sequence"):
            return []
        return self._sequencer.sequence(session_id)

    # =========================================================================
    # Operations
    # =========================================================================

    def set_session_defaults(self, session_id: str, service: str, language: str, voice: str) -> None:
        """Record the parameters preload() uses for this session (latest wins)."""
        if not self._ready("set_session_defaults"):
            return
        self._sequencer.record_defaults(session_id, service, language, voice)
        debug(_LOG, "session_defaults", session=session_id, service=service, language=language, voice=voice)

    def preload(self, text: str, session_id: str) -> None:
        """
        Start generating text with the session's defaults, without waiting.

        Does nothing (with a warning) when the session has no defaults or
        when called outside a running event loop.
        """
        if not self._ready("preload"):
            return

        defaults = self._sequencer.defaults_for(session_id)
        if defaults is None:
            warn(_LOG, "missing_session_defaults", session=session_id, code=ErrorCode.MISSING_SESSION_DEFAULTS)
            return

        self._driver.preload(defaults.service, defaults.language, defaults.voice, text, session_id)

    async def request_result(
        self,
        service: str,
        language: str,
        voice: str,
        text: str,
        session_id: str,
    ) -> GenerationResult:
        """
        Fetch an artifact in session order, as an explicit result.

        Also records (service, language, voice) as the session defaults.

        Returns:
            GenerationResult with the artifact, or with an error code
            (NOT_CONFIGURED, GENERATION_FAILED, INVALID_RESULT, TIMEOUT).
        """
        if not self._ready("request"):
            return GenerationResult.failure(
                make_fingerprint(service, language, voice, text),
                ErrorCode.NOT_CONFIGURED,
            )
        return await self._driver.request(service, language, voice, text, session_id)

    async def request(
        self,
        service: str,
        language: str,
        voice: str,
        text: str,
        session_id: str,
    ) -> Optional[Any]:
        """
        Fetch an artifact in session order.

        Waits until every item issued earlier on this session has settled,
        then returns this item's artifact, or None if it failed or timed out.
        """
        result = await self.request_result(service, language, voice, text, session_id)
        return result.artifact if result.ok else None

    def evict(self, service: str, language: str, voice: str, text: str) -> bool:
        """
        Remove one entry so the next preload/request generates it again.

        This is the way to retry a FAILED entry. Removing a PENDING entry
        abandons its call: the result is discarded when it settles.

        Returns:
            True if an entry was removed.
        """
        if not self._ready("evict"):
            return False
        fp = make_fingerprint(service, language, voice, text)
        removed = self._cache.remove(fp)
        if removed:
            info(_LOG, "evicted_explicitly", key=fp[:8])
        return removed


# =============================================================================
# Global Service Instance
# =============================================================================

_service: Optional[TTSCacheService] = None
_service_lock = threading.Lock()


def get_service() -> TTSCacheService:
    """
    Get or create the process-wide TTSCacheService.

    The instance starts unconfigured; the host calls configure() once
    at startup.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = TTSCacheService()
    return _service


def reset_service() -> None:
    """
    Drop the process-wide instance (after clearing its state).

    Used primarily for testing to ensure clean state between tests.
    """
    global _service
    with _service_lock:
        if _service is not None:
            _service.reset()
        _service = None
