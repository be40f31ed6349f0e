"""
Prometheus Metrics for the Artifact Cache.

Metrics Exposed:
    tts_cache_lookups_total                - Counter of request lookups by result (hit/wait/miss)
    tts_cache_generations_total            - Counter of settled generation calls by status
    tts_cache_generation_duration_seconds  - Histogram of generation latency
    tts_cache_evictions_total              - Counter of entries removed by LRU eviction
    tts_cache_entries                      - Gauge of entries currently cached
    tts_cache_size_bytes                   - Gauge of aggregate artifact size
    tts_cache_barrier_wait_seconds         - Histogram of time spent in the ordering barrier

Each CacheMetrics instance owns its own CollectorRegistry, so several
services (or several tests) in one process never collide on metric names.

Usage:
    metrics = CacheMetrics()
    metrics.record_lookup("hit")
    metrics.record_generation("completed", 0.21)
    metrics.set_cache_state(entries=12, size_bytes=48_000)

    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class CacheMetrics:
    """
    Metrics collection for one TTSCacheService.

    When constructed with enabled=False every recording method is a
    no-op and get_metrics_response() returns a short placeholder.

    Attributes:
        enabled: Whether metrics collection is active.
    """

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self._registry = CollectorRegistry()

        if self._enabled:
            self._setup_metrics()

    def _setup_metrics(self) -> None:
        self._lookups = Counter(
            "tts_cache_lookups_total",
            "Cache lookups by result",
            ["result"],
            registry=self._registry,
        )

        self._generations = Counter(
            "tts_cache_generations_total",
            "Settled generation calls by terminal status",
            ["status"],
            registry=self._registry,
        )

        self._generation_duration = Histogram(
            "tts_cache_generation_duration_seconds",
            "Generation call duration in seconds",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )

        self._evictions = Counter(
            "tts_cache_evictions_total",
            "Entries removed by LRU eviction",
            registry=self._registry,
        )

        self._entries = Gauge(
            "tts_cache_entries",
            "Entries currently cached (any status)",
            registry=self._registry,
        )

        self._size_bytes = Gauge(
            "tts_cache_size_bytes",
            "Aggregate estimated size of cached artifacts",
            registry=self._registry,
        )

        self._barrier_wait = Histogram(
            "tts_cache_barrier_wait_seconds",
            "Time a request spent waiting for earlier items of its session",
            buckets=(0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
            registry=self._registry,
        )

    @property
    def enabled(self) -> bool:
        """Whether metrics collection is enabled."""
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_lookup(self, result: str) -> None:
        """Record a lookup result ("hit", "wait" for in-flight, or "miss")."""
        if not self._enabled:
            return
        self._lookups.labels(result=result).inc()

    def record_generation(self, status: str, duration: float) -> None:
        """
        Record a settled generation call.

        Args:
            status: "completed", "failed" or "timeout"
            duration: Seconds from start to settlement (or timeout)
        """
        if not self._enabled:
            return
        self._generations.labels(status=status).inc()
        self._generation_duration.observe(duration)

    def record_eviction(self, count: int = 1) -> None:
        if not self._enabled:
            return
        self._evictions.inc(count)

    def set_cache_state(self, entries: int, size_bytes: int) -> None:
        """Update the entry-count and size gauges."""
        if not self._enabled:
            return
        self._entries.set(entries)
        self._size_bytes.set(size_bytes)

    def record_barrier_wait(self, seconds: float) -> None:
        if not self._enabled:
            return
        self._barrier_wait.observe(seconds)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        if not self._enabled:
            return (
                b"# Metrics disabled (metrics.enabled: false)\n",
                "text/plain; charset=utf-8",
            )

        return (generate_latest(self._registry), CONTENT_TYPE_LATEST)
