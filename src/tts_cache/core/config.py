"""
Configuration Management for tts-cache.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (TTS_CACHE_TIMEOUT_MS, TTS_CACHE_MAX_ENTRIES, ...)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    cache:
      max_entries: 100
      max_size_bytes: 10485760

    generation:
      timeout_ms: 5000

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    All default values are defined here to ensure consistency across
    the codebase. These values are used when no override is provided
    via YAML config, environment variables or configure() arguments.

    Sections:
        - Cache: Entry count and size bounds
        - Generation: Timeout applied to every generation call
        - Logging: Log level and formatting
        - Metrics: Prometheus collection
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Cache Settings
    # ─────────────────────────────────────────────────────────────────────────
    CACHE_MAX_SIZE_BYTES = 10 * 1024 * 1024  # Aggregate artifact size (10 MB)
    CACHE_MAX_ENTRIES = 100                  # Maximum cached entries
    CACHE_FALLBACK_ENTRY_SIZE = 1000         # Size used when an artifact can't be measured

    # ─────────────────────────────────────────────────────────────────────────
    # Generation
    # ─────────────────────────────────────────────────────────────────────────
    GENERATION_TIMEOUT_MS = 5000             # Per-call timeout

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 40          # Characters to show in text preview
    LOGGING_LEVEL = 2                        # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG

    # ─────────────────────────────────────────────────────────────────────────
    # Metrics
    # ─────────────────────────────────────────────────────────────────────────
    METRICS_ENABLED = True                   # Collect Prometheus metrics


@dataclass
class CacheConfig:
    """
    In-memory artifact cache configuration.

    Eviction starts as soon as either bound is exceeded.
    """
    max_size_bytes: int = Defaults.CACHE_MAX_SIZE_BYTES
    max_entries: int = Defaults.CACHE_MAX_ENTRIES
    fallback_entry_size: int = Defaults.CACHE_FALLBACK_ENTRY_SIZE


@dataclass
class GenerationConfig:
    """
    Generation call configuration.

    Calls that exceed timeout_ms are recorded as failed and abandoned.
    """
    timeout_ms: int = Defaults.GENERATION_TIMEOUT_MS

    @property
    def timeout_s(self) -> float:
        """Timeout in seconds, as asyncio expects it."""
        return self.timeout_ms / 1000.0


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Generation lifecycle, cache status (default)
        3 = VERBOSE: Per-call timing, barrier waits, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class MetricsConfig:
    """Prometheus metrics configuration."""
    enabled: bool = Defaults.METRICS_ENABLED


@dataclass
class CacheServiceConfig:
    """
    Validated configuration for TTSCacheService.

    This is the main configuration object created from Settings.
    It validates all values and provides typed access to configuration.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = CacheServiceConfig.from_settings(settings)
        print(config.cache.max_entries)  # Typed access
    """
    cache: CacheConfig = field(default_factory=CacheConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CacheServiceConfig":
        """
        Create CacheServiceConfig from Settings with validation.

        Reads raw configuration dictionary, applies defaults for missing
        values, validates constraints, and returns typed configuration.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated CacheServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Cache configuration
        # ─────────────────────────────────────────────────────────────────────
        cache_raw = raw.get("cache", {}) or {}
        cache = CacheConfig(
            max_size_bytes=int(cache_raw.get("max_size_bytes", Defaults.CACHE_MAX_SIZE_BYTES)),
            max_entries=int(cache_raw.get("max_entries", Defaults.CACHE_MAX_ENTRIES)),
            fallback_entry_size=int(cache_raw.get("fallback_entry_size", Defaults.CACHE_FALLBACK_ENTRY_SIZE)),
        )
        cls.validate_cache(cache)

        # ─────────────────────────────────────────────────────────────────────
        # Generation configuration
        # ─────────────────────────────────────────────────────────────────────
        generation_raw = raw.get("generation", {}) or {}
        generation = GenerationConfig(
            timeout_ms=int(generation_raw.get("timeout_ms", Defaults.GENERATION_TIMEOUT_MS)),
        )
        cls.validate_generation(generation)

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        # ─────────────────────────────────────────────────────────────────────
        # Metrics configuration (with environment variable override)
        # ─────────────────────────────────────────────────────────────────────
        metrics_raw = raw.get("metrics", {}) or {}
        metrics_enabled = os.getenv("TTS_CACHE_METRICS_ENABLED")
        metrics_cfg = MetricsConfig(
            enabled=metrics_enabled != "0" if metrics_enabled is not None
                else bool(metrics_raw.get("enabled", Defaults.METRICS_ENABLED)),
        )

        return cls(
            cache=cache,
            generation=generation,
            logging=logging_cfg,
            metrics=metrics_cfg,
        )

    @classmethod
    def validate_cache(cls, cache: CacheConfig) -> None:
        """Validate cache bounds (shared with TTSCacheService.configure)."""
        cls._validate_positive("cache.max_size_bytes", cache.max_size_bytes)
        cls._validate_positive("cache.max_entries", cache.max_entries)
        cls._validate_non_negative("cache.fallback_entry_size", cache.fallback_entry_size)

    @classmethod
    def validate_generation(cls, generation: GenerationConfig) -> None:
        """Validate generation settings (shared with TTSCacheService.configure)."""
        cls._validate_positive("generation.timeout_ms", generation.timeout_ms)

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get validated CacheServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def timeout_ms(self) -> int:
        """Get the generation timeout in milliseconds."""
        return int((self.raw.get("generation", {}) or {}).get("timeout_ms", Defaults.GENERATION_TIMEOUT_MS))

    @property
    def max_entries(self) -> int:
        """Get the cache entry bound."""
        return int((self.raw.get("cache", {}) or {}).get("max_entries", Defaults.CACHE_MAX_ENTRIES))

    @property
    def max_size_bytes(self) -> int:
        """Get the cache size bound."""
        return int((self.raw.get("cache", {}) or {}).get("max_size_bytes", Defaults.CACHE_MAX_SIZE_BYTES))

    def get_service_config(self) -> CacheServiceConfig:
        """
        Get validated CacheServiceConfig from these settings.

        Returns:
            Validated configuration object.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return CacheServiceConfig.from_settings(self)


# Environment variable -> (section, key) overrides applied by load_settings()
_ENV_OVERRIDES = {
    "TTS_CACHE_TIMEOUT_MS": ("generation", "timeout_ms"),
    "TTS_CACHE_MAX_ENTRIES": ("cache", "max_entries"),
    "TTS_CACHE_MAX_SIZE_BYTES": ("cache", "max_size_bytes"),
}


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - TTS_CACHE_TIMEOUT_MS: Override generation.timeout_ms
        - TTS_CACHE_MAX_ENTRIES: Override cache.max_entries
        - TTS_CACHE_MAX_SIZE_BYTES: Override cache.max_size_bytes

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            if not isinstance(raw.get(section), dict):
                raw[section] = {}
            raw[section][key] = int(value)

    return Settings(raw=raw)
