"""
Tests for configuration validation and defaults.

Tests cover:
- CacheServiceConfig.from_settings() - all sections
- Defaults class values
- ConfigValidationError on invalid values
- Range validation (logging level 1-4)
- String log level coercion ("DEBUG" -> 4)
- Missing sections use defaults
- Settings properties
- load_settings() with YAML files and environment overrides
"""

import pytest

from tts_cache.core.config import (
    CacheConfig,
    CacheServiceConfig,
    ConfigValidationError,
    Defaults,
    GenerationConfig,
    Settings,
    load_settings,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_cache_defaults(self):
        """Defaults should have correct cache values."""
        assert Defaults.CACHE_MAX_SIZE_BYTES == 10 * 1024 * 1024
        assert Defaults.CACHE_MAX_ENTRIES == 100
        assert Defaults.CACHE_FALLBACK_ENTRY_SIZE == 1000

    def test_generation_defaults(self):
        assert Defaults.GENERATION_TIMEOUT_MS == 5000

    def test_logging_defaults(self):
        """Defaults should have correct logging values."""
        assert Defaults.LOGGING_TEXT_PREVIEW_CHARS == 40
        assert Defaults.LOGGING_LEVEL == 2

    def test_metrics_defaults(self):
        assert Defaults.METRICS_ENABLED is True


class TestCacheServiceConfigFromSettings:
    """Tests for CacheServiceConfig.from_settings()."""

    def test_from_settings_with_empty_raw(self):
        """from_settings should use defaults for empty raw dict."""
        config = CacheServiceConfig.from_settings(Settings(raw={}))

        assert config.cache.max_entries == Defaults.CACHE_MAX_ENTRIES
        assert config.cache.max_size_bytes == Defaults.CACHE_MAX_SIZE_BYTES
        assert config.cache.fallback_entry_size == Defaults.CACHE_FALLBACK_ENTRY_SIZE
        assert config.generation.timeout_ms == Defaults.GENERATION_TIMEOUT_MS
        assert config.logging.level == Defaults.LOGGING_LEVEL

    def test_from_settings_with_cache_section(self):
        settings = Settings(raw={
            "cache": {
                "max_entries": 3,
                "max_size_bytes": 2048,
                "fallback_entry_size": 10,
            }
        })
        config = CacheServiceConfig.from_settings(settings)

        assert config.cache.max_entries == 3
        assert config.cache.max_size_bytes == 2048
        assert config.cache.fallback_entry_size == 10

    def test_from_settings_with_generation_section(self):
        config = CacheServiceConfig.from_settings(Settings(raw={"generation": {"timeout_ms": 100}}))

        assert config.generation.timeout_ms == 100
        assert config.generation.timeout_s == pytest.approx(0.1)

    def test_null_section_uses_defaults(self):
        """A section present but empty in YAML (None) should not crash."""
        config = CacheServiceConfig.from_settings(Settings(raw={"cache": None, "generation": None}))

        assert config.cache.max_entries == Defaults.CACHE_MAX_ENTRIES
        assert config.generation.timeout_ms == Defaults.GENERATION_TIMEOUT_MS

    def test_string_log_level(self):
        """String log levels should be coerced to numbers."""
        config = CacheServiceConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4

        config = CacheServiceConfig.from_settings(Settings(raw={"logging": {"level": "verbose"}}))
        assert config.logging.level == 3

    def test_metrics_env_override(self, monkeypatch):
        monkeypatch.setenv("TTS_CACHE_METRICS_ENABLED", "0")
        config = CacheServiceConfig.from_settings(Settings(raw={"metrics": {"enabled": True}}))
        assert config.metrics.enabled is False

    def test_metrics_from_yaml(self, monkeypatch):
        monkeypatch.delenv("TTS_CACHE_METRICS_ENABLED", raising=False)
        config = CacheServiceConfig.from_settings(Settings(raw={"metrics": {"enabled": False}}))
        assert config.metrics.enabled is False


class TestValidation:
    """ConfigValidationError on out-of-range values."""

    @pytest.mark.parametrize("key", ["max_entries", "max_size_bytes"])
    def test_zero_cache_bound_rejected(self, key):
        with pytest.raises(ConfigValidationError, match=key):
            CacheServiceConfig.from_settings(Settings(raw={"cache": {key: 0}}))

    def test_negative_cache_bound_rejected(self):
        with pytest.raises(ConfigValidationError, match="must be positive"):
            CacheServiceConfig.from_settings(Settings(raw={"cache": {"max_size_bytes": -1}}))

    def test_negative_fallback_size_rejected(self):
        with pytest.raises(ConfigValidationError, match="non-negative"):
            CacheServiceConfig.from_settings(Settings(raw={"cache": {"fallback_entry_size": -5}}))

    def test_zero_timeout_rejected(self):
        with pytest.raises(ConfigValidationError, match="generation.timeout_ms"):
            CacheServiceConfig.from_settings(Settings(raw={"generation": {"timeout_ms": 0}}))

    def test_logging_level_out_of_range(self):
        with pytest.raises(ConfigValidationError, match="between 1 and 4"):
            CacheServiceConfig.from_settings(Settings(raw={"logging": {"level": 7}}))

    def test_validate_helpers_accept_valid_values(self):
        CacheServiceConfig.validate_cache(CacheConfig(max_size_bytes=1, max_entries=1, fallback_entry_size=0))
        CacheServiceConfig.validate_generation(GenerationConfig(timeout_ms=1))


class TestSettings:
    """Tests for Settings properties and load_settings()."""

    def test_properties_defaults(self):
        settings = Settings(raw={})
        assert settings.timeout_ms == Defaults.GENERATION_TIMEOUT_MS
        assert settings.max_entries == Defaults.CACHE_MAX_ENTRIES
        assert settings.max_size_bytes == Defaults.CACHE_MAX_SIZE_BYTES

    def test_get_service_config(self):
        config = Settings(raw={"cache": {"max_entries": 7}}).get_service_config()
        assert isinstance(config, CacheServiceConfig)
        assert config.cache.max_entries == 7

    def test_load_settings_from_yaml(self, tmp_path, monkeypatch):
        for name in ("TTS_CACHE_TIMEOUT_MS", "TTS_CACHE_MAX_ENTRIES", "TTS_CACHE_MAX_SIZE_BYTES"):
            monkeypatch.delenv(name, raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text(
            "cache:\n  max_entries: 3\ngeneration:\n  timeout_ms: 250\n",
            encoding="utf-8",
        )

        settings = load_settings(str(path))

        assert settings.max_entries == 3
        assert settings.timeout_ms == 250

    def test_load_settings_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("cache:\n  max_entries: 3\n", encoding="utf-8")
        monkeypatch.setenv("TTS_CACHE_MAX_ENTRIES", "9")
        monkeypatch.setenv("TTS_CACHE_TIMEOUT_MS", "120")
        monkeypatch.setenv("TTS_CACHE_MAX_SIZE_BYTES", "4096")

        settings = load_settings(str(path))

        assert settings.max_entries == 9
        assert settings.timeout_ms == 120
        assert settings.max_size_bytes == 4096

    def test_load_settings_empty_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TTS_CACHE_MAX_ENTRIES", raising=False)
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        settings = load_settings(str(path))
        assert settings.max_entries == Defaults.CACHE_MAX_ENTRIES

    def test_load_settings_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_shipped_settings_file_is_valid(self):
        """config/settings.yaml at the repo root loads and validates."""
        from pathlib import Path

        path = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"
        config = load_settings(str(path)).get_service_config()
        assert config.cache.max_entries > 0
