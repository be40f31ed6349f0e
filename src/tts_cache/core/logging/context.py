"""
Correlation Context and Configuration State for Logging.

The request id lives in a ContextVar so that it follows asyncio tasks:
a preload task created while a request id is set keeps logging under
that id after the caller has moved on.

Environment Variables:
    - TTS_CACHE_LOG_LEVEL: Override log level (1-4 or name)
    - TTS_CACHE_LOG_DIR: Directory for JSONL log files
    - TTS_CACHE_JSONL_FILE: JSONL filename
    - TTS_CACHE_LOG_ROTATE_BYTES: Max log file size
    - TTS_CACHE_LOG_ROTATE_BACKUP: Number of backup files
    - TTS_CACHE_SETTINGS: Settings file consulted for the logging section
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

# "-" is printed for messages logged outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Get current request id, or "-" if none is set."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set the request id used to correlate log lines."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Current log level as "MINIMAL", "NORMAL", "VERBOSE" or "DEBUG"."""
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _int_env(cfg: Dict[str, Any], key: str, env_name: str) -> None:
    raw = os.getenv(env_name)
    if not raw:
        return
    try:
        cfg[key] = int(raw)
    except ValueError:
        pass  # ignore malformed override, keep file/default value


def read_logging_config() -> Dict[str, Any]:
    """
    Read logging configuration from settings file and environment.

    Configuration priority (highest to lowest):
        1. Environment variables (TTS_CACHE_LOG_LEVEL, etc.)
        2. settings.yaml logging section
        3. Default values

    Returns:
        Dictionary with resolved logging configuration.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("TTS_CACHE_SETTINGS", "config/settings.yaml")
    try:
        from tts_cache.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except Exception:
        # Missing or unreadable settings file: logging still has to come up
        pass

    if os.getenv("TTS_CACHE_LOG_LEVEL"):
        cfg["level"] = os.environ["TTS_CACHE_LOG_LEVEL"]
    if os.getenv("TTS_CACHE_LOG_DIR"):
        cfg["log_dir"] = os.environ["TTS_CACHE_LOG_DIR"]
    if os.getenv("TTS_CACHE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TTS_CACHE_JSONL_FILE"]
    _int_env(cfg, "rotate_max_bytes", "TTS_CACHE_LOG_ROTATE_BYTES")
    _int_env(cfg, "rotate_backup_count", "TTS_CACHE_LOG_ROTATE_BACKUP")

    return cfg
