"""
ANSI Color Utilities for Console Output.

Colors are disabled when:
    - stdout is not a TTY (piped to a file, captured by pytest)
    - NO_COLOR is set (https://no-color.org/)
    - TTS_CACHE_NO_COLOR=1 is set
"""
from __future__ import annotations

import os
import sys


class Colors:
    """ANSI escape code constants for terminal colors."""
    RESET = "\033[0m"

    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


def supports_color() -> bool:
    """
    Check if the terminal supports ANSI color codes.

    Returns:
        bool: True if colors should be used, False otherwise.
    """
    if os.getenv("TTS_CACHE_NO_COLOR", "0") == "1":
        return False
    if os.getenv("NO_COLOR"):
        return False

    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False

    if sys.platform == "win32":
        # Windows 10+ needs virtual terminal processing switched on
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
            return True
        except Exception:
            return False

    return True


def use_colors() -> bool:
    """Current color switch, owned by the logging package (set by configure_logging)."""
    import tts_cache.core.logging as log_module
    return getattr(log_module, "_USE_COLORS", False)


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text if colors are enabled."""
    if not use_colors():
        return text
    return f"{color}{text}{Colors.RESET}"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "WARNING": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
    "TRACE": Colors.DIM,
}

# Cache entry states as they appear in status=... log fields
_STATUS_COLORS = {
    "completed": Colors.GREEN,
    "pending": Colors.YELLOW,
    "failed": Colors.RED,
}


def get_tag_color(tag: str) -> str:
    """Get the color for a log tag (INFO, WARN, ...)."""
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)


def get_status_color(status: str) -> str:
    """Get the color for a cache entry status."""
    return _STATUS_COLORS.get(str(status).lower(), Colors.DIM)
