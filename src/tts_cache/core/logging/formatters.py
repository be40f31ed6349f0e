"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for files and log shippers.
    ColoredConsoleFormatter: human-readable, colored terminal output.

Output Examples:
    JSONL (file):
        {"ts":"2026-01-15T14:30:05+03:00","level":2,"tag":"INFO","message":"generation_completed","request_id":"abc123","seconds":0.21,"extra":{"key":"5a2b91c0","status":"completed"}}

    Console (colored):
        14:30:05 [ INFO  ] (abc123) generation_completed 0.210s key=5a2b91c0 status=completed
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, colorize as _paint, get_status_color, get_tag_color


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines for file output.

    Output Format:
        {
            "ts": "2026-01-15T14:30:05+03:00",   # ISO timestamp with timezone
            "level": 2,                          # Numeric level (1-4)
            "tag": "INFO",                       # Log tag
            "message": "generation_completed",   # Log message
            "request_id": "abc123",              # Correlation id
            "event": "preload",                  # Optional event type
            "seconds": 0.21,                     # Optional timing
            "extra": {"key": "5a2b91c0"}         # Optional extra fields
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).astimezone().isoformat()

        payload: Dict[str, Any] = {
            "ts": ts,
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        # default=str keeps odd field values (enums, exceptions) from breaking a log line
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records with ANSI colors for console output.

    Output Format:
        HH:MM:SS [ TAG   ] (rid) message key=value 0.123s

    Field coloring:
        - seconds: green < 0.1s, yellow < 1s, red otherwise
        - status: completed green, pending yellow, failed red
        - fill: current_size/max_size or entry_count/max_entries ratio,
          red when the cache is over its bound
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _paint(ts, Colors.DIM),
            _paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(_paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_paint(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_paint(f"{k}={v}", self._field_color(k, v)))

        return " ".join(parts)

    def _field_color(self, key: str, value: Any) -> str:
        if key == "status":
            return get_status_color(value)
        if key == "fill" and isinstance(value, (int, float)):
            if value > 1.0:
                return Colors.RED
            if value > 0.8:
                return Colors.YELLOW
            return Colors.CYAN
        if key in ("error", "code"):
            return Colors.RED
        return Colors.DIM
