"""
Human-readable rendering for the stdio sink.

    12:04:31  WARNING  ...tierlog.pipeline.logger  flush_to_buffer_failed requeued=3
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from structlog.typing import EventDict

RESET = "\x1b[0m"

LEVEL_COLORS = {
    "DEBUG": "\x1b[36m",
    "INFO": "\x1b[32m",
    "WARNING": "\x1b[33m",
    "ERROR": "\x1b[31m",
    "CRITICAL": "\x1b[1;31m",
}

PART_COLORS = {
    "timestamp": "\x1b[90m",
    "logger": "\x1b[35m",
    "key": "\x1b[34m",
    "value": "\x1b[2m",
}

# Rendered in their own columns, never as key=value pairs
COLUMN_KEYS = frozenset({"timestamp", "level", "logger", "message", "event", "_name"})


def paint(text: str, code: str) -> str:
    return f"{code}{text}{RESET}" if code else text


def fit_right(text: str, width: int) -> str:
    """Right-align in `width` columns; overlong text keeps its tail behind '...'."""
    if width <= 0:
        return text
    if len(text) > width:
        text = "..." + text[-(width - 3) :] if width > 3 else text[-width:]
    return text.rjust(width)


def parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        value = raw
    else:
        try:
            value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            value = datetime.now(timezone.utc)
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ConsoleLayout:
    timestamp_format: str = "%H:%M:%S"
    level_width: int = 7
    logger_width: int = 28
    separator: str = "  "


class ConsoleRenderer:
    """Turns a processed event dict into one aligned console line."""

    def __init__(self, layout: ConsoleLayout | None = None, *, color: bool = False):
        self.layout = layout or ConsoleLayout()
        self.color = color

    def _pairs(self, event_dict: EventDict) -> list[str]:
        pairs = []
        for key, value in event_dict.items():
            if key in COLUMN_KEYS or value is None:
                continue
            if self.color:
                pairs.append(f"{paint(key, PART_COLORS['key'])}={paint(str(value), PART_COLORS['value'])}")
            else:
                pairs.append(f"{key}={value}")
        return pairs

    def __call__(self, event_dict: EventDict) -> str:
        layout = self.layout
        level = str(event_dict.get("level", "info")).upper()
        stamp = parse_timestamp(event_dict.get("timestamp")).astimezone().strftime(layout.timestamp_format)
        columns = [
            stamp,
            fit_right(level, layout.level_width),
            fit_right(str(event_dict.get("logger", "")), layout.logger_width),
        ]
        if self.color:
            columns = [
                paint(columns[0], PART_COLORS["timestamp"]),
                paint(columns[1], LEVEL_COLORS.get(level, "")),
                paint(columns[2], PART_COLORS["logger"]),
            ]

        body = " ".join([str(event_dict.get("message", "")), *self._pairs(event_dict)])
        return layout.separator.join([*columns, body])
