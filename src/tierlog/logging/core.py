"""
structlog wiring for the console/file output path.

Every logger from `get_logger` runs one processor chain whose last step fans
the finished event dict out to the active sinks. structlog's own logger is a
ReturnLogger, so nothing is written twice.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from .formatters import ConsoleLayout
from .sinks import BaseSink, build_sinks

if TYPE_CHECKING:
    from tierlog.config import LoggingSettings

_sinks: list[BaseSink] = []


def get_logger(name: str | None = None) -> Any:
    """Structured logger whose `name` fills the logger column."""
    return structlog.get_logger(_name=name or "tierlog")


def active_sinks() -> tuple[BaseSink, ...]:
    return tuple(_sinks)


def level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


# =============================================================================
# Processors
# =============================================================================


def stamp_event(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Timestamp (unless supplied), logger name, and `event` renamed to `message`."""
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    event_dict["logger"] = event_dict.pop("_name", "tierlog")
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def fan_out(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
    for sink in _sinks:
        try:
            sink.emit(event_dict)
        except Exception as exc:
            # Output failures must not propagate into the logging call site
            sys.stderr.write(f"tierlog: {type(sink).__name__} failed: {exc!r}\n")
    return ""


PROCESSORS: list[Processor] = [
    structlog.stdlib.add_log_level,
    stamp_event,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    fan_out,
]


# =============================================================================
# Configuration
# =============================================================================


def configure_logging(
    *,
    level: str | int = "INFO",
    sinks: str = "stdio",
    fmt: str = "console",
    file_path: str | Path = "logs/tierlog.log",
    stream: IO[str] | None = None,
    third_party_level: str | int = "WARNING",
    **sink_options: Any,
) -> None:
    """
    (Re)configure console/file output; sinks from an earlier call are closed.

    Args:
        level: Minimum level written (name or number).
        sinks: Comma-separated sink names, "stdio" and/or "file".
        fmt: "console" or "json" rendering for the stdio sink.
        file_path: JSON-lines target of the file sink.
        stream: stdio target, stdout by default.
        third_party_level: Level for sqlalchemy/redis/asyncio stdlib loggers.
        sink_options: layout, color, file_max_bytes, file_backup_count.
    """
    from .interceptors import install_stdlib_redirect

    threshold = level_number(level)
    names = [name.strip().lower() for name in sinks.split(",") if name.strip()]

    sinks_built = build_sinks(
        names,
        fmt="json" if fmt.lower() == "json" else "console",
        stream=stream,
        file_path=file_path,
        **sink_options,
    )
    for sink in _sinks:
        sink.close()
    _sinks[:] = sinks_built

    structlog.configure(
        processors=PROCESSORS,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    install_stdlib_redirect(threshold, level_number(third_party_level))


def configure_logging_from_settings(settings: LoggingSettings, *, stream: IO[str] | None = None) -> None:
    configure_logging(
        level=settings.level.value,
        sinks=",".join(settings.sink_names),
        fmt=settings.format.value,
        file_path=settings.file_path,
        stream=stream,
        third_party_level=settings.third_party_level.value,
        layout=ConsoleLayout(
            timestamp_format=settings.console_timestamp_format,
            level_width=settings.console_level_width,
            logger_width=settings.console_logger_width,
            separator=settings.console_separator,
        ),
        color=settings.color,
        file_max_bytes=settings.file_max_bytes,
        file_backup_count=settings.file_backup_count,
    )
