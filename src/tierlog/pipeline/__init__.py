"""
Tiered log pipeline.

EntryQueue (memory) -> RedisLogBuffer (crash boundary) -> SqlLogSink (http_logs / app_logs),
orchestrated by PipelineLogger.
"""

from .buffer import LinearBackoff, RedisLogBuffer
from .logger import BoundLogger, DrainResult, PipelineLogger
from .queue import EntryQueue
from .sink import SinkState, SqlLogSink
from .types import (
    Destination,
    ErrorContext,
    ExtendedLogEntry,
    LogEntry,
    LogLevel,
    LogMetadata,
    LogType,
    PerformanceContext,
    RequestContext,
    UserContext,
    classify,
)

__all__ = [
    # Orchestrator
    "PipelineLogger",
    "BoundLogger",
    "DrainResult",
    # Tiers
    "EntryQueue",
    "RedisLogBuffer",
    "LinearBackoff",
    "SqlLogSink",
    "SinkState",
    # Data model
    "LogEntry",
    "ExtendedLogEntry",
    "LogLevel",
    "LogType",
    "LogMetadata",
    "RequestContext",
    "UserContext",
    "ErrorContext",
    "PerformanceContext",
    "Destination",
    "classify",
]
