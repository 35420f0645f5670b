"""
Unified console/file logging for tierlog.

This is the synchronous, human-facing output path. It is independent of the
durable pipeline: every pipeline call emits here first, and the pipeline's own
diagnostics (flush failures, sink degradation) are reported here too.

Sinks:
- stdio: Standard output (console/json format)
- file: Local file rotation with JSON

Design Pattern: Strategy Pattern for sink abstraction.
Library: structlog + orjson for JSON serialization.
"""

from .core import configure_logging, configure_logging_from_settings, get_logger

__all__ = ["configure_logging", "configure_logging_from_settings", "get_logger"]
