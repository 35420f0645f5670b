"""
tierlog exception hierarchy.

Two axes:
- configuration errors are permanent and raised eagerly at construction time;
- storage errors describe a downstream tier (Redis buffer, relational sink)
  and are absorbed by the pipeline, never surfaced through the logging API.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TierlogError(Exception):
    """Root of all tierlog errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


# ================================
# Configuration errors
# ================================


class PipelineConfigurationError(TierlogError):
    """Invalid pipeline configuration; never clamped silently."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="PIPELINE_CONFIGURATION", details=details)


class QueueConfigurationError(PipelineConfigurationError):
    """Entry Queue created with a non-positive capacity."""

    def __init__(self, *, capacity: int) -> None:
        super().__init__(
            f"Entry queue capacity must be positive, got {capacity}",
            details={"capacity": capacity},
        )


# ================================
# Storage errors
# ================================


class StorageError(TierlogError):
    """A downstream tier failed."""

    pass


class BufferUnavailableError(StorageError):
    """The Intermediate Buffer could not be reached or the transaction failed."""

    def __init__(self, *, operation: str, reason: str) -> None:
        super().__init__(
            f"Intermediate buffer unavailable during {operation}: {reason}",
            code="BUFFER_UNAVAILABLE",
            details={"operation": operation, "reason": reason},
        )


class SinkWriteError(StorageError):
    """A batch insert into the relational sink failed."""

    def __init__(self, *, table: str, reason: str, attempted: int = 0) -> None:
        super().__init__(
            f"Failed to write {attempted} rows to {table}: {reason}",
            code="SINK_WRITE_FAILED",
            details={"table": table, "reason": reason, "attempted": attempted},
        )
