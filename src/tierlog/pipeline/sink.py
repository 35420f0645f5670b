"""
Relational Sink writer.

Final destination of the pipeline: two tables with disjoint schemas,
`http_logs` for request/access entries and `app_logs` for error/application
entries. Each store call is one multi-row INSERT that skips rows whose id
already exists, so a batch redelivered by the buffer is written once.

Connection state machine:
    UNKNOWN --probe ok--> CONNECTED --write/probe failure--> DEGRADED
    DEGRADED --probe or write ok--> CONNECTED
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from tierlog.db import create_session_factory
from tierlog.exceptions import PipelineConfigurationError, SinkWriteError
from tierlog.logging import get_logger
from tierlog.models import AppLog, Base, HttpLog

from .types import ExtendedLogEntry

logger = get_logger("tierlog.pipeline.sink")

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SinkState(str, Enum):
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    DEGRADED = "degraded"


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _common_row(entry: ExtendedLogEntry, environment: Optional[str]) -> Dict[str, Any]:
    meta = entry.metadata
    user_id = meta.user.id if meta.user and meta.user.id is not None else None
    return {
        "id": entry.id,
        "timestamp": entry.timestamp,
        "level": entry.level.db_value,
        "message": entry.message,
        "service": meta.service or entry.app_name,
        "environment": meta.environment or environment,
        "request_id": meta.request_id,
        "trace_id": meta.trace_id,
        "user_id": str(user_id) if user_id is not None else None,
        "hostname": entry.hostname,
        "pid": entry.pid,
        "app_name": entry.app_name,
        "context": meta.model_dump(mode="json", exclude_none=True) or None,
    }


def request_row(entry: ExtendedLogEntry, environment: Optional[str] = None) -> Dict[str, Any]:
    """Map an entry onto an `http_logs` row."""
    meta = entry.metadata
    request = meta.request
    duration = meta.duration
    if duration is None and meta.performance is not None:
        duration = meta.performance.duration
    status_code = meta.status_code
    if status_code is None and meta.error is not None:
        status_code = meta.error.status_code
    return {
        **_common_row(entry, environment),
        "request_path": request.path if request else None,
        "request_method": request.method if request else None,
        "status_code": _as_int(status_code),
        "duration_ms": _as_int(duration),
    }


def error_row(entry: ExtendedLogEntry, environment: Optional[str] = None) -> Dict[str, Any]:
    """Map an entry onto an `app_logs` row."""
    meta = entry.metadata
    error = meta.error
    return {
        **_common_row(entry, environment),
        "error_name": (error.name or error.type) if error else None,
        "error_code": error.code if error else None,
        "stack_trace": error.stack if error else None,
        "component": meta.component or meta.subsystem,
    }


class SqlLogSink:
    """Batch writer for the two log tables.

    Store methods never raise: a failed write returns 0 and marks the sink
    DEGRADED until the next successful probe or write.
    """

    def __init__(self, engine: AsyncEngine, *, environment: Optional[str] = None):
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._environment = environment
        self._state = SinkState.UNKNOWN
        dialect = engine.dialect.name
        if dialect not in _INSERTS:
            raise PipelineConfigurationError(
                f"Unsupported sink dialect '{dialect}'",
                details={"dialect": dialect, "supported": sorted(_INSERTS)},
            )
        self._insert = _INSERTS[dialect]

    @property
    def state(self) -> SinkState:
        return self._state

    @property
    def is_healthy(self) -> bool:
        return self._state is SinkState.CONNECTED

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def test_connection(self) -> bool:
        """Probe with `SELECT 1`; updates the connection state."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            self._mark_degraded("probe", exc)
            return False
        self._state = SinkState.CONNECTED
        return True

    async def create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def store_request_logs(self, entries: Sequence[ExtendedLogEntry]) -> int:
        """Insert request entries into `http_logs`; returns rows created."""
        return await self._store(HttpLog, [request_row(e, self._environment) for e in entries])

    async def store_error_logs(self, entries: Sequence[ExtendedLogEntry]) -> int:
        """Insert error/application entries into `app_logs`; returns rows created."""
        return await self._store(AppLog, [error_row(e, self._environment) for e in entries])

    async def disconnect(self) -> None:
        await self._engine.dispose()

    async def _store(self, model: Type[Base], rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        try:
            created = await self._insert_rows(model, rows)
        except SinkWriteError as exc:
            logger.error("sink_write_failed", **exc.details)
            self._state = SinkState.DEGRADED
            return 0
        self._state = SinkState.CONNECTED
        skipped = len(rows) - created
        if skipped:
            logger.debug("sink_duplicates_skipped", table=model.__tablename__, skipped=skipped)
        return created

    async def _insert_rows(self, model: Type[Base], rows: List[Dict[str, Any]]) -> int:
        stmt = (
            self._insert(model)
            .values(rows)
            .on_conflict_do_nothing(index_elements=[model.id])
            .returning(model.id)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                created = len(result.scalars().all())
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise SinkWriteError(table=model.__tablename__, reason=str(exc), attempted=len(rows)) from exc
        return created

    def _mark_degraded(self, operation: str, exc: BaseException) -> None:
        if self._state is not SinkState.DEGRADED:
            logger.warning("sink_degraded", operation=operation, error=str(exc))
        self._state = SinkState.DEGRADED
