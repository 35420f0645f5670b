"""
Log entry data model.

A `LogEntry` is created once per logging call and never mutated. Metadata is a
structured record for the well-known groups (classification, correlation,
request, user, error, performance, business) plus an `extra` bag that keeps
any other key the caller attached.
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union
from uuid import uuid4

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

# =============================================================================
# Enumerations
# =============================================================================


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @classmethod
    def _missing_(cls, value: object) -> Optional["LogLevel"]:
        if isinstance(value, str):
            alias = _LEVEL_ALIASES.get(value.lower(), value.lower())
            for member in cls:
                if member.value == alias:
                    return member
        return None

    @property
    def is_severe(self) -> bool:
        """Warn and error entries are always durable."""
        return self in (LogLevel.WARN, LogLevel.ERROR)

    @property
    def stdlib_level(self) -> int:
        return _STDLIB_LEVELS[self]

    @property
    def db_value(self) -> str:
        return _DB_LEVELS[self]


_LEVEL_ALIASES = {
    "warning": "warn",
    "critical": "error",
    "fatal": "error",
}

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

_DB_LEVELS = {
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARN: "WARNING",
    LogLevel.ERROR: "ERROR",
}


class LogType(str, Enum):
    REQUEST = "request"
    ERROR = "error"
    CONSOLE = "console"


class Destination(str, Enum):
    """Relational table an entry is written to."""

    HTTP = "http_logs"
    APP = "app_logs"


# =============================================================================
# Metadata
# =============================================================================


class _MetadataModel(BaseModel):
    """Accepts both snake_case and camelCase keys; serializes snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class RequestContext(_MetadataModel):
    method: Optional[str] = None
    path: Optional[str] = None
    url: Optional[str] = None
    query: Optional[Dict[str, Any]] = None
    params: Optional[Dict[str, Any]] = None
    body: Any = None
    headers: Optional[Dict[str, Any]] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None


class UserContext(_MetadataModel):
    id: Optional[Union[str, int]] = None
    email: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[List[str]] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ErrorContext(_MetadataModel):
    message: Optional[str] = None
    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    stack: Optional[str] = None
    status_code: Optional[int] = None
    details: Any = None

    @classmethod
    def from_exception(cls, exc: BaseException, *, include_stack: bool = True) -> "ErrorContext":
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if include_stack else None
        return cls(message=str(exc), name=type(exc).__name__, stack=stack)


class PerformanceContext(_MetadataModel):
    duration: Optional[float] = None
    memory_usage: Optional[float] = None
    cpu_usage: Optional[float] = None


class LogMetadata(_MetadataModel):
    """Structured metadata with an `extra` bag for unknown keys."""

    # Classification
    service: Optional[str] = None
    subsystem: Optional[str] = None
    category: Optional[str] = None
    event_type: Optional[str] = None
    component: Optional[str] = None

    # Correlation
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    request_id: Optional[str] = None

    # Technical
    host: Optional[str] = None
    environment: Optional[str] = None
    status_code: Optional[int] = None
    duration: Optional[float] = None

    request: Optional[RequestContext] = None
    user: Optional[UserContext] = None
    error: Optional[ErrorContext] = None
    performance: Optional[PerformanceContext] = None

    context: Optional[Dict[str, Any]] = None
    response: Any = None

    # Business
    business_id: Optional[str] = None
    business_action: Optional[str] = None
    business_result: Optional[str] = None
    business_value: Optional[float] = None

    extra: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extra(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        known: Dict[str, Any] = {}
        raw_extra = data.get("extra")
        extra: Dict[str, Any] = dict(raw_extra) if isinstance(raw_extra, Mapping) else {}
        if raw_extra is not None and not isinstance(raw_extra, Mapping):
            extra["extra"] = raw_extra
        for key, value in data.items():
            if key == "extra":
                continue
            if key in _KNOWN_KEYS:
                known[key] = value
            else:
                extra[str(key)] = value
        known["extra"] = extra
        return known

    @classmethod
    def coerce(cls, value: Union["LogMetadata", Mapping[str, Any], None]) -> "LogMetadata":
        if value is None:
            return cls()
        if isinstance(value, LogMetadata):
            return value
        if isinstance(value, BaseException):
            return cls(error=ErrorContext.from_exception(value))
        return cls.model_validate(value)

    @classmethod
    def lenient(cls, value: Any) -> "LogMetadata":
        """Like `coerce`, but never raises: fields that fail validation move to `extra`."""
        try:
            return cls.coerce(value)
        except ValidationError as exc:
            if not isinstance(value, Mapping):
                return cls(extra={"metadata": value})
            data = {str(key): item for key, item in value.items()}
            rejected = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
            # Error locations use aliases; callers may have passed field names
            for name, field in cls.model_fields.items():
                if name in rejected or field.alias in rejected:
                    rejected.update(key for key in (name, field.alias) if key)

        try:
            accepted = cls.model_validate({k: v for k, v in data.items() if k not in rejected})
        except ValidationError:
            return cls(extra=data)
        moved = {k: v for k, v in data.items() if k in rejected}
        return accepted.model_copy(update={"extra": {**accepted.extra, **moved}})

    def flatten(self) -> Dict[str, Any]:
        """Set fields as a flat mapping, `extra` keys merged at the top level."""
        data = self.model_dump(exclude_none=True, exclude={"extra"})
        return {**self.extra, **data}

    def merged(self, other: Union["LogMetadata", Mapping[str, Any], None]) -> "LogMetadata":
        """Shallow merge; keys set on `other` win."""
        if other is None:
            return self
        return LogMetadata.lenient({**self.flatten(), **LogMetadata.lenient(other).flatten()})

    def is_empty(self) -> bool:
        return not self.flatten()


def _field_keys(model: type[BaseModel]) -> frozenset:
    keys = set()
    for name, field in model.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
    return frozenset(keys)


_KNOWN_KEYS = _field_keys(LogMetadata) - {"extra"}

MetadataInput = Union[LogMetadata, Mapping[str, Any], None]


# =============================================================================
# Entries
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LogEntry(BaseModel):
    """One log call. `id` and `timestamp` are assigned at creation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    level: LogLevel
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)
    log_type: LogType = LogType.CONSOLE
    metadata: LogMetadata = Field(default_factory=LogMetadata)

    @property
    def should_persist(self) -> bool:
        """Non-console entries and every warn/error entry take the durable path."""
        return self.log_type is not LogType.CONSOLE or self.level.is_severe


class ExtendedLogEntry(LogEntry):
    """A LogEntry stamped with process identity on its way to the buffer."""

    hostname: str
    pid: int
    app_name: str

    @classmethod
    def enrich(cls, entry: LogEntry, *, hostname: str, pid: int, app_name: str) -> "ExtendedLogEntry":
        if isinstance(entry, ExtendedLogEntry):
            return entry
        return cls(
            **{name: getattr(entry, name) for name in LogEntry.model_fields},
            hostname=hostname,
            pid=pid,
            app_name=app_name,
        )

    def to_json(self) -> bytes:
        return orjson.dumps(self.model_dump(exclude_none=True), default=str)

    @classmethod
    def from_json(cls, payload: Union[bytes, str]) -> "ExtendedLogEntry":
        return cls.model_validate(orjson.loads(payload))


def classify(entry: LogEntry) -> Optional[Destination]:
    """
    Pick the single relational destination for an entry.

    Severity wins over declared type: warn/error always land in `app_logs`.
    Console entries below warn are never persisted.
    """
    if entry.level.is_severe:
        return Destination.APP
    if entry.log_type is LogType.REQUEST:
        return Destination.HTTP
    if entry.log_type is LogType.ERROR:
        return Destination.APP
    return None
