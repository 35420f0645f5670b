"""
Log entry data model tests.
"""

from __future__ import annotations

from datetime import timezone

import pytest
from pydantic import ValidationError

from tierlog.pipeline.types import (
    Destination,
    ErrorContext,
    ExtendedLogEntry,
    LogEntry,
    LogLevel,
    LogMetadata,
    LogType,
    classify,
)


class TestLogLevel:
    def test_severity(self):
        assert LogLevel.WARN.is_severe
        assert LogLevel.ERROR.is_severe
        assert not LogLevel.INFO.is_severe
        assert not LogLevel.DEBUG.is_severe

    @pytest.mark.parametrize(
        "raw,expected",
        [("warning", LogLevel.WARN), ("WARN", LogLevel.WARN), ("critical", LogLevel.ERROR), ("Info", LogLevel.INFO)],
    )
    def test_aliases(self, raw, expected):
        assert LogLevel(raw) is expected

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            LogLevel("verbose")

    def test_db_vocabulary(self):
        assert LogLevel.WARN.db_value == "WARNING"
        assert LogLevel.ERROR.db_value == "ERROR"


class TestLogMetadata:
    def test_camel_case_keys_map_to_fields(self):
        meta = LogMetadata.coerce(
            {
                "traceId": "t-1",
                "statusCode": 500,
                "request": {"method": "GET", "path": "/users", "userAgent": "curl"},
                "user": {"id": 7, "firstName": "Ada"},
            }
        )
        assert meta.trace_id == "t-1"
        assert meta.status_code == 500
        assert meta.request.user_agent == "curl"
        assert meta.user.first_name == "Ada"
        assert meta.extra == {}

    def test_unknown_keys_are_kept_in_extra(self):
        meta = LogMetadata.coerce({"service": "billing", "tenant": "acme", "retries": 3})
        assert meta.service == "billing"
        assert meta.extra == {"tenant": "acme", "retries": 3}

    def test_flatten_puts_extra_at_top_level(self):
        meta = LogMetadata.coerce({"requestId": "r-1", "tenant": "acme"})
        assert meta.flatten() == {"request_id": "r-1", "tenant": "acme"}

    def test_merged_right_side_wins(self):
        base = LogMetadata.coerce({"traceId": "t-1", "service": "api", "tenant": "acme"})
        merged = base.merged({"service": "worker", "attempt": 2})

        assert merged.trace_id == "t-1"
        assert merged.service == "worker"
        assert merged.extra == {"tenant": "acme", "attempt": 2}
        # Original untouched
        assert base.service == "api"
        assert base.extra == {"tenant": "acme"}

    def test_exception_becomes_error_context(self):
        try:
            raise KeyError("missing")
        except KeyError as exc:
            meta = LogMetadata.coerce(exc)

        assert meta.error.name == "KeyError"
        assert "missing" in meta.error.message
        assert "Traceback" in meta.error.stack

    def test_error_context_from_exception_without_stack(self):
        context = ErrorContext.from_exception(ValueError("bad"), include_stack=False)
        assert context.name == "ValueError"
        assert context.stack is None

    def test_coerce_rejects_wrongly_typed_fields(self):
        with pytest.raises(ValidationError):
            LogMetadata.coerce({"statusCode": "n/a"})

    def test_lenient_moves_invalid_fields_to_extra(self):
        meta = LogMetadata.lenient({"traceId": "t-1", "statusCode": "n/a", "user": "alice", "tenant": "acme"})
        assert meta.trace_id == "t-1"
        assert meta.status_code is None
        assert meta.user is None
        assert meta.extra == {"tenant": "acme", "statusCode": "n/a", "user": "alice"}

    def test_lenient_handles_field_names_and_nested_errors(self):
        meta = LogMetadata.lenient({"status_code": "bad", "request": {"method": "GET", "headers": "raw"}})
        assert meta.request is None
        assert meta.extra == {"status_code": "bad", "request": {"method": "GET", "headers": "raw"}}

    @pytest.mark.parametrize("value", ["plain text", 42, ["a", "b"]])
    def test_lenient_wraps_non_mappings(self, value):
        assert LogMetadata.lenient(value).extra == {"metadata": value}

    def test_non_mapping_extra_and_non_string_keys(self):
        meta = LogMetadata.lenient({"extra": "oops", 1: "x"})
        assert meta.extra == {"extra": "oops", "1": "x"}

    def test_merged_never_raises(self):
        merged = LogMetadata.coerce({"service": "api"}).merged({"duration": "12ms"})
        assert merged.service == "api"
        assert merged.duration is None
        assert merged.extra == {"duration": "12ms"}


class TestLogEntry:
    def test_identity_assigned_at_creation(self):
        first = LogEntry(level=LogLevel.INFO, message="a")
        second = LogEntry(level=LogLevel.INFO, message="a")

        assert first.id != second.id
        assert first.timestamp.tzinfo is not None
        assert first.timestamp.utcoffset() == timezone.utc.utcoffset(None)

    def test_entries_are_immutable(self):
        entry = LogEntry(level=LogLevel.INFO, message="a")
        with pytest.raises(Exception):
            entry.timestamp = None  # type: ignore[misc]

    @pytest.mark.parametrize(
        "level,log_type,persist",
        [
            (LogLevel.DEBUG, LogType.CONSOLE, False),
            (LogLevel.INFO, LogType.CONSOLE, False),
            (LogLevel.WARN, LogType.CONSOLE, True),
            (LogLevel.ERROR, LogType.CONSOLE, True),
            (LogLevel.INFO, LogType.REQUEST, True),
            (LogLevel.DEBUG, LogType.ERROR, True),
        ],
    )
    def test_should_persist(self, level, log_type, persist):
        assert LogEntry(level=level, message="m", log_type=log_type).should_persist is persist


class TestClassify:
    @pytest.mark.parametrize(
        "level,log_type,destination",
        [
            (LogLevel.INFO, LogType.REQUEST, Destination.HTTP),
            (LogLevel.INFO, LogType.ERROR, Destination.APP),
            (LogLevel.WARN, LogType.REQUEST, Destination.APP),
            (LogLevel.ERROR, LogType.CONSOLE, Destination.APP),
            (LogLevel.INFO, LogType.CONSOLE, None),
            (LogLevel.DEBUG, LogType.CONSOLE, None),
        ],
    )
    def test_single_destination(self, level, log_type, destination):
        assert classify(LogEntry(level=level, message="m", log_type=log_type)) == destination


class TestExtendedLogEntry:
    def test_enrich_keeps_identity(self):
        entry = LogEntry(level=LogLevel.ERROR, message="boom", log_type=LogType.ERROR, metadata={"tenant": "acme"})
        extended = ExtendedLogEntry.enrich(entry, hostname="web-1", pid=42, app_name="svc")

        assert extended.id == entry.id
        assert extended.timestamp == entry.timestamp
        assert extended.metadata == entry.metadata
        assert (extended.hostname, extended.pid, extended.app_name) == ("web-1", 42, "svc")

    def test_enrich_is_applied_once(self):
        entry = LogEntry(level=LogLevel.INFO, message="m")
        extended = ExtendedLogEntry.enrich(entry, hostname="a", pid=1, app_name="x")
        again = ExtendedLogEntry.enrich(extended, hostname="b", pid=2, app_name="y")
        assert again is extended

    def test_wire_format_preserves_entry(self):
        entry = LogEntry(
            level=LogLevel.WARN,
            message="slow query",
            log_type=LogType.ERROR,
            metadata={"component": "db", "error": {"name": "Timeout"}, "rows": 10, "obj": object()},
        )
        extended = ExtendedLogEntry.enrich(entry, hostname="web-1", pid=42, app_name="svc")

        decoded = ExtendedLogEntry.from_json(extended.to_json())

        assert decoded.id == entry.id
        assert decoded.timestamp == entry.timestamp
        assert decoded.level is LogLevel.WARN
        assert decoded.log_type is LogType.ERROR
        assert decoded.metadata.component == "db"
        assert decoded.metadata.error.name == "Timeout"
        assert decoded.metadata.extra["rows"] == 10
        # Unserializable values degrade to their string form
        assert decoded.metadata.extra["obj"].startswith("<object object")
