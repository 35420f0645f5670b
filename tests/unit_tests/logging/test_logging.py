"""
Console/file logging tests.
"""

import io
import logging

import orjson
import pytest
import structlog

from tierlog.config import LoggingSettings
from tierlog.logging import configure_logging, configure_logging_from_settings, get_logger
from tierlog.logging.core import _sinks
from tierlog.logging.formatters import ConsoleLayout, ConsoleRenderer, fit_right
from tierlog.logging.interceptors import RedirectStdLibHandler
from tierlog.logging.sinks import FileSink


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    for sink in _sinks:
        sink.close()
    _sinks.clear()
    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if not isinstance(h, RedirectStdLibHandler)]
    structlog.reset_defaults()


def _lines(stream: io.StringIO) -> list[dict]:
    return [orjson.loads(line) for line in stream.getvalue().splitlines()]


class TestJsonOutput:
    def test_event_fields(self):
        stream = io.StringIO()
        configure_logging(level="INFO", sinks="stdio", fmt="json", stream=stream)

        get_logger("tierlog.pipeline.buffer").warning("flush_to_buffer_failed", requeued=3)

        (record,) = _lines(stream)
        assert record["message"] == "flush_to_buffer_failed"
        assert record["level"] == "warning"
        assert record["logger"] == "tierlog.pipeline.buffer"
        assert record["requeued"] == 3
        assert "timestamp" in record

    def test_level_filtering(self):
        stream = io.StringIO()
        configure_logging(level="WARNING", sinks="stdio", fmt="json", stream=stream)

        logger = get_logger("svc")
        logger.info("hidden")
        logger.error("shown")

        assert [r["message"] for r in _lines(stream)] == ["shown"]

    def test_stdlib_records_are_redirected(self):
        stream = io.StringIO()
        configure_logging(level="INFO", sinks="stdio", fmt="json", stream=stream)

        logging.getLogger("sqlalchemy.engine.Engine").warning("pool exhausted")

        (record,) = _lines(stream)
        assert record["message"] == "pool exhausted"
        assert record["logger"] == "engine.Engine"

    def test_unserializable_values_fall_back_to_str(self):
        stream = io.StringIO()
        configure_logging(level="INFO", sinks="stdio", fmt="json", stream=stream)

        get_logger("svc").info("odd", payload=object())

        assert _lines(stream)[0]["payload"].startswith("<object object")


class TestConsoleOutput:
    def test_aligned_columns(self):
        render = ConsoleRenderer(ConsoleLayout(level_width=8, logger_width=32, separator=" | "))
        line = render(
            {
                "timestamp": "2026-01-02T03:04:05+00:00",
                "level": "info",
                "logger": "tierlog.pipeline.logger",
                "message": "pipeline_initialized",
                "environment": "testing",
                "skipped": None,
            }
        )

        _, level, logger_name, message = line.split(" | ")
        assert level == "    INFO"
        assert logger_name.strip() == "tierlog.pipeline.logger"
        assert len(logger_name) == 32
        assert message == "pipeline_initialized environment=testing"

    def test_colors_only_when_enabled(self):
        event = {"level": "error", "logger": "svc", "message": "boom"}
        assert "\x1b[" not in ConsoleRenderer()(event)
        assert "\x1b[31m" in ConsoleRenderer(color=True)(event)

    def test_long_logger_names_are_elided_from_the_left(self):
        assert fit_right("abcdefghij", 6) == "...hij"
        assert fit_right("abc", 6) == "   abc"

    def test_settings_drive_layout(self):
        stream = io.StringIO()
        configure_logging_from_settings(
            LoggingSettings(console_separator=" :: ", console_logger_width=10, color=False), stream=stream
        )

        get_logger("app").info("hello")

        assert stream.getvalue().count(" :: ") == 3

    def test_unknown_sink_rejected(self):
        with pytest.raises(ValueError):
            configure_logging(sinks="stdio,syslog")


class TestFileSink:
    def test_writes_json_lines(self, tmp_path):
        path = tmp_path / "logs" / "app.log"
        configure_logging(level="INFO", sinks="file", file_path=str(path))

        get_logger("svc").info("to file", attempt=1)

        record = orjson.loads(path.read_text().splitlines()[0])
        assert record["message"] == "to file"
        assert record["attempt"] == 1

    def test_rotation(self, tmp_path):
        sink = FileSink(tmp_path / "app.log", max_bytes=200, backup_count=2)
        for i in range(20):
            sink.emit({"message": "x" * 50, "n": i})
        sink.close()

        assert (tmp_path / "app.1.log").exists()
        assert (tmp_path / "app.2.log").exists()
        assert not (tmp_path / "app.3.log").exists()
        assert (tmp_path / "app.log").stat().st_size <= 200
