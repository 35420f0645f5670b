"""
Output sinks for the console/file path.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Literal

import orjson
from structlog.typing import EventDict

from .formatters import ConsoleLayout, ConsoleRenderer

OutputFormat = Literal["console", "json"]


def dumps(event_dict: EventDict) -> str:
    """One JSON line; objects orjson cannot encode are written as str()."""
    return orjson.dumps(event_dict, default=str, option=orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC).decode()


class BaseSink(ABC):
    @abstractmethod
    def emit(self, event_dict: EventDict) -> None: ...

    def close(self) -> None:
        pass


class StdioSink(BaseSink):
    """Writes to a text stream (stdout by default), either aligned console lines or JSON.

    `color=None` enables ANSI colors only when the stream is a terminal.
    """

    def __init__(
        self,
        fmt: OutputFormat = "console",
        stream: IO[str] | None = None,
        *,
        layout: ConsoleLayout | None = None,
        color: bool | None = None,
    ):
        self.stream = stream or sys.stdout
        if color is None:
            isatty = getattr(self.stream, "isatty", None)
            color = bool(isatty and isatty())
        self._render = dumps if fmt == "json" else ConsoleRenderer(layout, color=color)

    def emit(self, event_dict: EventDict) -> None:
        self.stream.write(self._render(event_dict) + "\n")
        self.stream.flush()


class FileSink(BaseSink):
    """JSON-lines file; past `max_bytes` it rotates to app.1.log, app.2.log, ..."""

    def __init__(self, path: str | Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self._fh = self.path.open("a", encoding="utf-8")

    def rotated(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.stem}.{index}{self.path.suffix}")

    def emit(self, event_dict: EventDict) -> None:
        self._fh.write(dumps(event_dict) + "\n")
        self._fh.flush()
        if self._fh.tell() > self.max_bytes:
            self.rotate()

    def rotate(self) -> None:
        self._fh.close()
        self.rotated(self.backup_count).unlink(missing_ok=True)
        for index in range(self.backup_count - 1, 0, -1):
            if self.rotated(index).exists():
                self.rotated(index).replace(self.rotated(index + 1))
        self.path.replace(self.rotated(1))
        self._fh = self.path.open("a", encoding="utf-8")

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()


def build_sinks(
    names: tuple[str, ...] | list[str],
    *,
    fmt: OutputFormat = "console",
    stream: IO[str] | None = None,
    layout: ConsoleLayout | None = None,
    color: bool | None = None,
    file_path: str | Path = "logs/tierlog.log",
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
) -> list[BaseSink]:
    """Instantiate sinks by name; unknown names raise ValueError."""
    sinks: list[BaseSink] = []
    for name in names:
        if name == "stdio":
            sinks.append(StdioSink(fmt, stream, layout=layout, color=color))
        elif name == "file":
            sinks.append(FileSink(file_path, file_max_bytes, file_backup_count))
        else:
            raise ValueError(f"unknown log sink {name!r}; expected 'stdio' or 'file'")
    return sinks
