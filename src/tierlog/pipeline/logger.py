"""
Pipeline orchestrator: the public logging facade.

    log() ──▶ console (sync) ──▶ EntryQueue ──[timer | size | severity]──▶
        Redis buffer ──[flush_all | urgent drain]──▶ classify ──▶ http_logs / app_logs

Everything runs on one asyncio event loop. The logging calls are synchronous
and never raise; flushes are scheduled as background tasks on the running
loop. A `_flushing` flag keeps at most one EntryQueue -> buffer transfer in
flight; a flush requested meanwhile is a no-op and the next trigger picks up
whatever accumulated.
"""

from __future__ import annotations

import asyncio
import os
import signal
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from tierlog.config import PipelineSettings
from tierlog.exceptions import BufferUnavailableError
from tierlog.logging import get_logger

from .buffer import RedisLogBuffer
from .queue import EntryQueue
from .sink import SqlLogSink
from .types import (
    Destination,
    ExtendedLogEntry,
    LogEntry,
    LogLevel,
    LogMetadata,
    LogType,
    MetadataInput,
    classify,
)

logger = get_logger("tierlog.pipeline.logger")

# Keys that cannot be passed through to structlog as keyword arguments
_RESERVED_CONSOLE_KEYS = frozenset({"level", "event", "message", "logger", "timestamp", "_name"})

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass
class DrainResult:
    """Outcome of moving one batch from the buffer to the sink."""

    fetched: int = 0
    stored_requests: int = 0
    stored_errors: int = 0
    skipped: int = 0

    @property
    def stored(self) -> int:
        return self.stored_requests + self.stored_errors


class _LoggingMethods(ABC):
    """Public logging API shared by the pipeline and its bound children.

    None of these calls raise: an unknown level is logged at info with the
    original value kept as `raw_level`, and metadata fields of the wrong
    type are kept in `extra`.
    """

    @abstractmethod
    def _record(self, level: LogLevel, message: str, metadata: LogMetadata, log_type: LogType) -> None: ...

    def _dispatch(self, level: LogLevel | str, message: str, metadata: MetadataInput, log_type: LogType) -> None:
        resolved = LogMetadata.lenient(metadata)
        try:
            resolved_level = LogLevel(level)
        except (TypeError, ValueError):
            resolved_level = LogLevel.INFO
            resolved = resolved.merged({"raw_level": str(level)})
        self._record(resolved_level, str(message), resolved, log_type)

    def log(self, level: LogLevel | str, message: str, metadata: MetadataInput = None) -> None:
        """Console log; persisted only when the level is warn or error."""
        self._dispatch(level, message, metadata, LogType.CONSOLE)

    def log_request(self, level: LogLevel | str, message: str, metadata: MetadataInput = None) -> None:
        """Request/access log, stored in `http_logs` (or `app_logs` when severe)."""
        self._dispatch(level, message, metadata, LogType.REQUEST)

    def log_error(self, level: LogLevel | str, message: str, metadata: MetadataInput = None) -> None:
        """Application/error log, stored in `app_logs`."""
        self._dispatch(level, message, metadata, LogType.ERROR)

    def debug(self, message: str, metadata: MetadataInput = None) -> None:
        self.log(LogLevel.DEBUG, message, metadata)

    def info(self, message: str, metadata: MetadataInput = None) -> None:
        self.log(LogLevel.INFO, message, metadata)

    def warn(self, message: str, metadata: MetadataInput = None) -> None:
        # Warnings go to the error table, kept for compatibility with existing dashboards
        self.log_error(LogLevel.WARN, message, metadata)

    warning = warn

    def error(self, message: str, metadata: MetadataInput = None) -> None:
        self.log_error(LogLevel.ERROR, message, metadata)


class BoundLogger(_LoggingMethods):
    """A view of a pipeline that merges default metadata into every call.

    Shares the parent's queue, buffer and sink; binding never mutates the
    parent. Metadata passed to a call wins over the bound defaults.
    """

    def __init__(self, pipeline: "PipelineLogger", defaults: LogMetadata):
        self._pipeline = pipeline
        self._defaults = defaults

    @property
    def pipeline(self) -> "PipelineLogger":
        return self._pipeline

    @property
    def defaults(self) -> LogMetadata:
        return self._defaults

    def _record(self, level: LogLevel, message: str, metadata: LogMetadata, log_type: LogType) -> None:
        self._pipeline._record(level, message, self._defaults.merged(metadata), log_type)

    def child(self, default_metadata: MetadataInput = None) -> "BoundLogger":
        return BoundLogger(self._pipeline, self._defaults.merged(default_metadata))


class PipelineLogger(_LoggingMethods):
    """
    Orchestrates the three tiers of the log pipeline.

    Construct one per process and hand it to collaborators; `initialize()`
    at startup and `shutdown()` before exit.

    Args:
        buffer: Intermediate Buffer client.
        sink: Relational Sink writer.
        settings: Flush interval, queue cap and batch sizes.
        app_name: Stamped on every durable entry; also the console logger name.
        environment: In "production" every successful flush also drains one
            batch to the sink.
        console: structlog logger used for the synchronous console emit.
        hostname: Reported on durable entries; defaults to the machine name.
    """

    def __init__(
        self,
        buffer: RedisLogBuffer,
        sink: SqlLogSink,
        *,
        settings: Optional[PipelineSettings] = None,
        app_name: str = "tierlog",
        environment: str = "development",
        console: Any = None,
        hostname: Optional[str] = None,
    ):
        self._settings = settings or PipelineSettings()
        self._buffer = buffer
        self._sink = sink
        self._queue = EntryQueue(self._settings.max_memory_queue_size)
        self._app_name = app_name
        self._environment = environment
        self._hostname = hostname or socket.gethostname()
        self._console = console or get_logger(app_name)

        self._flushing = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._timer_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._shutdown_task: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()
        self._signal_loop: Optional[asyncio.AbstractEventLoop] = None

        self._buffer_status = False
        self._sink_status = False

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def queue(self) -> EntryQueue:
        return self._queue

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    @property
    def is_production(self) -> bool:
        return self._environment == "production"

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def is_flushing(self) -> bool:
        return self._flushing

    def get_status(self) -> Dict[str, Any]:
        return {
            "memory_queue_size": self._queue.size,
            "memory_queue_max_size": self._queue.capacity,
            "memory_queue_dropped": self._queue.dropped,
            "buffer_connected": self._buffer_status,
            "sink_connected": self._sink_status,
            "sink_state": self._sink.state.value,
            "environment": self._environment,
            "running": self.is_running,
        }

    # =========================================================================
    # Logging API
    # =========================================================================

    def child(self, default_metadata: MetadataInput = None) -> BoundLogger:
        """Return a logger that merges `default_metadata` into every call."""
        return BoundLogger(self, LogMetadata.lenient(default_metadata))

    def _record(self, level: LogLevel, message: str, metadata: LogMetadata, log_type: LogType) -> None:
        entry = LogEntry(
            level=level,
            message=message,
            log_type=log_type,
            metadata=metadata,
        )

        if entry.should_persist:
            size = self._queue.enqueue(entry)
            if size >= self._queue.capacity or level.is_severe:
                self._schedule_flush()

        self._emit_console(entry)

    def _emit_console(self, entry: LogEntry) -> None:
        fields: Dict[str, Any] = {}
        for key, value in entry.metadata.flatten().items():
            fields[f"meta_{key}" if key in _RESERVED_CONSOLE_KEYS else key] = value
        if entry.log_type is not LogType.CONSOLE:
            fields["log_type"] = entry.log_type.value
        self._console.log(entry.level.stdlib_level, entry.message, **fields)

    # =========================================================================
    # Flushing
    # =========================================================================

    def _schedule_flush(self) -> None:
        """Start a background flush on the running loop, if there is one."""
        if self._flushing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the entry waits for the next flush_all() or timer tick
            return
        self._spawn(loop, self._guarded(self.flush_to_buffer, "scheduled_flush"))

    def _spawn(self, loop: asyncio.AbstractEventLoop, coro: Awaitable[Any]) -> asyncio.Task:
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _guarded(self, fn: Callable[[], Awaitable[Any]], operation: str) -> None:
        """Run pipeline work from a background task; failures are reported, never raised."""
        try:
            await fn()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("pipeline_task_failed", operation=operation)

    async def join(self) -> None:
        """Wait until every background flush, and any flush in flight, has finished."""
        while self._background or not self._idle.is_set():
            if self._background:
                await asyncio.gather(*list(self._background), return_exceptions=True)
            else:
                await self._idle.wait()

    async def flush_to_buffer(self) -> int:
        """
        Move the whole EntryQueue into the buffer; returns entries pushed.

        No-op while another flush is in flight. If the push fails the batch is
        put back at the front of the queue, truncated to the queue capacity.
        """
        if self._flushing or self._queue.is_empty():
            return 0

        self._flushing = True
        self._idle.clear()
        batch = self._queue.drain_all()
        try:
            extended = [self._enrich(entry) for entry in batch]
            pushed = await self._buffer.push_logs(extended)
        except BufferUnavailableError as exc:
            dropped = self._queue.requeue(batch)
            self._buffer_status = False
            logger.error(
                "flush_to_buffer_failed",
                error=str(exc),
                requeued=len(batch) - dropped,
                dropped=dropped,
            )
            return 0
        except asyncio.CancelledError:
            # The batch may already be in Redis; the sink skips duplicate ids
            dropped = self._queue.requeue(batch)
            logger.warning("flush_to_buffer_cancelled", requeued=len(batch) - dropped, dropped=dropped)
            raise
        finally:
            self._flushing = False
            self._idle.set()

        self._buffer_status = True
        if self.is_production or any(entry.level.is_severe for entry in batch):
            await self.drain_buffer(self._settings.urgent_batch_size)
        return pushed

    async def drain_buffer(self, batch_size: Optional[int] = None) -> DrainResult:
        """Move one batch from the buffer to the sink, routed by destination."""
        result = DrainResult()
        try:
            entries = await self._buffer.get_logs(batch_size or self._settings.batch_size)
        except BufferUnavailableError as exc:
            self._buffer_status = False
            logger.warning("drain_buffer_failed", error=str(exc))
            return result

        result.fetched = len(entries)
        if not entries:
            return result

        routed: Dict[Destination, List[ExtendedLogEntry]] = {Destination.HTTP: [], Destination.APP: []}
        for entry in entries:
            destination = classify(entry)
            if destination is None:
                result.skipped += 1
            else:
                routed[destination].append(entry)

        if routed[Destination.HTTP]:
            result.stored_requests = await self._sink.store_request_logs(routed[Destination.HTTP])
        if routed[Destination.APP]:
            result.stored_errors = await self._sink.store_error_logs(routed[Destination.APP])
        self._sink_status = self._sink.is_healthy

        expected = len(routed[Destination.HTTP]) + len(routed[Destination.APP])
        if not self._sink.is_healthy and expected:
            logger.error("sink_batch_lost", fetched=result.fetched, stored=result.stored)
        return result

    async def flush_all(self) -> None:
        """Drain EntryQueue -> buffer -> sink until the buffer is empty. Never raises."""
        await self.join()
        try:
            await self.flush_to_buffer()
            while True:
                result = await self.drain_buffer(self._settings.batch_size)
                if result.fetched == 0:
                    break
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("flush_all_failed")

    def _enrich(self, entry: LogEntry) -> ExtendedLogEntry:
        return ExtendedLogEntry.enrich(
            entry,
            hostname=self._hostname,
            pid=os.getpid(),
            app_name=self._app_name,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the periodic flush task on the running loop. Idempotent."""
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        self._timer_task = loop.create_task(self._run_timer(), name="tierlog-flush-timer")

    async def _run_timer(self) -> None:
        interval = self._settings.flush_interval_seconds
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(interval)
            # Tracked and shielded: stop() must not cancel a push halfway
            tick = self._spawn(loop, self._guarded(self.flush_to_buffer, "periodic_flush"))
            await asyncio.shield(tick)

    async def stop(self) -> None:
        """Stop the periodic flush task."""
        task, self._timer_task = self._timer_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def health_check(self) -> Dict[str, bool]:
        """Probe each downstream tier independently. Never raises."""
        self._buffer_status = await self._probe(self._buffer.ping, "intermediate_buffer")
        self._sink_status = await self._probe(self._sink.test_connection, "relational_sink")
        return {
            "intermediate_buffer": self._buffer_status,
            "relational_sink": self._sink_status,
            "entry_queue": True,
        }

    async def _probe(self, probe: Callable[[], Awaitable[bool]], component: str) -> bool:
        try:
            return bool(await probe())
        except Exception:
            logger.exception("health_probe_failed", component=component)
            return False

    async def initialize(self, *, install_signal_handlers: bool = True) -> bool:
        """
        Probe both tiers, start the flush timer and install shutdown hooks.

        Returns True only when both tiers answered. On False the pipeline keeps
        working: entries are logged to the console and retried from memory.
        """
        health = await self.health_check()
        self.start()
        if install_signal_handlers:
            self._install_signal_handlers()

        ok = health["intermediate_buffer"] and health["relational_sink"]
        if not ok:
            logger.warning("pipeline_degraded_at_startup", **health)
        else:
            logger.info("pipeline_initialized", app_name=self._app_name, environment=self._environment)
        return ok

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not available on this platform or outside the main thread
                logger.debug("signal_handler_unavailable", signal=sig.name)
                return
        self._signal_loop = loop

    def _remove_signal_handlers(self) -> None:
        loop, self._signal_loop = self._signal_loop, None
        if loop is None or loop.is_closed():
            return
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        self.request_shutdown()

    def request_shutdown(self) -> asyncio.Task:
        """Schedule `shutdown()` once; returns its task."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.get_running_loop().create_task(self._shutdown())
        return self._shutdown_task

    async def shutdown(self) -> None:
        """Stop the timer, drain every tier, then disconnect. Safe to call repeatedly."""
        await asyncio.shield(self.request_shutdown())

    async def _shutdown(self) -> None:
        await self.stop()
        await self.flush_all()
        await self._buffer.disconnect()
        await self._sink.disconnect()
        self._buffer_status = False
        self._sink_status = False
        self._remove_signal_handlers()
        logger.info("pipeline_shutdown_complete", **self.get_status())
        self._closed.set()

    async def wait_closed(self) -> None:
        """Block until shutdown has completed (e.g. after a termination signal)."""
        await self._closed.wait()
