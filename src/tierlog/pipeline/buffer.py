"""
Intermediate Buffer client (Redis).

The buffer is the crash boundary between process memory and the relational
sink: once `push_logs` returns, the entries survive a process restart.

Key layout:
- main queue (`RPUSH` at the tail, consumed from the head): every durable entry;
- backup list (`LPUSH` + `LTRIM`, newest first): warn/error entries only,
  capped at `max_backup`, never drained by the pipeline; kept for manual
  inspection after data loss elsewhere.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from tierlog.config import RedisSettings
from tierlog.exceptions import BufferUnavailableError
from tierlog.logging import get_logger

from .types import ExtendedLogEntry

logger = get_logger("tierlog.pipeline.buffer")


class LinearBackoff(AbstractBackoff):
    """Reconnection delay growing by `step` per failure, capped at `cap` seconds."""

    def __init__(self, step: float = 1.0, cap: float = 30.0):
        self._step = step
        self._cap = cap

    def reset(self) -> None:
        pass

    def compute(self, failures: int) -> float:
        return min(failures * self._step, self._cap)


class RedisLogBuffer:
    """Redis-backed Intermediate Buffer.

    Every operation calls `connect()` first, so the client is created lazily
    and exactly once. `push_logs`, `get_logs` and `get_log_count` raise
    `BufferUnavailableError`; `ping` never raises.
    """

    def __init__(self, settings: Optional[RedisSettings] = None, *, client: Optional[Redis] = None):
        self._settings = settings or RedisSettings()
        self._client: Optional[Redis] = client
        self._connected = False

    @property
    def queue_key(self) -> str:
        return self._settings.queue_key

    @property
    def backup_key(self) -> str:
        return self._settings.backup_key

    @property
    def max_backup(self) -> int:
        return self._settings.max_backup

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _build_client(self) -> Redis:
        retry = Retry(
            LinearBackoff(self._settings.backoff_step_seconds, self._settings.backoff_cap_seconds),
            self._settings.max_retries,
        )
        return Redis.from_url(
            self._settings.url,
            retry=retry,
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
            socket_timeout=self._settings.socket_timeout,
            socket_connect_timeout=self._settings.socket_timeout,
        )

    async def connect(self) -> None:
        """Create the client and verify the connection once; later calls are no-ops."""
        if self._connected:
            return
        if self._client is None:
            self._client = self._build_client()
        try:
            await self._client.ping()
        except (RedisError, OSError) as exc:
            raise BufferUnavailableError(operation="connect", reason=str(exc)) from exc
        self._connected = True
        logger.debug("buffer_connected", queue_key=self.queue_key)

    async def ping(self) -> bool:
        """Liveness probe."""
        try:
            await self.connect()
            await self._client.ping()
            return True
        except (BufferUnavailableError, RedisError, OSError) as exc:
            self._connected = False
            logger.warning("buffer_ping_failed", error=str(exc))
            return False

    async def push_logs(self, entries: Sequence[ExtendedLogEntry]) -> int:
        """Append entries to the main queue in order; returns how many were pushed."""
        if not entries:
            return 0
        await self.connect()

        payloads = [entry.to_json() for entry in entries]
        severe = [payload for entry, payload in zip(entries, payloads) if entry.level.is_severe]

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.rpush(self.queue_key, *payloads)
                if severe:
                    pipe.lpush(self.backup_key, *severe)
                    pipe.ltrim(self.backup_key, 0, self.max_backup - 1)
                await pipe.execute()
        except (RedisError, OSError) as exc:
            self._connected = False
            raise BufferUnavailableError(operation="push_logs", reason=str(exc)) from exc

        return len(entries)

    async def get_logs(self, count: int = 100) -> List[ExtendedLogEntry]:
        """Remove and return up to `count` entries, oldest first.

        LRANGE and LTRIM run in one MULTI/EXEC, so an entry is handed out once.
        """
        if count <= 0:
            return []
        await self.connect()

        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lrange(self.queue_key, 0, count - 1)
                pipe.ltrim(self.queue_key, count, -1)
                raw, _ = await pipe.execute()
        except (RedisError, OSError) as exc:
            self._connected = False
            raise BufferUnavailableError(operation="get_logs", reason=str(exc)) from exc

        return self._decode(raw)

    async def get_log_count(self) -> int:
        await self.connect()
        try:
            return int(await self._client.llen(self.queue_key))
        except (RedisError, OSError) as exc:
            self._connected = False
            raise BufferUnavailableError(operation="get_log_count", reason=str(exc)) from exc

    async def get_backup_logs(self, count: int = 100) -> List[ExtendedLogEntry]:
        """Newest warn/error entries from the backup list, without removing them."""
        if count <= 0:
            return []
        await self.connect()
        try:
            raw = await self._client.lrange(self.backup_key, 0, count - 1)
        except (RedisError, OSError) as exc:
            self._connected = False
            raise BufferUnavailableError(operation="get_backup_logs", reason=str(exc)) from exc
        return self._decode(raw)

    async def clear_logs(self) -> None:
        """Delete the main queue. The backup list is left alone."""
        await self.connect()
        try:
            await self._client.delete(self.queue_key)
        except (RedisError, OSError) as exc:
            self._connected = False
            raise BufferUnavailableError(operation="clear_logs", reason=str(exc)) from exc

    async def disconnect(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:
            logger.warning("buffer_disconnect_failed", error=str(exc))
        finally:
            self._client = None
            self._connected = False

    @staticmethod
    def _decode(raw: Sequence[Any]) -> List[ExtendedLogEntry]:
        entries: List[ExtendedLogEntry] = []
        for item in raw:
            try:
                entries.append(ExtendedLogEntry.from_json(item))
            except (ValidationError, ValueError) as exc:
                logger.warning("buffer_entry_undecodable", error=str(exc))
        return entries
