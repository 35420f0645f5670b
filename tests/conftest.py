import typing as t
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncEngine

from tierlog.config import DatabaseSettings, PipelineSettings, RedisSettings
from tierlog.db import create_engine
from tierlog.pipeline import PipelineLogger, RedisLogBuffer, SqlLogSink


def _bounds(length: int, start: int, end: int) -> tuple[int, int]:
    """Redis list index semantics: inclusive end, negative indexes from the tail."""
    if start < 0:
        start += length
    if end < 0:
        end += length
    return max(start, 0), min(end, length - 1)


class FakeRedisPipeline:
    """Buffers list commands and applies them on execute(), like MULTI/EXEC."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._ops: list[tuple[str, tuple]] = []

    async def __aenter__(self) -> "FakeRedisPipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._ops.clear()

    def rpush(self, key, *values):
        self._ops.append(("rpush", (key, *values)))
        return self

    def lpush(self, key, *values):
        self._ops.append(("lpush", (key, *values)))
        return self

    def ltrim(self, key, start, end):
        self._ops.append(("ltrim", (key, start, end)))
        return self

    def lrange(self, key, start, end):
        self._ops.append(("lrange", (key, start, end)))
        return self

    async def execute(self):
        self._redis.check()
        self._redis.transactions += 1
        results = [getattr(self._redis, f"_{name}")(*args) for name, args in self._ops]
        self._ops.clear()
        return results


class FakeRedis:
    """In-memory stand-in for the list commands the buffer uses."""

    def __init__(self):
        self.lists: dict[str, list[bytes]] = {}
        self.fail = False
        self.closed = False
        self.ping_count = 0
        self.transactions = 0

    def check(self) -> None:
        if self.fail:
            raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        self.check()
        self.ping_count += 1
        return True

    async def llen(self, key) -> int:
        self.check()
        return len(self.lists.get(key, []))

    async def lrange(self, key, start, end):
        self.check()
        return self._lrange(key, start, end)

    async def delete(self, key) -> int:
        self.check()
        return 1 if self.lists.pop(key, None) is not None else 0

    async def aclose(self) -> None:
        self.closed = True

    def pipeline(self, transaction: bool = True) -> FakeRedisPipeline:
        return FakeRedisPipeline(self)

    def _rpush(self, key, *values) -> int:
        items = self.lists.setdefault(key, [])
        items.extend(values)
        return len(items)

    def _lpush(self, key, *values) -> int:
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    def _lrange(self, key, start, end):
        items = self.lists.get(key, [])
        lo, hi = _bounds(len(items), start, end)
        return list(items[lo : hi + 1]) if lo <= hi else []

    def _ltrim(self, key, start, end) -> bool:
        self.lists[key] = self._lrange(key, start, end)
        return True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_settings() -> RedisSettings:
    return RedisSettings(queue_key="test:logs:queue", backup_key="test:logs:backup", max_backup=10_000)


@pytest.fixture
def buffer(fake_redis, redis_settings) -> RedisLogBuffer:
    return RedisLogBuffer(redis_settings, client=fake_redis)


@pytest.fixture
async def db_engine() -> t.AsyncIterator[AsyncEngine]:
    """
    Function-scoped in-memory SQLite engine.
    The StaticPool keeps the single in-memory database alive across sessions.
    """
    engine = create_engine(DatabaseSettings(url="sqlite+aiosqlite://"))
    yield engine
    await engine.dispose()


@pytest.fixture
async def sink(db_engine) -> SqlLogSink:
    sink = SqlLogSink(db_engine, environment="testing")
    await sink.create_tables()
    return sink


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(flush_interval_ms=5000, max_memory_queue_size=1000, batch_size=100, urgent_batch_size=50)


@pytest.fixture
def console() -> MagicMock:
    return MagicMock(name="console")


@pytest.fixture
async def pipeline(buffer, sink, pipeline_settings, console) -> t.AsyncIterator[PipelineLogger]:
    logger = PipelineLogger(
        buffer,
        sink,
        settings=pipeline_settings,
        app_name="tierlog-test",
        environment="testing",
        console=console,
    )
    yield logger
    await logger.stop()
    await logger.join()
