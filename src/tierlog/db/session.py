from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tierlog.config import DatabaseSettings


def engine_options(settings: DatabaseSettings) -> Dict[str, Any]:
    """Engine keyword arguments for the configured backend.

    SQLite takes no pool sizing; an in-memory SQLite database must share one
    connection or each session would see an empty database.
    """
    if settings.is_sqlite:
        options: Dict[str, Any] = {"echo": settings.echo, "connect_args": {"timeout": settings.connect_timeout}}
        database = settings.url.split("://", 1)[-1]
        if database in ("", "/") or ":memory:" in database:
            options["poolclass"] = StaticPool
        return options
    return {
        "echo": settings.echo,
        "pool_pre_ping": True,
        "pool_size": settings.pool_size,
        "max_overflow": settings.max_overflow,
        "pool_timeout": settings.pool_timeout,
        "pool_recycle": settings.pool_recycle,
        "connect_args": {"timeout": settings.connect_timeout},
    }


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    return create_async_engine(settings.url, **engine_options(settings))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
