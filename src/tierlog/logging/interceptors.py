"""
Route stdlib logging (SQLAlchemy, redis-py, asyncio, DB drivers) into structlog
so the process has a single output stream.
"""

import logging

from .core import get_logger

THIRD_PARTY_ROOTS = ("sqlalchemy", "redis", "asyncio", "aiosqlite", "asyncpg")


def short_name(name: str) -> str:
    """Keep the last two dotted parts: "sqlalchemy.engine.Engine" -> "engine.Engine"."""
    return ".".join(name.split(".")[-2:]) if name else "stdlib"


class RedirectStdLibHandler(logging.Handler):
    """Re-emit stdlib records through a structlog logger of the same (shortened) name."""

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith("structlog"):
            return
        # Custom levels are snapped to the nearest standard one below them
        level = min(max(record.levelno // 10 * 10, logging.DEBUG), logging.CRITICAL)
        try:
            fields = {"exc_info": record.exc_info} if record.exc_info else {}
            get_logger(short_name(record.name)).log(level, record.getMessage(), **fields)
        except Exception:
            self.handleError(record)


def install_stdlib_redirect(level: int, third_party_level: int) -> RedirectStdLibHandler:
    """Attach one redirect handler to the root logger, replacing an earlier one."""
    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, RedirectStdLibHandler)]:
        root.removeHandler(handler)
    handler = RedirectStdLibHandler()
    root.addHandler(handler)
    root.setLevel(level)

    # Library loggers that carry their own handlers would print twice
    for name, lg in list(logging.Logger.manager.loggerDict.items()):
        if isinstance(lg, logging.Logger) and name.startswith(THIRD_PARTY_ROOTS):
            lg.handlers.clear()
            lg.propagate = True
    for name in THIRD_PARTY_ROOTS:
        logging.getLogger(name).setLevel(third_party_level)
    return handler
