from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

TIMESTAMP = DateTime(timezone=True)


class Base(DeclarativeBase):
    """Declarative base for the log tables."""

    pass


class LogRowMixin:
    """Columns shared by both destinations.

    `id` is the entry id assigned when the log call was made, so replaying a
    batch after redelivery collides on the primary key instead of duplicating.
    """

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(TIMESTAMP, server_default=func.now(), nullable=False)
    level: Mapped[str] = mapped_column(String(10), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    service: Mapped[Optional[str]] = mapped_column(String(100))
    environment: Mapped[Optional[str]] = mapped_column(String(20))
    request_id: Mapped[Optional[str]] = mapped_column(String(100))
    trace_id: Mapped[Optional[str]] = mapped_column(String(100))
    user_id: Mapped[Optional[str]] = mapped_column(String(100))
    hostname: Mapped[Optional[str]] = mapped_column(String(255))
    pid: Mapped[Optional[int]] = mapped_column()
    app_name: Mapped[Optional[str]] = mapped_column(String(100))
    context: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)
