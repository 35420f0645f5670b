from typing import Optional

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, LogRowMixin


class HttpLog(Base, LogRowMixin):
    """Request/access log rows (entries logged with type `request`)."""

    __tablename__ = "http_logs"

    request_path: Mapped[Optional[str]] = mapped_column(String(255))
    request_method: Mapped[Optional[str]] = mapped_column(String(10))
    status_code: Mapped[Optional[int]] = mapped_column(Integer)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        Index("http_logs_timestamp_level_idx", "timestamp", "level"),
        Index("http_logs_request_path_timestamp_idx", "request_path", "timestamp"),
        Index("http_logs_user_id_idx", "user_id"),
    )


class AppLog(Base, LogRowMixin):
    """Error/application log rows (type `error` and every warn/error entry)."""

    __tablename__ = "app_logs"

    error_name: Mapped[Optional[str]] = mapped_column(String(100))
    error_code: Mapped[Optional[str]] = mapped_column(String(100))
    stack_trace: Mapped[Optional[str]] = mapped_column(Text)
    component: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        Index("app_logs_timestamp_level_idx", "timestamp", "level"),
        Index("app_logs_error_name_timestamp_idx", "error_name", "timestamp"),
    )
