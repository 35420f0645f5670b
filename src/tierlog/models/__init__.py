from .base import TIMESTAMP, Base, JSONType, LogRowMixin
from .logs import AppLog, HttpLog

__all__ = [
    "Base",
    "JSONType",
    "LogRowMixin",
    "TIMESTAMP",
    # Destinations
    "HttpLog",
    "AppLog",
]
