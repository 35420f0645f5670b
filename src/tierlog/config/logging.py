"""
Console/file output configuration.

This is the synchronous, human-facing path only; what reaches the durable
pipeline is decided by the pipeline itself, not by these levels.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import current_env, env_files_for


class OutputLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class OutputFormat(str, Enum):
    CONSOLE = "console"
    JSON = "json"


class LoggingSettings(BaseSettings):
    """Where console output goes and how it is laid out."""

    model_config = SettingsConfigDict(
        env_prefix="TL_LOG_",
        env_file=env_files_for(current_env()),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    level: OutputLevel = Field(default=OutputLevel.INFO, description="Minimum level written to the sinks")
    third_party_level: OutputLevel = Field(
        default=OutputLevel.WARNING,
        description="Level applied to sqlalchemy/redis/asyncio loggers",
    )
    sinks: str = Field(default="stdio", description="Comma-separated output sinks: stdio, file")
    format: OutputFormat = Field(default=OutputFormat.CONSOLE, description="stdio rendering")
    color: Optional[bool] = Field(default=None, description="Force ANSI colors on/off; unset means tty detection")

    file_path: str = Field(default="logs/tierlog.log", description="JSON-lines file for the file sink")
    file_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0, description="Rotate the file beyond this size")
    file_backup_count: int = Field(default=5, ge=1, description="Rotated files kept (name.1.log ... name.N.log)")

    console_timestamp_format: str = Field(default="%H:%M:%S.%f", description="strftime format of the first column")
    console_level_width: int = Field(default=7, description="Level column width")
    console_logger_width: int = Field(default=28, description="Logger column width")
    console_separator: str = Field(default="  ", description="Column separator")

    @property
    def sink_names(self) -> tuple[str, ...]:
        return tuple(name.strip().lower() for name in self.sinks.split(",") if name.strip())
