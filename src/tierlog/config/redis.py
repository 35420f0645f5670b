"""
Intermediate Buffer (Redis) Configuration.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import current_env, env_files_for


class RedisSettings(BaseSettings):
    """Redis connection, key layout and reconnection policy."""

    model_config = SettingsConfigDict(
        env_prefix="TL_REDIS_",
        env_file=env_files_for(current_env()),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    queue_key: str = Field(default="tierlog:logs:queue", description="Main FIFO list consumed by the sink drain")
    backup_key: str = Field(default="tierlog:logs:backup", description="Bounded list of warn/error entries")
    max_backup: int = Field(default=10_000, gt=0, description="Maximum entries kept in the backup list")
    max_retries: int = Field(default=5, ge=0, description="Reconnection attempts per command")
    backoff_step_seconds: float = Field(default=1.0, gt=0, description="Linear backoff increment per retry")
    backoff_cap_seconds: float = Field(default=30.0, gt=0, description="Upper bound for a single backoff sleep")
    socket_timeout: float | None = Field(default=5.0, description="Socket timeout in seconds")
