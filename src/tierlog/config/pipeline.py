"""
Pipeline Configuration.

Flush cadence and memory bounds of the in-process Entry Queue.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import current_env, env_files_for


class PipelineSettings(BaseSettings):
    """Entry Queue and flush scheduling configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TL_PIPELINE_",
        env_file=env_files_for(current_env()),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    flush_interval_ms: int = Field(default=5000, gt=0, description="Periodic Entry Queue -> Buffer flush interval")
    max_memory_queue_size: int = Field(default=1000, gt=0, description="Entry Queue capacity and size-flush trigger")
    batch_size: int = Field(default=100, gt=0, description="Buffer -> Sink batch size used by flush_all")
    urgent_batch_size: int = Field(default=50, gt=0, description="Batch drained right after a severe flush")

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000
