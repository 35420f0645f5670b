"""
tierlog settings.

One pydantic-settings class per concern, each with its own prefix:

    TL_ENV            environment     (development | testing | staging | production)
    TL_APP_*          app             service name, reported hostname
    TL_LOG_*          logging         console/file output
    TL_DB_*           database        relational sink
    TL_REDIS_*        redis           intermediate buffer
    TL_PIPELINE_*     pipeline        flush interval, queue cap, batch sizes

`.env`, `.env.local`, `.env.<env>` and `.env.<env>.local` are read in that
order. Building settings never opens a connection; see `tierlog.runtime`.
"""

from functools import cached_property, lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from .app import AppSettings
from .database import DatabaseSettings
from .environment import EnvironmentSettings, current_env, env_files_for
from .logging import LoggingSettings
from .pipeline import PipelineSettings
from .redis import RedisSettings


class Settings(BaseSettings):
    """Aggregate of the per-concern settings; each part loads on first access."""

    model_config = SettingsConfigDict(
        env_file=env_files_for(current_env()),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @cached_property
    def environment(self) -> EnvironmentSettings:
        return EnvironmentSettings()

    @cached_property
    def app(self) -> AppSettings:
        return AppSettings()

    @cached_property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()

    @cached_property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @cached_property
    def redis(self) -> RedisSettings:
        return RedisSettings()

    @cached_property
    def pipeline(self) -> PipelineSettings:
        return PipelineSettings()

    @property
    def app_name(self) -> str:
        return self.app.name

    @property
    def env(self) -> str:
        return self.environment.env


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "EnvironmentSettings",
    "LoggingSettings",
    "PipelineSettings",
    "RedisSettings",
    "Settings",
    "get_settings",
]
