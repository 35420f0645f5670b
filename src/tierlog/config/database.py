"""
Relational Sink (Database) Configuration.
"""

from sqlalchemy.engine import make_url

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import current_env, env_files_for


class DatabaseSettings(BaseSettings):
    """Where `http_logs` / `app_logs` live and how the writer connects."""

    model_config = SettingsConfigDict(
        env_prefix="TL_DB_",
        env_file=env_files_for(current_env()),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default="postgresql+asyncpg://tierlog:@localhost:5432/tierlog_logs",
        description="SQLAlchemy async URL (postgresql+asyncpg or sqlite+aiosqlite)",
    )
    pool_size: int = Field(default=5, gt=0, description="Persistent connections kept by the sink")
    max_overflow: int = Field(default=5, ge=0, description="Extra connections allowed under burst")
    pool_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for a pooled connection")
    pool_recycle: int = Field(default=1800, description="Recycle connections older than this (seconds)")
    connect_timeout: float = Field(default=5.0, gt=0, description="Driver connect timeout (seconds)")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def safe_url(self) -> str:
        """URL with the password masked, for logs."""
        return make_url(self.url).render_as_string(hide_password=True)
