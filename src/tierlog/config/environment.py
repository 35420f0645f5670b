"""
Deployment environment.

`TL_ENV` picks the .env files layered under every settings class and the
pipeline's drain policy: production drains the buffer into the database after
each flush, other environments only after warn/error batches and on
`flush_all()`.
"""

import os
from typing import Literal, get_args

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "testing", "staging", "production"]

ENV_VAR = "TL_ENV"


def current_env() -> str:
    """Raw `TL_ENV` value, read before any settings class is built."""
    return os.getenv(ENV_VAR, "development")


def env_files_for(env: str) -> tuple[str, ...]:
    """.env files in load order; a later file overrides an earlier one."""
    return (".env", ".env.local", f".env.{env}", f".env.{env}.local")


class EnvironmentSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Environment = Field(default="development", description=f"One of {', '.join(get_args(Environment))}")

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_testing(self) -> bool:
        return self.env == "testing"

    @property
    def env_files(self) -> tuple[str, ...]:
        return env_files_for(self.env)
