"""
Application identity stamped onto every durable log entry.
"""

import socket
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .environment import current_env, env_files_for


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TL_APP_",
        env_file=env_files_for(current_env()),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    name: str = Field(default="tierlog", description="Service name written to app_name/service columns")
    hostname: Optional[str] = Field(
        default=None,
        description="Host reported in log rows; container deployments often set the node name here",
    )

    @property
    def resolved_hostname(self) -> str:
        return self.hostname or socket.gethostname()
