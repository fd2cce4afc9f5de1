from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from apps.monitor.settings import default_socket_path


class BridgeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HVW_", extra="ignore")

    socket_path: str = Field(default_factory=default_socket_path)
    timeout_s: float = 1.0
