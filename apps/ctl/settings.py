from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CtlSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HVW_", extra="ignore")

    # choose transport impl
    ipc_impl: Literal["inproc", "zmq"] = "zmq"
    control_connect: str = "tcp://127.0.0.1:7790"
    snapshot_connect: str = "tcp://127.0.0.1:7791"
