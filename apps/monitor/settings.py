from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_socket_path() -> str:
    runtime = os.environ.get("XDG_RUNTIME_DIR") or "/tmp"
    return os.path.join(runtime, "hivewatch.sock")


class LoopSettings(BaseModel):
    max_workers: int = 3
    spawn_delay_s: float = 1.0
    worker_max_iterations: int = 10
    default_max_iterations: int = 50
    default_stop_word: str = "DONE"
    continue_input: str = "continue"
    stall_window: int = 5


class MonitorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HVW_", extra="ignore")

    # hook socket
    socket_path: str = Field(default_factory=default_socket_path)
    max_connections: int = 100
    read_timeout_s: float = 2.0
    max_record_bytes: int = 65536

    # ordered queue
    queue_capacity: int = 4096
    put_timeout_s: float = 2.0

    # agent store
    max_agents: int = 500
    idle_timeout_s: float = 60.0
    stale_timeout_s: float = 300.0
    pending_config_timeout_s: float = 300.0

    # timers
    logic_tick_hz: float = 1.0
    render_tick_hz: float = 30.0
    reconcile_interval_s: float = 3.0
    reconcile_enabled: bool = True

    loop: LoopSettings = Field(default_factory=LoopSettings)

    # choose transport impl
    ipc_impl: Literal["inproc", "zmq"] = "inproc"
    control_bind: str = "tcp://127.0.0.1:7790"
    snapshot_bind: str = "tcp://127.0.0.1:7791"

    # where commands for agent sessions go
    sink_impl: Literal["tmux", "fake"] = "tmux"
    agent_command: str = "claude"
    dispatch_capacity: int = 256

    log_level: str = "INFO"
