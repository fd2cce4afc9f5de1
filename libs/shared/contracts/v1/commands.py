from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

CommandKind = Literal["cancel", "restart", "approve", "reject", "kill"]
LoopRole = Literal["auto", "planner", "worker"]


class UserCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    api: Literal["v1"] = "v1"
    kind: CommandKind
    identity: str = Field(min_length=1)


class LoopConfig(BaseModel):
    """Spawn-time loop configuration; may be registered before the agent reports."""

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=50, ge=1)
    stop_word: str = "DONE"
    role: LoopRole = "auto"
    loop_dir: str | None = None  # persisted progress directory
    task_id: str | None = None  # workers are bound to exactly one task


# --- control channel requests -------------------------------------------------


class CommandRequest(BaseModel):
    type: Literal["command"] = "command"
    kind: str
    identity: str


class RegisterRequest(BaseModel):
    type: Literal["register"] = "register"
    key: str = Field(min_length=1)
    config: LoopConfig


class SnapshotRequest(BaseModel):
    type: Literal["snapshot"] = "snapshot"


ControlRequest = Annotated[
    CommandRequest | RegisterRequest | SnapshotRequest, Field(discriminator="type")
]
CONTROL_REQUEST: TypeAdapter[CommandRequest | RegisterRequest | SnapshotRequest] = TypeAdapter(
    ControlRequest
)
