from __future__ import annotations

import pytest
from pydantic import ValidationError
from shared.contracts.v1.commands import (
    CONTROL_REQUEST,
    CommandRequest,
    LoopConfig,
    RegisterRequest,
    SnapshotRequest,
    UserCommand,
)
from shared.contracts.v1.hook import EventKind, HookEvent
from shared.contracts.v1.ipc_wire import SCHEMA_V1, ControlEnvelope


def test_hook_event_minimal_record():
    ev = HookEvent.model_validate(
        {"event_kind": "PreToolUse", "identity_hint": "%3", "timestamp": 1.5, "tool_name": "Read"}
    )
    assert ev.event_kind is EventKind.PRE_TOOL_USE
    assert ev.identity_hint == "%3"
    assert ev.project == ""
    assert ev.tool_name == "Read"


def test_hook_event_accepts_legacy_field_names():
    ev = HookEvent.model_validate_json(
        '{"event": "Stop", "pane_id": "%1", "timestamp": 2, "status": "idle", "reason": "ok"}'
    )
    assert ev.event_kind is EventKind.STOP
    assert ev.identity_hint == "%1"
    assert ev.reason == "ok"


def test_unknown_kind_degrades_instead_of_failing():
    ev = HookEvent.model_validate({"event_kind": "TeleportStart", "identity_hint": "a", "timestamp": 0})
    assert ev.event_kind is EventKind.UNKNOWN


@pytest.mark.parametrize("identity", ["", "   "])
def test_blank_identity_is_rejected(identity: str):
    with pytest.raises(ValidationError):
        HookEvent.model_validate({"event_kind": "Stop", "identity_hint": identity, "timestamp": 0})


def test_missing_timestamp_is_rejected():
    with pytest.raises(ValidationError):
        HookEvent.model_validate({"event_kind": "Stop", "identity_hint": "a"})


def test_context_usage_is_clamped():
    ev = HookEvent.model_validate(
        {"event_kind": "Stop", "identity_hint": "a", "timestamp": 0, "context_usage": 140}
    )
    assert ev.context_usage == 100.0


def test_user_command_rejects_unknown_kind():
    assert UserCommand(kind="approve", identity="%1").api == "v1"
    with pytest.raises(ValidationError):
        UserCommand.model_validate({"kind": "explode", "identity": "%1"})


def test_loop_config_defaults_and_bounds():
    cfg = LoopConfig()
    assert cfg.max_iterations == 50
    assert cfg.stop_word == "DONE"
    assert cfg.role == "auto"
    with pytest.raises(ValidationError):
        LoopConfig(max_iterations=0)


def test_control_requests_are_discriminated_by_type():
    assert isinstance(
        CONTROL_REQUEST.validate_python({"type": "command", "kind": "cancel", "identity": "%1"}),
        CommandRequest,
    )
    reg = CONTROL_REQUEST.validate_python(
        {"type": "register", "key": "%2", "config": {"max_iterations": 3, "role": "planner"}}
    )
    assert isinstance(reg, RegisterRequest)
    assert reg.config.max_iterations == 3
    assert isinstance(CONTROL_REQUEST.validate_python({"type": "snapshot"}), SnapshotRequest)
    with pytest.raises(ValidationError):
        CONTROL_REQUEST.validate_python({"type": "reboot"})


def test_control_envelope_defaults():
    env = ControlEnvelope(msg_id="m1", request={"type": "snapshot"})
    dumped = env.model_dump(mode="json")
    assert dumped["schema_version"] == SCHEMA_V1
    assert dumped["msg_id"] == "m1"
    assert isinstance(dumped["ts"], str)
