from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from shared.config.loader import (
    load_bridge_settings,
    load_ctl_settings,
    load_monitor_settings,
)


def _write_profile(dirpath: Path, name: str, text: str) -> Path:
    dirpath.mkdir(parents=True, exist_ok=True)
    p = dirpath / f"{name}.toml"
    p.write_text(text, encoding="utf-8")
    return p


def test_monitor_defaults_when_no_profile_and_no_env(tmp_path: Path):
    # Empty profiles dir; empty env → fall back to model defaults
    s = load_monitor_settings(env={"HVW_CONFIG_DIR": str(tmp_path)}, profile="dev")
    assert s.max_agents == 500
    assert s.idle_timeout_s == 60.0
    assert s.stale_timeout_s == 300.0
    assert s.ipc_impl == "inproc"
    assert s.loop.max_workers == 3
    assert s.socket_path.endswith("hivewatch.sock")


def test_repo_dev_profile_is_loadable():
    s = load_monitor_settings(env={}, profile="dev")
    assert s.ipc_impl == "zmq"
    assert s.sink_impl == "tmux"
    assert s.control_bind.endswith(":7790")


def test_monitor_toml_overlay(tmp_path: Path):
    profiles = tmp_path / "profiles"
    _write_profile(
        profiles,
        "dev",
        """
        [monitor]
        max_agents = 25
        idle_timeout_s = 12.5
        socket_path = "/tmp/hvw-test.sock"

        [monitor.loop]
        max_workers = 5
        """,
    )

    env = {
        "HVW_CONFIG_DIR": str(profiles),
        "HVW_PROFILE": "dev",
    }
    s = load_monitor_settings(env=env)
    assert s.max_agents == 25
    assert s.idle_timeout_s == 12.5
    assert s.socket_path == "/tmp/hvw-test.sock"
    assert s.loop.max_workers == 5
    # untouched nested keys keep their defaults
    assert s.loop.spawn_delay_s == 1.0


def test_monitor_env_overrides_toml(tmp_path: Path):
    profiles = tmp_path / "profiles"
    _write_profile(
        profiles,
        "dev",
        """
        [monitor]
        max_agents = 25
        ipc_impl = "zmq"
        """,
    )

    env: dict[str, Any] = {
        "HVW_CONFIG_DIR": str(profiles),
        "HVW_PROFILE": "dev",
        # Flat HVW_* keys override TOML
        "HVW_MAX_AGENTS": "7",
        "HVW_IDLE_TIMEOUT_S": "30",  # string parses to number
        "HVW_IPC_IMPL": "inproc",
        # Case-insensitive after the prefix; complex values as JSON
        "HVW_loop": '{"max_workers": 1, "spawn_delay_s": 0.0}',
    }
    s = load_monitor_settings(env=env)
    assert s.max_agents == 7
    assert s.idle_timeout_s == 30.0
    assert s.ipc_impl == "inproc"
    assert s.loop.max_workers == 1
    assert s.loop.spawn_delay_s == 0.0


def test_bridge_and_ctl_sections(tmp_path: Path):
    profiles = tmp_path / "profiles"
    _write_profile(
        profiles,
        "dev",
        """
        [bridge]
        socket_path = "/run/user/1/hw.sock"
        timeout_s = 0.25

        [ctl]
        control_connect = "tcp://127.0.0.1:9990"
        """,
    )
    env = {"HVW_CONFIG_DIR": str(profiles)}

    b = load_bridge_settings(env=env)
    assert b.socket_path == "/run/user/1/hw.sock"
    assert b.timeout_s == 0.25

    c = load_ctl_settings(env=env)
    assert c.control_connect == "tcp://127.0.0.1:9990"
    assert c.ipc_impl == "zmq"


def test_profile_dir_override_via_env(tmp_path: Path):
    # Put a profile file in a non-standard location and point HVW_CONFIG_DIR to it.
    profiles = tmp_path / "custom_profiles"
    _write_profile(
        profiles,
        "myprof",
        """
        [monitor]
        max_agents = 3
        """,
    )

    env = {
        "HVW_CONFIG_DIR": str(profiles),
        "HVW_PROFILE": "myprof",
    }
    s = load_monitor_settings(env=env)
    assert s.max_agents == 3


def test_bad_toml_raises_runtime_error(tmp_path: Path):
    profiles = tmp_path / "profiles"
    # Intentionally broken TOML
    (profiles / "dev.toml").parent.mkdir(parents=True, exist_ok=True)
    (profiles / "dev.toml").write_text("[monitor]\nthis = not_valid\n", encoding="utf-8")

    env = {"HVW_CONFIG_DIR": str(profiles), "HVW_PROFILE": "dev"}

    with pytest.raises(RuntimeError):
        _ = load_monitor_settings(env=env)


def test_invalid_value_is_rejected(tmp_path: Path):
    env = {"HVW_CONFIG_DIR": str(tmp_path), "HVW_IPC_IMPL": "carrier-pigeon"}
    with pytest.raises(ValueError):
        load_monitor_settings(env=env)
