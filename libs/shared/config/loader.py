from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from apps.bridge.settings import BridgeSettings
from apps.ctl.settings import CtlSettings
from apps.monitor.settings import MonitorSettings

ENV_PREFIX = "HVW_"

_S = TypeVar("_S", bound=BaseModel)

# --- paths --------------------------------------------------------------------


def _repo_root() -> Path:
    """Heuristic: walk up from this file until we find pyproject.toml."""
    p = Path(__file__).resolve()
    for ancestor in [p, *p.parents]:
        if (ancestor / "pyproject.toml").exists():
            return ancestor
    return Path.cwd()


def _profiles_dir(env: Mapping[str, str]) -> Path:
    # Allow override (useful for tests): HVW_CONFIG_DIR points *at* profiles/
    override = env.get("HVW_CONFIG_DIR")
    if override:
        return Path(override)
    return _repo_root() / "configs" / "profiles"


def _load_profile_table(env: Mapping[str, str], profile: str) -> dict[str, Any]:
    f = _profiles_dir(env) / f"{profile}.toml"
    if not f.exists():
        return {}
    text = f.read_text("utf-8")
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise RuntimeError(f"Failed to parse profile TOML: {f}") from e


# --- env overlay helpers ------------------------------------------------------


def _coerce_env_value(raw: str) -> Any:
    """
    Try to parse JSON first (so lists/dicts/numbers/bools work),
    then fall back to the original string.
    """
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _collect_env_for(
    fields: set[str], env: Mapping[str, str], prefix: str = ENV_PREFIX
) -> dict[str, Any]:
    """
    Collect overrides like HVW_MAX_AGENTS, HVW_IDLE_TIMEOUT_S -> {'max_agents': ...}.
    Case-insensitive; underscores only.
    """
    out: dict[str, Any] = {}
    upper_to_field = {f.upper(): f for f in fields}
    plen = len(prefix)
    for k, v in env.items():
        if not k.startswith(prefix):
            continue
        key = k[plen:].upper()
        if key in upper_to_field:
            out[upper_to_field[key]] = _coerce_env_value(v)
    return out


def _merge(
    model: type[_S], section: str, env: Mapping[str, str] | None, profile: str | None
) -> _S:
    env = os.environ if env is None else env
    profile = (profile or env.get("HVW_PROFILE") or "dev").strip()

    # start from defaults exposed by the model
    base = model().model_dump()

    # TOML overlay
    toml_table = _load_profile_table(env, profile)
    section_table = toml_table.get(section, {}) if isinstance(toml_table, dict) else {}
    if isinstance(section_table, dict):
        for key, value in section_table.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = {**base[key], **value}
            else:
                base[key] = value

    # env overlay
    base.update(_collect_env_for(set(base.keys()), env))

    # validate
    return model.model_validate(base)


# --- public API ---------------------------------------------------------------


def load_monitor_settings(
    env: Mapping[str, str] | None = None, profile: str | None = None
) -> MonitorSettings:
    """
    Merge defaults (MonitorSettings) <- TOML [monitor] <- env HVW_*.
    Env examples: HVW_MAX_AGENTS=200, HVW_IDLE_TIMEOUT_S=30,
    HVW_LOOP={"max_workers": 5}
    """
    return _merge(MonitorSettings, "monitor", env, profile)


def load_bridge_settings(
    env: Mapping[str, str] | None = None, profile: str | None = None
) -> BridgeSettings:
    """Merge defaults (BridgeSettings) <- TOML [bridge] <- env HVW_*."""
    return _merge(BridgeSettings, "bridge", env, profile)


def load_ctl_settings(
    env: Mapping[str, str] | None = None, profile: str | None = None
) -> CtlSettings:
    """Merge defaults (CtlSettings) <- TOML [ctl] <- env HVW_*."""
    return _merge(CtlSettings, "ctl", env, profile)
