from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections.abc import Mapping
from typing import Any, Final

from adapters.hook_socket import send_record
from adapters.tmux import SPAWN_KEY_ENV
from shared.config.loader import load_bridge_settings

LOG: Final = logging.getLogger("hivewatch.bridge")

SESSION_PREFIX_LEN: Final = 8

# fields copied through unchanged when present
_PASSTHROUGH: Final = (
    "tool_name",
    "tool_use_id",
    "reason",
    "message",
    "source",
    "notification_type",
    "permission_mode",
    "session_id",
    "agent_type",
)


def _identity(payload: Mapping[str, Any], env: Mapping[str, str]) -> str:
    pane = env.get("TMUX_PANE", "").strip()
    if pane:
        return pane
    session = str(payload.get("session_id") or "")
    return session[:SESSION_PREFIX_LEN]


def _context_usage(payload: Mapping[str, Any]) -> float | None:
    window = payload.get("context_window")
    if isinstance(window, Mapping):
        value = window.get("used_percentage")
        if isinstance(value, int | float):
            return float(value)
    return None


def to_record(
    payload: Mapping[str, Any], env: Mapping[str, str], now: float | None = None
) -> dict[str, Any]:
    """Map an agent's native hook payload onto the hook socket record."""
    cwd = str(payload.get("cwd") or env.get("PWD") or os.getcwd())
    record: dict[str, Any] = {
        "event_kind": payload.get("hook_event_name") or "Unknown",
        "identity_hint": _identity(payload, env),
        "timestamp": time.time() if now is None else now,
        "project": os.path.basename(cwd.rstrip("/")) or cwd,
    }
    for name in _PASSTHROUGH:
        value = payload.get(name)
        if value is not None:
            record[name] = value
    usage = _context_usage(payload)
    if usage is not None:
        record["context_usage"] = usage
    spawn_key = env.get(SPAWN_KEY_ENV)
    if spawn_key:
        record["spawn_key"] = spawn_key
    return record


def main(argv: list[str] | None = None) -> int:
    # Hooks must never block or fail the agent: every path returns 0 and stdout stays empty.
    try:
        raw = sys.stdin.read()
    except OSError as ex:
        LOG.debug("stdin unreadable: %r", ex)
        return 0
    if not raw.strip():
        return 0
    try:
        payload = json.loads(raw)
    except ValueError as ex:
        LOG.debug("hook payload is not JSON: %s", ex)
        return 0
    if not isinstance(payload, dict):
        return 0

    try:
        settings = load_bridge_settings()
    except (RuntimeError, ValueError) as ex:
        LOG.debug("bridge settings unusable: %s", ex)
        return 0
    record = to_record(payload, os.environ)
    if not record["identity_hint"]:
        LOG.debug("no pane or session id; dropping %s", record["event_kind"])
        return 0
    try:
        send_record(settings.socket_path, record, timeout_s=settings.timeout_s)
    except OSError as ex:
        LOG.debug("monitor unreachable at %s: %r", settings.socket_path, ex)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
