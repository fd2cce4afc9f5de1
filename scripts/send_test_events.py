#!/usr/bin/env python
"""
Send simulated hook records to a running monitor, without any agent.
Usage:
  python scripts/send_test_events.py basic        # Working -> Idle
  python scripts/send_test_events.py askuser      # AskUserQuestion attention flow
  python scripts/send_test_events.py permission   # PermissionRequest attention flow
  python scripts/send_test_events.py loop --stops 3
"""
from __future__ import annotations

import argparse
import os
import sys
import time
from collections.abc import Iterator
from typing import Any

from adapters.hook_socket import send_record
from shared.config.loader import load_bridge_settings

Record = dict[str, Any]


def _events(identity: str, project: str, steps: list[tuple[str, dict[str, Any]]]) -> Iterator[Record]:
    t = time.time()
    for i, (kind, extra) in enumerate(steps):
        yield {
            "event_kind": kind,
            "identity_hint": identity,
            "project": project,
            "timestamp": t + i,
            **extra,
        }


def scenario(name: str, identity: str, project: str, stops: int) -> list[Record]:
    if name == "basic":
        steps = [
            ("SessionStart", {}),
            ("UserPromptSubmit", {}),
            ("PreToolUse", {"tool_name": "Read", "tool_use_id": "t1"}),
            ("PostToolUse", {"tool_name": "Read", "tool_use_id": "t1"}),
            ("Stop", {}),
        ]
    elif name == "askuser":
        steps = [
            ("UserPromptSubmit", {}),
            ("PreToolUse", {"tool_name": "AskUserQuestion", "tool_use_id": "q1"}),
            ("PostToolUse", {"tool_name": "AskUserQuestion", "tool_use_id": "q1"}),
            ("Stop", {}),
        ]
    elif name == "permission":
        steps = [
            ("UserPromptSubmit", {}),
            ("PermissionRequest", {"tool_name": "Bash"}),
            ("PreToolUse", {"tool_name": "Bash", "tool_use_id": "b1"}),
            ("PostToolUse", {"tool_name": "Bash", "tool_use_id": "b1"}),
            ("Stop", {}),
        ]
    elif name == "loop":
        steps = [("SessionStart", {})]
        for i in range(stops):
            steps.append(("UserPromptSubmit", {}))
            steps.append(("Stop", {"reason": f"iteration {i + 1} done"}))
    else:
        raise SystemExit(f"unknown scenario {name!r}")
    return list(_events(identity, project, steps))


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("name", choices=("basic", "askuser", "permission", "loop"))
    ap.add_argument("--identity", default=f"test-{os.getpid()}")
    ap.add_argument("--project", default="test-project")
    ap.add_argument("--stops", type=int, default=3)
    ap.add_argument("--pause", type=float, default=0.5, help="Seconds between records.")
    args = ap.parse_args()

    path = load_bridge_settings().socket_path
    for record in scenario(args.name, args.identity, args.project, args.stops):
        try:
            send_record(path, record)
        except OSError as ex:
            print(f"Failed to send to {path}: {ex}. Is the monitor running?", file=sys.stderr)
            return 1
        print(f"sent {record['event_kind']} for {record['identity_hint']}")
        time.sleep(args.pause)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
