from __future__ import annotations

import argparse
import json
from typing import Any

from ports.ipc import ControlClientPort
from shared.config.loader import load_ctl_settings
from shared.contracts.v1.commands import (
    CommandRequest,
    LoopConfig,
    RegisterRequest,
    SnapshotRequest,
)

from apps.ctl.settings import CtlSettings

COMMAND_VERBS = ("approve", "reject", "kill", "cancel", "restart")


def build_client(settings: CtlSettings) -> ControlClientPort | None:
    if settings.ipc_impl != "zmq":
        # in-proc control only exists inside the monitor process
        return None
    from adapters.ipc_zmq import ZmqControlClient

    return ZmqControlClient()


def _parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="hivewatch-ctl")
    ap.add_argument("--json", action="store_true", help="Print the raw response.")
    sub = ap.add_subparsers(dest="verb", required=True)

    for verb in COMMAND_VERBS:
        p = sub.add_parser(verb, help=f"Send {verb} to an agent.")
        p.add_argument("identity")

    reg = sub.add_parser("register", help="Register a loop config before spawning an agent.")
    reg.add_argument("key", help="Pane id or spawn key the agent will report.")
    reg.add_argument("--max-iterations", type=int, default=50)
    reg.add_argument("--stop-word", default="DONE")
    reg.add_argument("--role", choices=("auto", "planner", "worker"), default="auto")
    reg.add_argument("--loop-dir")
    reg.add_argument("--task-id")

    sub.add_parser("snapshot", help="Print the current agent table.")
    return ap


def _request(args: argparse.Namespace) -> dict[str, Any]:
    if args.verb in COMMAND_VERBS:
        return CommandRequest(kind=args.verb, identity=args.identity).model_dump()
    if args.verb == "register":
        config = LoopConfig(
            max_iterations=args.max_iterations,
            stop_word=args.stop_word,
            role=args.role,
            loop_dir=args.loop_dir,
            task_id=args.task_id,
        )
        return RegisterRequest(key=args.key, config=config).model_dump(mode="json")
    return SnapshotRequest().model_dump()


def _print_snapshot(data: dict[str, Any]) -> None:
    counts = data.get("counts", {})
    print("[ctl] " + "  ".join(f"{k}={v}" for k, v in sorted(counts.items())))
    for agent in data.get("agents", []):
        loop = agent.get("loop_state") or "none"
        status = agent.get("status", "?")
        if agent.get("attention"):
            status = f"{status}:{agent['attention']}"
        print(
            f"[ctl] {agent.get('identity', '?'):<12} {status:<22} "
            f"{agent.get('project', ''):<20} {loop} {agent.get('loop_iteration', 0)}"
        )


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    settings = load_ctl_settings()
    client = build_client(settings)
    if client is None:
        print(f"[ctl] ipc_impl={settings.ipc_impl} has no out-of-process control channel")
        return 2

    resp = client.send(settings.control_connect, _request(args))
    if args.json:
        print(json.dumps(resp, indent=2))
        return 0 if resp.get("ok") else 1
    if not resp.get("ok"):
        error = resp.get("error") or {}
        print(f"[ctl] {args.verb} failed: {error.get('code')} {error.get('detail') or ''}".rstrip())
        return 1
    if args.verb == "snapshot":
        _print_snapshot(resp.get("data") or {})
    else:
        print(f"[ctl] {args.verb} :: {resp.get('data')}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
