from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from domain.errors import StartupError
from shared.config.loader import load_monitor_settings

from apps.monitor.compose import MonitorApp

LOG = logging.getLogger("hivewatch.monitor")


async def _serve(app: MonitorApp) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, app.stop)
        except (NotImplementedError, RuntimeError):
            pass  # not on the main thread; Ctrl+C still raises KeyboardInterrupt
    await app.run()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="hivewatch")
    ap.add_argument("--socket", metavar="PATH", help="Override the hook socket path.")
    ap.add_argument("--max-agents", type=int, help="Override the agent capacity.")
    ap.add_argument(
        "--sink", choices=("tmux", "fake"), help="Where commands for agent sessions go."
    )
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    args = ap.parse_args(argv)

    settings = load_monitor_settings()
    overrides = {
        "socket_path": args.socket,
        "max_agents": args.max_agents,
        "sink_impl": args.sink,
        "log_level": args.log_level,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )
    LOG.info(
        "ipc_impl=%s sink_impl=%s socket=%s",
        settings.ipc_impl,
        settings.sink_impl,
        settings.socket_path,
    )

    try:
        app = MonitorApp(settings)
    except Exception as ex:
        # zmq bind failures and the like surface while wiring
        LOG.error("Could not start: %r", ex)
        return 1
    try:
        asyncio.run(_serve(app))
    except StartupError as ex:
        LOG.error("Could not start: %s", ex)
        return 1
    except KeyboardInterrupt:
        LOG.info("Shutting down...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
