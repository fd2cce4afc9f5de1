from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from typing import Final

from domain.errors import HivewatchError, ProbeError, SinkError
from ports.probe import PaneProbePort
from ports.sink import CommandSinkPort, SpawnWorker

LOG: Final = logging.getLogger("hivewatch.tmux")

SPAWN_KEY_ENV: Final = "HVW_SPAWN_KEY"


def _tmux(
    args: Sequence[str], *, timeout_s: float, error: type[HivewatchError]
) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["tmux", *args],
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as ex:
        raise error(f"tmux {args[0]} failed: {ex}") from ex


class TmuxCommandSink(CommandSinkPort):
    """Drives agent sessions living in tmux panes."""

    def __init__(self, agent_command: str = "claude", timeout_s: float = 5.0) -> None:
        self.agent_command = agent_command
        self.timeout_s = timeout_s

    def _run(self, *args: str) -> str:
        proc = _tmux(args, timeout_s=self.timeout_s, error=SinkError)
        if proc.returncode != 0:
            raise SinkError(f"tmux {args[0]} exited {proc.returncode}: {proc.stderr.strip()}")
        return proc.stdout

    def send_input(self, identity: str, text: str, submit: bool = True) -> None:
        if text:
            self._run("send-keys", "-t", identity, "-l", text)
        if submit:
            self._run("send-keys", "-t", identity, "Enter")

    def send_keys(self, identity: str, keys: str) -> None:
        self._run("send-keys", "-t", identity, keys)

    def spawn(self, request: SpawnWorker) -> str:
        args = ["split-window", "-d", "-P", "-F", "#{pane_id}", "-t", request.parent]
        if request.cwd:
            args += ["-c", request.cwd]
        args += ["-e", f"{SPAWN_KEY_ENV}={request.spawn_key}"]
        args += [*shlex.split(self.agent_command), request.prompt]
        pane = self._run(*args).strip()
        if not pane:
            raise SinkError("tmux split-window returned no pane id")
        LOG.info("Spawned worker %s for %s in pane %s", request.spawn_key, request.task_id, pane)
        return pane


class TmuxPaneProbe(PaneProbePort):
    def __init__(self, timeout_s: float = 2.0) -> None:
        self.timeout_s = timeout_s

    def handles(self, identity: str) -> bool:
        return identity.startswith("%")

    def exists(self, identity: str) -> bool:
        proc = _tmux(
            ["display-message", "-t", identity, "-p", "#{pane_dead}"],
            timeout_s=self.timeout_s,
            error=ProbeError,
        )
        if proc.returncode != 0:
            if "can't find" in proc.stderr:
                return False
            raise ProbeError(f"tmux display-message exited {proc.returncode}: {proc.stderr.strip()}")
        return proc.stdout.strip() != "1"
