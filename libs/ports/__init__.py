from .input import KeyInputPort
from .ipc import ControlClientPort, ControlServerPort, SnapshotPubPort, SnapshotSubPort
from .probe import PaneProbePort
from .progress import PendingTask, ProgressStorePort
from .sink import CommandSinkPort, SendInput, SendKeys, SinkCommand, SpawnWorker
from .telemetry import MetricsPort
from .time import ClockPort

__all__ = [
    "KeyInputPort",
    "ControlClientPort",
    "ControlServerPort",
    "SnapshotPubPort",
    "SnapshotSubPort",
    "PaneProbePort",
    "PendingTask",
    "ProgressStorePort",
    "CommandSinkPort",
    "SendInput",
    "SendKeys",
    "SinkCommand",
    "SpawnWorker",
    "MetricsPort",
    "ClockPort",
]
