from .fakes import FakeControlClient, FakeSnapshotPubPort, FakeSnapshotSubPort
from .zmq import ZmqControlClient, ZmqControlServer, ZmqSnapshotPubPort, ZmqSnapshotSubPort

__all__ = [
    "FakeControlClient",
    "FakeSnapshotPubPort",
    "FakeSnapshotSubPort",
    "ZmqControlClient",
    "ZmqControlServer",
    "ZmqSnapshotPubPort",
    "ZmqSnapshotSubPort",
]
