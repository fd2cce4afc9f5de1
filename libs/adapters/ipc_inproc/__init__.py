from .inproc import (
    InprocControlClient,
    InprocControlServerPort,
    InprocSnapshotPubPort,
    InprocSnapshotSubPort,
)

__all__ = [
    "InprocControlClient",
    "InprocSnapshotSubPort",
    "InprocSnapshotPubPort",
    "InprocControlServerPort",
]
