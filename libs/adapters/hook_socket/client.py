from __future__ import annotations

import json
import os
import socket
from collections.abc import Mapping
from typing import Any


def send_record(path: str | os.PathLike[str], record: Mapping[str, Any], timeout_s: float = 1.0) -> None:
    """Deliver one hook record and close; raises OSError when the monitor is unreachable."""
    payload = json.dumps(dict(record)).encode("utf-8")
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as s:
        s.settimeout(timeout_s)
        s.connect(os.fspath(path))
        s.sendall(payload)
        s.shutdown(socket.SHUT_WR)
