from __future__ import annotations

import logging
from typing import Final

from ports.telemetry import MetricsPort

LOG: Final = logging.getLogger("hivewatch.metrics")


class LoggingMetricsPort(MetricsPort):
    """Writes samples to the debug log; enough for a single local monitor."""

    def observe(self, name: str, value: float, **labels: str) -> None:
        LOG.debug("%s=%.3f %s", name, value, labels)


class FakeMetricsPort(MetricsPort):
    def __init__(self) -> None:
        self.samples: list[tuple[str, float, dict[str, str]]] = []

    def observe(self, name: str, value: float, **labels: str) -> None:
        self.samples.append((name, float(value), labels))
