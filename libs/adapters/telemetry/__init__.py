from .fakes import FakeMetricsPort, LoggingMetricsPort

__all__ = ["FakeMetricsPort", "LoggingMetricsPort"]
