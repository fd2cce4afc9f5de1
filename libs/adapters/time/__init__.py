from .fakes import ManualClockPort, MonotonicClockPort

__all__ = ["ManualClockPort", "MonotonicClockPort"]
