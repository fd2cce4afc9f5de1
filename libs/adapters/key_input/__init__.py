from .fakes import FakeKeyInputPort

__all__ = ["FakeKeyInputPort"]
