from .client import send_record
from .listener import UnixHookListener

__all__ = ["UnixHookListener", "send_record"]
