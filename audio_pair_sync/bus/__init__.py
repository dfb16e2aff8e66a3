from .control import BusControlListener
from .publisher import BusPublisher

__all__ = ["BusControlListener", "BusPublisher"]
