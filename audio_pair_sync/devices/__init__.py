from .amp import AmpClient
from .base import PollingDevice
from .source import SourceClient
from .transport import JsonHttpTransport

__all__ = ["AmpClient", "JsonHttpTransport", "PollingDevice", "SourceClient"]
