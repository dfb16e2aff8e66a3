from .routes import DeltaHub, router
from .models import PairResponse, ServiceStatus, StatisticsResponse

__all__ = ["DeltaHub", "router", "PairResponse", "ServiceStatus", "StatisticsResponse"]
