"""
Audio Pair Sync - keeps streaming sources and marine amplifiers in step
"""

from .errors import (
    CollaboratorError,
    ConflictError,
    NotFoundError,
    PairSyncError,
    ValidationError,
)
from .models import DevicePair, InputSelector, PairState
from .sync import PairRegistry, PairService, SyncRouter

__version__ = "1.0.0"

__all__ = [
    "CollaboratorError",
    "ConflictError",
    "DevicePair",
    "InputSelector",
    "NotFoundError",
    "PairRegistry",
    "PairService",
    "PairState",
    "PairSyncError",
    "SyncRouter",
    "ValidationError",
]
