"""
Error types for Audio Pair Sync
"""

from typing import List, Optional


class PairSyncError(Exception):
    """Base class for all pair sync errors"""


class ValidationError(PairSyncError):
    """Malformed or missing pair configuration"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(PairSyncError):
    """A device is already associated with another enabled pair"""

    def __init__(self, message: str, conflicts: Optional[List[str]] = None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class NotFoundError(PairSyncError):
    """Operation referenced an unknown pair"""

    def __init__(self, name: str):
        super().__init__(f"Device pair not found: {name}")
        self.name = name


class CollaboratorError(PairSyncError):
    """A device or bus command failed downstream"""

    def __init__(self, message: str, device: Optional[str] = None):
        super().__init__(message)
        self.device = device
