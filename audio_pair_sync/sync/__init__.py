from .events import (
    AmpVolumeChanged,
    PairReady,
    PairRemoved,
    PlaybackState,
    PlaybackStateChanged,
    SourceVolumeChanged,
    TrackChanged,
    VolumeAdjustRequested,
    normalize_playback_state,
)
from .registry import PairRegistry
from .router import SyncRouter
from .service import PairService
from .validator import AssociationResult, validate_association

__all__ = [
    "AmpVolumeChanged",
    "AssociationResult",
    "PairReady",
    "PairRegistry",
    "PairRemoved",
    "PairService",
    "PlaybackState",
    "PlaybackStateChanged",
    "SourceVolumeChanged",
    "SyncRouter",
    "TrackChanged",
    "VolumeAdjustRequested",
    "normalize_playback_state",
    "validate_association",
]
