"""
Event types consumed by the sync router

Every inbound change (device pollers, bus control, registry lifecycle) is one
of the frozen dataclasses below. The router dispatches on the concrete type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Union

from ..models import DeviceRef


class PlaybackState(str, Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    TRANSITIONING = "transitioning"
    UNKNOWN = "unknown"


_PLAYBACK_STATES = {
    "playing": PlaybackState.PLAYING,
    "paused": PlaybackState.PAUSED,
    "paused_playback": PlaybackState.PAUSED,
    "stopped": PlaybackState.STOPPED,
    "transitioning": PlaybackState.TRANSITIONING,
}


def normalize_playback_state(state: Any) -> PlaybackState:
    """Map an upstream transport state onto the fixed playback states"""
    if not isinstance(state, str):
        return PlaybackState.UNKNOWN
    return _PLAYBACK_STATES.get(state.strip().lower(), PlaybackState.UNKNOWN)


@dataclass(frozen=True)
class PlaybackStateChanged:
    source_ref: DeviceRef
    state: str


@dataclass(frozen=True)
class SourceVolumeChanged:
    source_ref: DeviceRef
    percent: int


@dataclass(frozen=True)
class AmpVolumeChanged:
    amp_ref: DeviceRef
    units: int


@dataclass(frozen=True)
class TrackChanged:
    source_ref: DeviceRef
    track: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VolumeAdjustRequested:
    pair_name: str
    delta: int


@dataclass(frozen=True)
class PairReady:
    name: str
    source_ref: DeviceRef
    amp_ref: DeviceRef


@dataclass(frozen=True)
class PairRemoved:
    name: str
    source_ref: DeviceRef
    amp_ref: DeviceRef


LifecycleEvent = Union[PairReady, PairRemoved]

SyncEvent = Union[
    PlaybackStateChanged,
    SourceVolumeChanged,
    AmpVolumeChanged,
    TrackChanged,
    VolumeAdjustRequested,
    PairReady,
    PairRemoved,
]
