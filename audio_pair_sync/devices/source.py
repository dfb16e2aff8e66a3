"""
Streaming source client

Talks to a small HTTP bridge in front of each source device:
``GET /state`` returns ``playbackState``, ``volume`` and ``currentTrack``;
``GET /volume/<n>`` sets and ``GET /volume/<+n|-n>`` nudges the volume.
"""

from typing import Optional
from loguru import logger

from ..errors import CollaboratorError
from ..models import DeviceRef
from ..sync.events import (
    PlaybackStateChanged,
    SourceVolumeChanged,
    TrackChanged,
    normalize_playback_state,
)
from .base import EventSink, PollingDevice, is_volume_value
from .transport import JsonHttpTransport


def normalize_track(track: dict) -> dict:
    return {
        "title": track.get("title") or "Unknown",
        "artist": track.get("artist") or "Unknown",
        "album": track.get("album") or "Unknown",
        "duration": track.get("duration") or 0,
    }


class SourceClient(PollingDevice):
    kind = "source"

    def __init__(
        self,
        emit: Optional[EventSink] = None,
        poll_interval: float = 2.0,
        transport: Optional[JsonHttpTransport] = None,
    ):
        super().__init__(emit, poll_interval)
        self._transport = transport or JsonHttpTransport()

    def _url(self, ref: DeviceRef, path: str) -> str:
        return f"http://{ref}/{path}"

    async def fetch_state(self, ref: DeviceRef) -> dict:
        state = await self._transport.get(self._url(ref, "state"))
        if not isinstance(state, dict):
            raise CollaboratorError(f"Malformed state from {ref}", device=ref)
        return state

    async def poll_device(self, ref: DeviceRef):
        state = await self.fetch_state(ref)

        playback = state.get("playbackState")
        if isinstance(playback, str) and self._report_if_changed(
            ref, "playbackState", playback
        ):
            self._publish(PlaybackStateChanged(ref, playback))

        volume = state.get("volume")
        if is_volume_value(volume):
            if self._report_if_changed(ref, "volume", int(volume)):
                self._publish(SourceVolumeChanged(ref, int(volume)))

        track = state.get("currentTrack")
        if isinstance(track, dict):
            normalized = normalize_track(track)
            if self._report_if_changed(ref, "track", normalized):
                self._publish(TrackChanged(ref, normalized))

    async def set_volume(self, ref: DeviceRef, percent: int):
        self._require_tracked(ref)
        percent = max(0, min(100, int(percent)))
        await self._transport.get(self._url(ref, f"volume/{percent}"))
        self._remember(ref, "volume", percent)
        logger.debug(f"Set source volume: {ref} -> {percent}")

    async def adjust_volume(self, ref: DeviceRef, delta: int):
        self._require_tracked(ref)
        await self._transport.get(self._url(ref, f"volume/{int(delta):+d}"))
        logger.debug(f"Adjusted source volume: {ref} by {delta}")

    async def get_playback_state(self, ref: DeviceRef) -> Optional[str]:
        state = await self.fetch_state(ref)
        return normalize_playback_state(state.get("playbackState")).value
