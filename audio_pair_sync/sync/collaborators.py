"""
Interfaces the sync core expects from device clients and the bus publisher

Pollers implementing these must only emit a change event when the observed
value differs from the value they last reported, and must update that
baseline after a command they applied succeeds. The router relies on this to
avoid feedback loops between the two devices of a pair.
"""

from typing import Any, Optional, Protocol

from ..models import DeviceRef


class SourceDevice(Protocol):
    def add_tracked(self, ref: DeviceRef) -> None: ...

    def remove_tracked(self, ref: DeviceRef) -> None: ...

    async def set_volume(self, ref: DeviceRef, percent: int) -> None: ...

    async def adjust_volume(self, ref: DeviceRef, delta: int) -> None: ...

    async def get_playback_state(self, ref: DeviceRef) -> Optional[str]: ...


class AmpDevice(Protocol):
    max_volume: int

    def add_tracked(self, ref: DeviceRef) -> None: ...

    def remove_tracked(self, ref: DeviceRef) -> None: ...

    async def switch_input(self, ref: DeviceRef, selector: str) -> None: ...

    async def set_volume(self, ref: DeviceRef, units: int) -> None: ...

    async def test_connection(self, ref: DeviceRef) -> bool: ...


class StatusPublisher(Protocol):
    def publish_status(self, pair_name: str, field: str, value: Any) -> None: ...
