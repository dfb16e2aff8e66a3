"""
Marine amplifier client

Commands are JSON POSTs to ``http://<ref>/api/fusion/<command>``.
Volume is expressed in the amplifier's native 0-40 range.
"""

from typing import Any, Optional
from loguru import logger

from ..errors import CollaboratorError
from ..models import DeviceRef
from ..sync.events import AmpVolumeChanged
from .base import EventSink, PollingDevice, is_volume_value
from .transport import JsonHttpTransport

MAX_VOLUME = 40

INPUT_NUMBERS = {
    "aux1": 1,
    "aux2": 2,
    "aux3": 3,
    "usb": 4,
    "bluetooth": 5,
    "am": 6,
    "fm": 7,
}


class AmpClient(PollingDevice):
    kind = "amp"
    max_volume = MAX_VOLUME

    def __init__(
        self,
        emit: Optional[EventSink] = None,
        poll_interval: float = 5.0,
        transport: Optional[JsonHttpTransport] = None,
    ):
        super().__init__(emit, poll_interval)
        self._transport = transport or JsonHttpTransport()

    async def _command(self, ref: DeviceRef, command: str, params: Optional[dict] = None) -> Any:
        url = f"http://{ref}/api/fusion/{command}"
        return await self._transport.post(url, params or {})

    async def get_status(self, ref: DeviceRef) -> dict:
        status = await self._command(ref, "getStatus")
        if not isinstance(status, dict):
            raise CollaboratorError(f"Malformed status from {ref}", device=ref)
        return status

    async def poll_device(self, ref: DeviceRef):
        status = await self.get_status(ref)

        volume = status.get("volume")
        if is_volume_value(volume):
            if self._report_if_changed(ref, "volume", int(volume)):
                self._publish(AmpVolumeChanged(ref, int(volume)))

        current_input = status.get("currentInput")
        if current_input is not None and self._report_if_changed(
            ref, "input", current_input
        ):
            logger.debug(f"Amp input changed: {ref} -> {current_input}")

    async def switch_input(self, ref: DeviceRef, selector: str):
        number = INPUT_NUMBERS.get(selector.lower())
        if number is None:
            raise CollaboratorError(f"Invalid input source: {selector}", device=ref)
        self._require_tracked(ref)
        await self._command(ref, "setInput", {"input": number})
        logger.debug(f"Switched amp input: {ref} -> {selector}")

    async def set_volume(self, ref: DeviceRef, units: int):
        self._require_tracked(ref)
        units = max(0, min(self.max_volume, int(units)))
        await self._command(ref, "setVolume", {"volume": units})
        self._remember(ref, "volume", units)
        logger.debug(f"Set amp volume: {ref} -> {units}")

    async def test_connection(self, ref: DeviceRef) -> bool:
        try:
            await self._command(ref, "ping")
            return True
        except CollaboratorError as e:
            logger.debug(f"Amp ping failed for {ref}: {e}")
            return False
