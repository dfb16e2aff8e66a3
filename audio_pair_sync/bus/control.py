"""
Turns bus control deltas into router events
"""

from typing import Any, Callable
from loguru import logger

from ..sync.events import VolumeAdjustRequested
from .publisher import PATH_PREFIX

CONTROL_MARKER = ".controls."


class BusControlListener:
    def __init__(self, submit: Callable[[Any], None]):
        self._submit = submit
        self.handled = 0

    def handle_delta(self, delta: Any) -> int:
        """Process one delta message, returns the number of controls accepted"""
        if not isinstance(delta, dict):
            logger.debug("Ignoring non-object bus delta")
            return 0

        accepted = 0
        for update in delta.get("updates") or []:
            if not isinstance(update, dict):
                continue
            for value in update.get("values") or []:
                if isinstance(value, dict) and self._handle_value(
                    value.get("path"), value.get("value")
                ):
                    accepted += 1
        self.handled += accepted
        return accepted

    def _handle_value(self, path: Any, value: Any) -> bool:
        if not isinstance(path, str) or not path.startswith(PATH_PREFIX + "."):
            return False
        rest = path[len(PATH_PREFIX) + 1 :]
        pair_name, marker, control = rest.rpartition(CONTROL_MARKER)
        if not marker or not pair_name:
            return False

        logger.debug(f"Bus control received: {pair_name} {control} {value}")
        if control == "volume":
            change = value.get("change") if isinstance(value, dict) else None
            if isinstance(change, (int, float)) and not isinstance(change, bool):
                self._submit(VolumeAdjustRequested(pair_name, int(change)))
                return True
            logger.debug(f"Unsupported volume control payload for {pair_name}: {value}")
            return False

        logger.debug(f"Ignoring unsupported bus control '{control}' for {pair_name}")
        return False
