"""
Base class for devices polled on their own interval

Each tracked device keeps a baseline of the values last reported for it. A
change event is only emitted when a polled value differs from that baseline,
and a command that succeeds moves the baseline to the commanded value. This
is what keeps two paired devices from echoing each other's changes.
"""

import asyncio
import math
from contextlib import suppress
from typing import Any, Callable, Dict, List, Optional
from loguru import logger

from ..errors import CollaboratorError
from ..models import DeviceRef

EventSink = Callable[[Any], None]


def is_volume_value(value: Any) -> bool:
    """True for a finite, non-boolean number"""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class PollingDevice:
    kind = "device"

    def __init__(self, emit: Optional[EventSink] = None, poll_interval: float = 5.0):
        self._emit = emit
        self.poll_interval = poll_interval
        self._tracked: Dict[DeviceRef, Dict[str, Any]] = {}
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.poll_errors = 0

    def set_event_sink(self, emit: EventSink):
        self._emit = emit

    @property
    def tracked(self) -> List[DeviceRef]:
        return list(self._tracked)

    def is_tracked(self, ref: DeviceRef) -> bool:
        return ref in self._tracked

    def add_tracked(self, ref: DeviceRef):
        if ref in self._tracked:
            logger.debug(f"{self.kind} device {ref} already tracked")
            return
        self._tracked[ref] = {}
        logger.info(f"Tracking {self.kind} device: {ref}")

    def remove_tracked(self, ref: DeviceRef):
        if self._tracked.pop(ref, None) is not None:
            logger.info(f"Stopped tracking {self.kind} device: {ref}")

    def _require_tracked(self, ref: DeviceRef):
        if ref not in self._tracked:
            raise CollaboratorError(f"{self.kind} device {ref} is not tracked", device=ref)

    async def start(self):
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Started {self.kind} poller (every {self.poll_interval}s)")

    async def stop(self):
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._tracked.clear()
        logger.info(f"Stopped {self.kind} poller")

    async def _poll_loop(self):
        while self._running:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    async def poll_once(self):
        for ref in list(self._tracked):
            try:
                await self.poll_device(ref)
            except CollaboratorError as e:
                self.poll_errors += 1
                logger.debug(f"Failed to poll {self.kind} device {ref}: {e}")
            except Exception as e:
                self.poll_errors += 1
                logger.error(f"Unexpected error polling {self.kind} device {ref}: {e}")

    async def poll_device(self, ref: DeviceRef):
        raise NotImplementedError

    def _report_if_changed(self, ref: DeviceRef, attribute: str, value: Any) -> bool:
        """Update the baseline; True if the value is new for this device"""
        baseline = self._tracked.get(ref)
        if baseline is None:
            return False
        if attribute in baseline and baseline[attribute] == value:
            return False
        baseline[attribute] = value
        return True

    def _remember(self, ref: DeviceRef, attribute: str, value: Any):
        """Record a value we set ourselves so the next poll does not report it"""
        baseline = self._tracked.get(ref)
        if baseline is not None:
            baseline[attribute] = value

    def _publish(self, event: Any):
        if self._emit is not None:
            self._emit(event)

    def diagnostics(self) -> dict:
        return {
            "running": self._running,
            "trackedDevices": self.tracked,
            "pollInterval": self.poll_interval,
            "pollErrors": self.poll_errors,
        }
