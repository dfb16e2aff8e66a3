"""
Projects pair state onto the vessel data bus as Signal K style deltas
"""

import asyncio
import time
from collections import deque
from contextlib import suppress
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional
from loguru import logger

DeltaSink = Callable[[dict], None]

PATH_PREFIX = "entertainment.audio"
HEARTBEAT_INTERVAL = 10.0
# Pairs silent for longer than this get no heartbeat
HEARTBEAT_WINDOW = 30.0
MAX_RECENT_MESSAGES = 50


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class BusPublisher:
    def __init__(
        self,
        enabled: bool = True,
        device_instance: int = 0,
        clock: Callable[[], float] = time.time,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
    ):
        self.enabled = enabled
        self.device_instance = device_instance
        self._clock = clock
        self._heartbeat_interval = heartbeat_interval
        self._pair_states: Dict[str, Dict[str, Any]] = {}
        self._sinks: List[DeltaSink] = []
        self._heartbeat_task: Optional[asyncio.Task] = None
        self.recent: Deque[dict] = deque(maxlen=MAX_RECENT_MESSAGES)

    @property
    def source_label(self) -> str:
        return f"audio-pair-sync.{self.device_instance}"

    def add_sink(self, sink: DeltaSink):
        self._sinks.append(sink)

    def publish_status(self, pair_name: str, field: str, value: Any):
        """Publish one field of a pair's state"""
        if not self.enabled:
            return
        state = self._pair_states.setdefault(pair_name, {})
        state[field] = value
        state["lastUpdate"] = self._clock()

        if field == "currentTrack" and isinstance(value, dict):
            values = {f"{field}.{key}": item for key, item in value.items()}
        else:
            values = {field: value}
        self._send(pair_name, values)

    def forget(self, pair_name: str):
        self._pair_states.pop(pair_name, None)

    def build_delta(self, pair_name: str, values: Dict[str, Any]) -> dict:
        timestamp = _iso_now()
        return {
            "context": "vessels.self",
            "updates": [
                {
                    "source": {"label": self.source_label},
                    "timestamp": timestamp,
                    "values": [
                        {"path": f"{PATH_PREFIX}.{pair_name}.{key}", "value": value}
                        for key, value in values.items()
                    ],
                }
            ],
        }

    def _send(self, pair_name: str, values: Dict[str, Any]):
        delta = self.build_delta(pair_name, values)
        self.recent.append(delta)
        for sink in list(self._sinks):
            try:
                sink(delta)
            except Exception as e:
                logger.error(f"Bus sink failed for {pair_name}: {e}")
        logger.debug(f"Published {list(values)} for {pair_name}")

    async def start(self):
        if not self.enabled or self._heartbeat_task is not None:
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info(f"Bus publisher started (instance {self.device_instance})")

    async def stop(self):
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None
        self._pair_states.clear()

    async def _heartbeat_loop(self):
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            self.send_heartbeats()

    def send_heartbeats(self) -> int:
        """Heartbeat every recently updated pair; returns how many were sent"""
        now = self._clock()
        sent = 0
        for pair_name, state in list(self._pair_states.items()):
            if now - state.get("lastUpdate", 0) < HEARTBEAT_WINDOW:
                self._send(pair_name, {"status": "online", "lastSeen": _iso_now()})
                sent += 1
        return sent

    def diagnostics(self) -> dict:
        return {
            "enabled": self.enabled,
            "deviceInstance": self.device_instance,
            "heartbeat": self._heartbeat_task is not None,
            "pairs": sorted(self._pair_states),
            "recentMessages": len(self.recent),
        }
