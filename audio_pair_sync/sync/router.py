"""
Synchronization router for Audio Pair Sync

Consumes events from the device pollers, the bus control listener and the
registry, resolves the owning pair and issues one-way commands to the
opposite device. Events are handled one at a time, in arrival order, by a
single consumer task. Commands run as separate tasks; their outcome is only
logged and never gates further routing.

The router does no value-equality loop suppression. Pollers deduplicate
against the value they last reported (see collaborators.py), so a command
the router issued does not come back as a fresh change event.
"""

import asyncio
import math
from contextlib import suppress
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Set, Type
from loguru import logger

from ..errors import CollaboratorError
from ..models import DevicePair, DeviceRef, PairState
from .collaborators import AmpDevice, SourceDevice, StatusPublisher
from .events import (
    AmpVolumeChanged,
    PairReady,
    PairRemoved,
    PlaybackState,
    PlaybackStateChanged,
    SourceVolumeChanged,
    SyncEvent,
    TrackChanged,
    VolumeAdjustRequested,
    normalize_playback_state,
)
from .registry import PairRegistry
from .stats import is_recently_active


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent_to_units(percent: int, max_units: int) -> int:
    """Convert a 0-100 source volume to the amp's native range"""
    return round_half_up(percent / 100 * max_units)


def units_to_percent(units: int, max_units: int) -> int:
    """Convert a native amp volume back to 0-100"""
    if max_units <= 0:
        return 0
    return round_half_up(units / max_units * 100)


class SyncRouter:
    def __init__(
        self,
        registry: PairRegistry,
        source: SourceDevice,
        amp: AmpDevice,
        publisher: Optional[StatusPublisher] = None,
    ):
        self._registry = registry
        self._source = source
        self._amp = amp
        self._publisher = publisher

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._commands: Set[asyncio.Task] = set()
        self._running = False

        self.processed = 0
        self.failed_commands = 0

        self._handlers: Dict[Type[Any], Callable[[Any], None]] = {
            PlaybackStateChanged: self._on_playback_state,
            SourceVolumeChanged: self._on_source_volume,
            AmpVolumeChanged: self._on_amp_volume,
            TrackChanged: self._on_track,
            VolumeAdjustRequested: self._on_volume_adjust,
            PairReady: self._on_pair_ready,
            PairRemoved: self._on_pair_removed,
        }

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """Start consuming events on the running loop"""
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._running = True
        self._registry.subscribe(self.submit)
        self._task = asyncio.create_task(self._dispatch_loop())
        logger.info("Sync router started")

    async def stop(self):
        """Stop accepting events, drop queued ones and cancel pending commands"""
        if not self._running:
            return
        self._running = False
        self._registry.unsubscribe(self.submit)

        if self._task:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        discarded = 0
        while self._queue is not None and not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            discarded += 1

        for task in list(self._commands):
            task.cancel()
        self._commands.clear()
        logger.info(f"Sync router stopped ({discarded} queued events discarded)")

    def submit(self, event: SyncEvent):
        """Queue an event; safe to call from any thread"""
        if not self._running or self._loop is None:
            logger.debug(f"Router not running, ignoring {event}")
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is self._loop:
            self._queue.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: SyncEvent):
        if self._running:
            self._queue.put_nowait(event)

    async def drain(self):
        """Wait until queued events and the commands they issued are done"""
        if self._queue is None:
            return
        await self._queue.join()
        while self._commands:
            await asyncio.gather(*list(self._commands), return_exceptions=True)

    async def _dispatch_loop(self):
        while True:
            event = await self._queue.get()
            try:
                self.dispatch(event)
            except Exception as e:
                logger.error(f"Error handling {type(event).__name__}: {e}")
            finally:
                self._queue.task_done()

    def dispatch(self, event: SyncEvent):
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.warning(f"No handler for event {event!r}")
            return
        handler(event)
        self.processed += 1

    def state_of(self, name: str) -> PairState:
        """Read-time pair state; ``active`` is never stored"""
        pair = self._registry.get(name)
        if pair is None or not pair.enabled:
            return PairState.UNPAIRED
        if is_recently_active(pair, self._registry.now()):
            return PairState.ACTIVE
        return PairState.READY

    def diagnostics(self) -> dict:
        return {
            "running": self._running,
            "queuedEvents": self._queue.qsize() if self._queue else 0,
            "inFlightCommands": len(self._commands),
            "processedEvents": self.processed,
            "failedCommands": self.failed_commands,
        }

    # Pair lookups return copies taken under the registry lock

    def _resolve_source(self, ref: DeviceRef) -> Optional[DevicePair]:
        with self._registry.lock:
            pair = self._registry.find_by_source_device(ref)
            return replace(pair) if pair else None

    def _resolve_amp(self, ref: DeviceRef) -> Optional[DevicePair]:
        with self._registry.lock:
            pair = self._registry.find_by_amp_device(ref)
            return replace(pair) if pair else None

    def _resolve_name(self, name: str) -> Optional[DevicePair]:
        with self._registry.lock:
            pair = self._registry.get(name)
            return replace(pair) if pair else None

    def _issue(self, description: str, command: Awaitable[Any]):
        if not self._running:
            if asyncio.iscoroutine(command):
                command.close()
            logger.debug(f"Router stopped, not issuing: {description}")
            return
        task = asyncio.ensure_future(self._run_command(description, command))
        self._commands.add(task)
        task.add_done_callback(self._commands.discard)

    async def _run_command(self, description: str, command: Awaitable[Any]):
        try:
            await command
            logger.debug(f"Command done: {description}")
        except CollaboratorError as e:
            self.failed_commands += 1
            logger.error(f"Command failed: {description}: {e}")
        except Exception as e:
            self.failed_commands += 1
            logger.error(f"Unexpected error running {description}: {e}")

    def _publish(self, pair_name: str, field: str, value: Any):
        if self._publisher is None:
            return
        try:
            self._publisher.publish_status(pair_name, field, value)
        except Exception as e:
            logger.error(f"Failed to publish {field} for {pair_name}: {e}")

    def _on_playback_state(self, event: PlaybackStateChanged):
        pair = self._resolve_source(event.source_ref)
        if pair is None:
            logger.debug(f"No pair for source {event.source_ref}, dropping state")
            return

        state = normalize_playback_state(event.state)
        logger.debug(f"Playback state changed: {pair.name} -> {state.value}")

        if state is PlaybackState.PLAYING:
            selector = pair.amp_input_selector.value
            self._issue(
                f"switch input {pair.amp_device_ref} -> {selector}",
                self._amp.switch_input(pair.amp_device_ref, selector),
            )

        self._registry.touch_activity(pair.name, "playbackState", state.value)
        self._publish(pair.name, "playbackState", state.value)

    def _on_source_volume(self, event: SourceVolumeChanged):
        pair = self._resolve_source(event.source_ref)
        if pair is None:
            logger.debug(f"No pair for source {event.source_ref}, dropping volume")
            return

        percent = max(0, min(100, int(event.percent)))
        self._registry.touch_activity(pair.name, "volume", percent)
        if not pair.volume_sync_enabled:
            logger.debug(f"Volume sync disabled for {pair.name}")
            return

        units = percent_to_units(percent, self._amp.max_volume)
        logger.debug(f"Source volume {pair.name}: {percent}% -> amp {units}")
        self._issue(
            f"set amp volume {pair.amp_device_ref} -> {units}",
            self._amp.set_volume(pair.amp_device_ref, units),
        )
        self._publish(pair.name, "volume", percent / 100)

    def _on_amp_volume(self, event: AmpVolumeChanged):
        pair = self._resolve_amp(event.amp_ref)
        if pair is None:
            logger.debug(f"No pair for amp {event.amp_ref}, dropping volume")
            return

        units = max(0, min(self._amp.max_volume, int(event.units)))
        self._registry.touch_activity(pair.name, "ampVolume", units)
        if not pair.volume_sync_enabled:
            logger.debug(f"Volume sync disabled for {pair.name}")
            return

        percent = units_to_percent(units, self._amp.max_volume)
        logger.debug(f"Amp volume {pair.name}: {units} -> source {percent}%")
        self._issue(
            f"set source volume {pair.source_device_ref} -> {percent}",
            self._source.set_volume(pair.source_device_ref, percent),
        )
        self._publish(pair.name, "volume", percent / 100)

    def _on_track(self, event: TrackChanged):
        pair = self._resolve_source(event.source_ref)
        if pair is None:
            return

        track = dict(event.track) if isinstance(event.track, Mapping) else event.track
        self._registry.touch_activity(pair.name, "track", track)
        self._publish(pair.name, "currentTrack", track)

    def _on_volume_adjust(self, event: VolumeAdjustRequested):
        pair = self._resolve_name(event.pair_name)
        if pair is None or not pair.enabled:
            logger.debug(f"Ignoring volume control for unknown pair {event.pair_name}")
            return

        self._registry.touch_activity(pair.name, "volumeControl", event.delta)
        self._issue(
            f"adjust source volume {pair.source_device_ref} by {event.delta}",
            self._source.adjust_volume(pair.source_device_ref, event.delta),
        )

    def _on_pair_ready(self, event: PairReady):
        logger.info(f"Device pair ready: {event.name}")
        self._call_tracking(self._source.add_tracked, event.source_ref)
        self._call_tracking(self._amp.add_tracked, event.amp_ref)
        self._registry.set_status(event.name, "ready")
        self._publish(event.name, "status", "ready")

    def _on_pair_removed(self, event: PairRemoved):
        logger.info(f"Device pair removed: {event.name}")
        # Another enabled pair may still own the device
        if self._registry.find_by_source_device(event.source_ref) is None:
            self._call_tracking(self._source.remove_tracked, event.source_ref)
        if self._registry.find_by_amp_device(event.amp_ref) is None:
            self._call_tracking(self._amp.remove_tracked, event.amp_ref)

        pair = self._registry.get(event.name)
        if pair is not None and not pair.enabled:
            self._registry.set_status(event.name, "disabled")

    def _call_tracking(self, method: Callable[[DeviceRef], None], ref: DeviceRef):
        try:
            method(ref)
        except Exception as e:
            logger.error(f"Failed to update tracking for {ref}: {e}")
