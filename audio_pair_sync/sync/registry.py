"""
Pair registry for Audio Pair Sync

Authoritative in-memory store of device pairs. The registry validates single
pair configurations and announces lifecycle changes; relational checks across
pairs live in the validator.
"""

import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from loguru import logger

from ..errors import NotFoundError, ValidationError
from ..models import DevicePair, DeviceRef, InputSelector, PairActivity
from .events import LifecycleEvent, PairReady, PairRemoved

LifecycleListener = Callable[[LifecycleEvent], None]

# (record key, attribute name), in the order they are checked
REQUIRED_FIELDS = [
    ("name", "name"),
    ("sourceDeviceRef", "source_device_ref"),
    ("ampDeviceRef", "amp_device_ref"),
    ("ampInputSelector", "amp_input_selector"),
]

UPDATABLE_FIELDS = {
    "sourceDeviceRef": "source_device_ref",
    "ampDeviceRef": "amp_device_ref",
    "ampInputSelector": "amp_input_selector",
    "volumeSyncEnabled": "volume_sync_enabled",
    "enabled": "enabled",
}


def _lookup(config: Mapping[str, Any], key: str, attr: str) -> Any:
    if key in config:
        return config[key]
    return config.get(attr)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _parse_selector(value: Any) -> InputSelector:
    selector = InputSelector.parse(value) if isinstance(value, str) else None
    if selector is None:
        raise ValidationError(
            f"Invalid amp input selector: {value!r}", field="ampInputSelector"
        )
    return selector


def _parse_flag(config: Mapping[str, Any], key: str, attr: str) -> Optional[bool]:
    value = _lookup(config, key, attr)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"Field '{key}' must be a boolean", field=key)
    return value


class PairRegistry:
    """Owns every DevicePair and serializes all mutations"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._pairs: Dict[str, DevicePair] = {}
        self._lock = threading.RLock()
        self._listeners: List[LifecycleListener] = []
        self._clock = clock

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding the pair mapping, for snapshot reads"""
        return self._lock

    def now(self) -> float:
        return self._clock()

    def subscribe(self, listener: LifecycleListener):
        """Register a listener for PairReady / PairRemoved events"""
        self._listeners.append(listener)

    def unsubscribe(self, listener: LifecycleListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, events: Iterable[LifecycleEvent]):
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    logger.error(f"Lifecycle listener failed for {event}: {e}")

    def build_pair(self, config: Mapping[str, Any]) -> DevicePair:
        """Validate a configuration into a pair without storing it"""
        if not isinstance(config, Mapping):
            raise ValidationError("Pair configuration must be a mapping")

        for key, attr in REQUIRED_FIELDS:
            if _is_blank(_lookup(config, key, attr)):
                raise ValidationError(f"Missing required field '{key}'", field=key)

        selector = _parse_selector(
            _lookup(config, "ampInputSelector", "amp_input_selector")
        )
        volume_sync = _parse_flag(config, "volumeSyncEnabled", "volume_sync_enabled")
        enabled = _parse_flag(config, "enabled", "enabled")

        return DevicePair(
            name=str(_lookup(config, "name", "name")).strip(),
            source_device_ref=DeviceRef(
                str(_lookup(config, "sourceDeviceRef", "source_device_ref"))
            ),
            amp_device_ref=DeviceRef(
                str(_lookup(config, "ampDeviceRef", "amp_device_ref"))
            ),
            amp_input_selector=selector,
            volume_sync_enabled=True if volume_sync is None else volume_sync,
            enabled=True if enabled is None else enabled,
        )

    def _store(self, pair: DevicePair, pending: List[LifecycleEvent]):
        if pair.name in self._pairs:
            raise ValidationError(
                f"Device pair already exists: {pair.name}", field="name"
            )
        self._pairs[pair.name] = pair
        logger.debug(
            f"Added device pair: {pair.name} (source={pair.source_device_ref}, "
            f"amp={pair.amp_device_ref}, input={pair.amp_input_selector.value}, "
            f"volumeSync={pair.volume_sync_enabled}, enabled={pair.enabled})"
        )
        if pair.enabled:
            pending.append(
                PairReady(pair.name, pair.source_device_ref, pair.amp_device_ref)
            )

    def add(self, config: Mapping[str, Any]) -> DevicePair:
        """Validate and store a new pair, announcing it if enabled"""
        pending: List[LifecycleEvent] = []
        with self._lock:
            pair = self.build_pair(config)
            self._store(pair, pending)
        self._emit(pending)
        return pair

    def remove(self, name: str):
        """Delete a pair; unknown names are ignored"""
        with self._lock:
            pair = self._pairs.pop(name, None)
        if pair is None:
            return
        logger.debug(f"Removed device pair: {name}")
        self._emit(
            [PairRemoved(pair.name, pair.source_device_ref, pair.amp_device_ref)]
        )

    def update(self, name: str, fields: Mapping[str, Any]) -> DevicePair:
        """Merge fields into an existing pair"""
        if not isinstance(fields, Mapping):
            raise ValidationError("Pair update must be a mapping")

        pending: List[LifecycleEvent] = []
        with self._lock:
            pair = self._pairs.get(name)
            if pair is None:
                raise NotFoundError(name)

            changes: Dict[str, Any] = {}
            for key, value in fields.items():
                if key == "name":
                    if value != name:
                        raise ValidationError(
                            "Pair name is immutable; remove and re-add to rename",
                            field="name",
                        )
                    continue
                attr = UPDATABLE_FIELDS.get(key)
                if attr is None and key in UPDATABLE_FIELDS.values():
                    attr = key
                if attr is None:
                    raise ValidationError(f"Unknown pair field '{key}'", field=key)

                if attr == "amp_input_selector":
                    changes[attr] = _parse_selector(value)
                elif attr in ("source_device_ref", "amp_device_ref"):
                    if _is_blank(value):
                        raise ValidationError(
                            f"Field '{key}' must not be empty", field=key
                        )
                    changes[attr] = DeviceRef(str(value))
                else:
                    if not isinstance(value, bool):
                        raise ValidationError(
                            f"Field '{key}' must be a boolean", field=key
                        )
                    changes[attr] = value

            was_enabled = pair.enabled
            old_refs = (pair.source_device_ref, pair.amp_device_ref)
            for attr, value in changes.items():
                setattr(pair, attr, value)
            new_refs = (pair.source_device_ref, pair.amp_device_ref)

            logger.debug(f"Updated device pair: {name} {changes}")

            if not was_enabled and pair.enabled:
                pending.append(PairReady(name, *new_refs))
            elif was_enabled and not pair.enabled:
                pending.append(PairRemoved(name, *old_refs))
            elif pair.enabled and old_refs != new_refs:
                pending.append(PairRemoved(name, *old_refs))
                pending.append(PairReady(name, *new_refs))
        self._emit(pending)
        return pair

    def get(self, name: str) -> Optional[DevicePair]:
        return self._pairs.get(name)

    def all(self) -> List[DevicePair]:
        with self._lock:
            return list(self._pairs.values())

    def enabled_only(self) -> List[DevicePair]:
        with self._lock:
            return [pair for pair in self._pairs.values() if pair.enabled]

    def by_input(self, selector: str) -> List[DevicePair]:
        """Enabled pairs wired to the given amp input"""
        wanted = InputSelector.parse(selector)
        if wanted is None:
            return []
        return [p for p in self.enabled_only() if p.amp_input_selector == wanted]

    def find_by_source_device(self, ref: DeviceRef) -> Optional[DevicePair]:
        with self._lock:
            return next(
                (
                    pair
                    for pair in self._pairs.values()
                    if pair.enabled and pair.source_device_ref == ref
                ),
                None,
            )

    def find_by_amp_device(self, ref: DeviceRef) -> Optional[DevicePair]:
        with self._lock:
            return next(
                (
                    pair
                    for pair in self._pairs.values()
                    if pair.enabled and pair.amp_device_ref == ref
                ),
                None,
            )

    def touch_activity(self, name: str, activity_type: str, data: Any = None):
        """Record the last observed event on a pair, if it still exists"""
        with self._lock:
            pair = self._pairs.get(name)
            if pair is None:
                return
            pair.last_activity = PairActivity(
                timestamp=self._clock(), type=activity_type, data=data
            )
        logger.debug(f"Updated pair activity: {name} -> {activity_type}")

    def set_status(self, name: str, status: str):
        with self._lock:
            pair = self._pairs.get(name)
            if pair is None:
                return
            pair.status = status
        logger.debug(f"Updated pair status: {name} -> {status}")

    def export_all(self) -> List[dict]:
        return [pair.to_record() for pair in self.all()]

    def import_all(self, records: Any) -> List[DevicePair]:
        """Replace every pair with the given records

        Invalid records are logged and skipped; the rest are applied.
        """
        if not isinstance(records, (list, tuple)):
            raise ValidationError("Invalid configuration format: expected a list")

        pending: List[LifecycleEvent] = []
        skipped = 0
        with self._lock:
            for pair in self._pairs.values():
                if not pair.enabled:
                    continue
                pending.append(
                    PairRemoved(pair.name, pair.source_device_ref, pair.amp_device_ref)
                )
            self._pairs.clear()

            for index, record in enumerate(records):
                try:
                    self._store(self.build_pair(record), pending)
                except ValidationError as e:
                    skipped += 1
                    label = record.get("name") if isinstance(record, Mapping) else None
                    logger.error(
                        f"Skipping invalid device pair #{index} ({label}): {e}"
                    )
            imported = list(self._pairs.values())

        if skipped:
            logger.warning(
                f"Imported {len(imported)} device pairs, skipped {skipped} invalid"
            )
        else:
            logger.info(f"Imported {len(imported)} device pairs")
        self._emit(pending)
        return imported

    def __len__(self) -> int:
        return len(self._pairs)

    def __contains__(self, name: object) -> bool:
        return name in self._pairs
