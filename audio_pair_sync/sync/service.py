"""
Pair service: the operations exposed to the API layer

Orchestrates field validation (registry) and relational validation
(validator) and delegates connectivity probes to the device clients.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional
from loguru import logger

from ..errors import NotFoundError, ValidationError
from ..models import DevicePair, DeviceRef
from . import stats
from .collaborators import AmpDevice, SourceDevice
from .registry import PairRegistry
from .router import SyncRouter
from .validator import AssociationResult, validate_association


class PairService:
    def __init__(
        self,
        registry: PairRegistry,
        router: SyncRouter,
        source: SourceDevice,
        amp: AmpDevice,
        extra_diagnostics: Optional[Dict[str, Any]] = None,
    ):
        self.registry = registry
        self.router = router
        self._source = source
        self._amp = amp
        self._extra_diagnostics = extra_diagnostics or {}

    def list_pairs(self) -> List[dict]:
        return [pair.to_dict() for pair in self.registry.all()]

    def _require(self, name: str) -> DevicePair:
        pair = self.registry.get(name)
        if pair is None:
            raise NotFoundError(name)
        return pair

    def get_pair(self, name: str) -> dict:
        return self._require(name).to_dict()

    def create_pair(self, config: Mapping[str, Any]) -> dict:
        """Add a pair after checking it does not steal a paired device"""
        candidate = self.registry.build_pair(config)
        if candidate.name in self.registry:
            raise ValidationError(
                f"Device pair already exists: {candidate.name}", field="name"
            )
        if candidate.enabled:
            validate_association(
                self.registry, candidate.source_device_ref, candidate.amp_device_ref
            ).raise_for_conflicts()
        pair = self.registry.add(config)
        logger.info(f"Created device pair: {pair.name}")
        return pair.to_dict()

    def update_pair(self, name: str, fields: Mapping[str, Any]) -> dict:
        pair = self._require(name)
        if not isinstance(fields, Mapping):
            raise ValidationError("Pair update must be a mapping")

        source_ref = fields.get(
            "sourceDeviceRef", fields.get("source_device_ref", pair.source_device_ref)
        )
        amp_ref = fields.get(
            "ampDeviceRef", fields.get("amp_device_ref", pair.amp_device_ref)
        )
        enabled = fields.get("enabled", pair.enabled)
        retargeted = (source_ref, amp_ref) != (
            pair.source_device_ref,
            pair.amp_device_ref,
        )
        if enabled is True and (retargeted or not pair.enabled):
            validate_association(
                self.registry, source_ref, amp_ref, ignore=name
            ).raise_for_conflicts()

        updated = self.registry.update(name, fields)
        logger.info(f"Updated device pair: {name}")
        return updated.to_dict()

    def delete_pair(self, name: str):
        self._require(name)
        self.registry.remove(name)
        logger.info(f"Deleted device pair: {name}")

    def validate_association(
        self, source_ref: str, amp_ref: str, ignore: Optional[str] = None
    ) -> AssociationResult:
        return validate_association(
            self.registry, DeviceRef(source_ref), DeviceRef(amp_ref), ignore=ignore
        )

    async def test_pair(self, name: str) -> dict:
        """Probe both devices of a pair"""
        pair = self._require(name)
        source_state, amp_connected = await asyncio.gather(
            self._source.get_playback_state(pair.source_device_ref),
            self._amp.test_connection(pair.amp_device_ref),
            return_exceptions=True,
        )

        errors = []
        if isinstance(source_state, Exception):
            errors.append(f"source: {source_state}")
            source_state = None
        if isinstance(amp_connected, Exception):
            errors.append(f"amp: {amp_connected}")
            amp_connected = False

        result = {
            "success": source_state is not None and bool(amp_connected),
            "source": {"connected": source_state is not None, "state": source_state},
            "amp": {"connected": bool(amp_connected)},
        }
        if not result["success"]:
            result["error"] = "; ".join(errors) or "One or more devices are not responding"
            logger.warning(f"Pair test failed for {name}: {result['error']}")
        return result

    def export_config(self) -> dict:
        return {"devicePairs": self.registry.export_all()}

    def import_config(self, payload: Any) -> dict:
        """Replace all pairs; accepts a record list or {"devicePairs": [...]}"""
        records = payload.get("devicePairs") if isinstance(payload, Mapping) else payload
        imported = self.registry.import_all(records)
        total = len(records)
        return {"imported": len(imported), "skipped": total - len(imported)}

    def statistics(self) -> dict:
        return stats.statistics(self.registry)

    def diagnostics(self) -> dict:
        collaborators = {"source": self._source, "amp": self._amp}
        collaborators.update(self._extra_diagnostics)
        return stats.diagnostics(self.registry, self.router, collaborators)

    def pair_state(self, name: str) -> str:
        self._require(name)
        return self.router.state_of(name).value
