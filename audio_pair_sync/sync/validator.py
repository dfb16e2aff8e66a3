"""
Association validator: a physical device may belong to at most one enabled pair
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import ConflictError
from ..models import DeviceRef
from .registry import PairRegistry


@dataclass
class AssociationResult:
    valid: bool
    conflicts: List[str] = field(default_factory=list)

    def raise_for_conflicts(self):
        if not self.valid:
            raise ConflictError("Device association conflict", self.conflicts)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "conflicts": list(self.conflicts)}


def validate_association(
    registry: PairRegistry,
    source_ref: DeviceRef,
    amp_ref: DeviceRef,
    ignore: Optional[str] = None,
) -> AssociationResult:
    """Check a candidate source/amp pairing against the enabled pairs

    ``ignore`` names a pair to leave out, used when re-targeting that pair.
    Disabled pairs never conflict.
    """
    conflicts: List[str] = []
    others = [p for p in registry.enabled_only() if p.name != ignore]
    for pair in others:
        if pair.source_device_ref == source_ref:
            conflicts.append(
                f"Source device {source_ref} is already paired with {pair.name}"
            )
    for pair in others:
        if pair.amp_device_ref == amp_ref:
            conflicts.append(f"Amp device {amp_ref} is already paired with {pair.name}")
    return AssociationResult(valid=not conflicts, conflicts=conflicts)
