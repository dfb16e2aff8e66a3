"""
Shared models for Audio Pair Sync
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, NewType, Optional

# Opaque device identifier handed out by the device clients
DeviceRef = NewType("DeviceRef", str)


class InputSelector(str, Enum):
    AUX1 = "aux1"
    AUX2 = "aux2"
    AUX3 = "aux3"
    USB = "usb"
    BLUETOOTH = "bluetooth"
    AM = "am"
    FM = "fm"

    @classmethod
    def parse(cls, value: str) -> Optional["InputSelector"]:
        """Look up a selector case-insensitively, None if unknown"""
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            return None


class PairState(str, Enum):
    UNPAIRED = "unpaired"
    READY = "ready"
    ACTIVE = "active"


@dataclass
class PairActivity:
    """Last observed event on a pair"""

    timestamp: float
    type: str
    data: Any = None

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "type": self.type, "data": self.data}


@dataclass
class DevicePair:
    """A named source/amplifier association and its sync policy"""

    name: str
    source_device_ref: DeviceRef
    amp_device_ref: DeviceRef
    amp_input_selector: InputSelector
    volume_sync_enabled: bool = True
    enabled: bool = True
    last_activity: Optional[PairActivity] = None
    status: str = "ready"

    def to_record(self) -> dict:
        """Plain config record used for export/import"""
        return {
            "name": self.name,
            "sourceDeviceRef": self.source_device_ref,
            "ampDeviceRef": self.amp_device_ref,
            "ampInputSelector": self.amp_input_selector.value,
            "volumeSyncEnabled": self.volume_sync_enabled,
            "enabled": self.enabled,
        }

    def to_dict(self) -> dict:
        """Convert pair to dictionary for API responses"""
        record = self.to_record()
        record["status"] = self.status
        record["lastActivity"] = (
            self.last_activity.to_dict() if self.last_activity else None
        )
        return record
