from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class ActivityModel(BaseModel):
    timestamp: float
    type: str
    data: Any = None


class PairResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    source_device_ref: str = Field(..., alias="sourceDeviceRef")
    amp_device_ref: str = Field(..., alias="ampDeviceRef")
    amp_input_selector: str = Field(..., alias="ampInputSelector")
    volume_sync_enabled: bool = Field(True, alias="volumeSyncEnabled")
    enabled: bool = True
    status: str = "ready"
    last_activity: Optional[ActivityModel] = Field(None, alias="lastActivity")


class AssociationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_device_ref: str = Field(
        ..., alias="sourceDeviceRef", description="Source device identifier"
    )
    amp_device_ref: str = Field(
        ..., alias="ampDeviceRef", description="Amplifier device identifier"
    )
    ignore: Optional[str] = Field(
        None, description="Pair to leave out of the check, when re-targeting it"
    )


class AssociationResponse(BaseModel):
    valid: bool
    conflicts: List[str] = []


class DeviceProbe(BaseModel):
    connected: bool
    state: Optional[str] = None


class PairTestResult(BaseModel):
    success: bool
    source: DeviceProbe
    amp: DeviceProbe
    error: Optional[str] = None


class PairStateResponse(BaseModel):
    name: str
    state: str


class RecentActivity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pair_name: str = Field(..., alias="pairName")
    timestamp: float
    type: str


class StatisticsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_pairs: int = Field(..., alias="totalPairs")
    enabled_pairs: int = Field(..., alias="enabledPairs")
    active_pairs: int = Field(..., alias="activePairs")
    recent_activity: List[RecentActivity] = Field([], alias="recentActivity")


class ImportResult(BaseModel):
    imported: int
    skipped: int


class ServiceStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    running: bool
    total_pairs: int = Field(..., alias="totalPairs")
    enabled_pairs: int = Field(..., alias="enabledPairs")
    tracked_devices: Dict[str, int] = Field({}, alias="trackedDevices")
