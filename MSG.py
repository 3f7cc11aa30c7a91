from pydantic import BaseModel, ConfigDict
from typing import List, Literal, Optional

DeviceType = Literal["temperature", "sound", "camera", "speaker", "computer"]
Status = Literal["online", "offline"]


class Reading(BaseModel):
    model_config = ConfigDict(extra="allow")

    timestamp: str
    temperatura: Optional[float] = None  # Celsius
    sonido: Optional[int] = None  # dB
    movimiento: Optional[bool] = None


class Device(BaseModel):
    id: str
    type: DeviceType
    status: Status = "online"
    name: Optional[str] = None
    details: Optional[str] = None
    data: Reading


class NetworkStats(BaseModel):
    totalDevices: int = 0
    onlineDevices: int = 0
    offlineDevices: int = 0
    networkQuality: int = 0
    activeCameras: int = 0
    motionDetected: int = 0


class SnapshotMessage(BaseModel):
    type: Literal["init", "update"]
    timestamp: str
    networkStats: NetworkStats
    devices: List[Device] = []


def to_wire(model: BaseModel) -> dict:
    """Dump a schema object the way it travels over HTTP and the live channel."""
    return model.model_dump(exclude_none=True)


def validate_message(data) -> SnapshotMessage:
    """Validate and return a SnapshotMessage pydantic model."""
    return SnapshotMessage.model_validate(data)
