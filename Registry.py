# Registry.py
# Authoritative, in-memory device registry owned by the host.
#
# Responsibilities:
# - Hold the live devices in insertion order
# - Keep unregistered devices aside so they can be reactivated
# - Recompute NetworkStats from scratch after every mutation
# - Refresh readings for online devices on each broadcast tick

import time
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import Config
from Errors import InvalidOperation, UnknownDevice, ValidationError
from MSG import Device, NetworkStats, SnapshotMessage
from Reading_Generation import MockReadingGenerator

logger = logging.getLogger(__name__)

SEED_DEVICES = [
    {
        "id": Config.ROOT_ID,
        "type": "computer",
        "name": "Servidor NodeX",
        "details": "Servidor IoT dedicado",
    },
    {
        "id": Config.CONTROL_PC_ID,
        "type": "computer",
        "name": "PC Control",
        "details": "Unidad central de control",
    },
]


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class DeviceRegistry:
    """Single-writer owner of the device set and its derived statistics.

    All callers run on the same event loop, so every public method completes
    its mutation and the stats recomputation without yielding.
    """

    def __init__(
        self,
        generator: Optional[MockReadingGenerator] = None,
        clock: Callable[[], int] = _epoch_ms,
        network_quality: int = Config.NETWORK_QUALITY,
    ):
        self.generator = generator or MockReadingGenerator()
        self.clock = clock
        self.network_quality = network_quality

        self._devices: Dict[str, Device] = {}
        self._retired: Dict[str, Device] = {}
        self._motion_detected = 0
        self.stats = NetworkStats()

        for seed in SEED_DEVICES:
            self._devices[seed["id"]] = Device(
                data=self.generator.generate(seed["type"]), **seed
            )
        self._recompute_stats()

    # ----------------------------
    # STATS
    # ----------------------------
    def _recompute_stats(self) -> NetworkStats:
        devices = list(self._devices.values())
        online = sum(1 for d in devices if d.status == "online")
        self.stats = NetworkStats(
            totalDevices=len(devices),
            onlineDevices=online,
            offlineDevices=len(devices) - online,
            networkQuality=self.network_quality,
            activeCameras=sum(1 for d in devices if d.type == "camera" and d.status == "online"),
            motionDetected=self._motion_detected,
        )
        return self.stats

    def _new_reading(self, device_type: str, now: Optional[datetime] = None):
        reading = self.generator.generate(device_type, now)
        if reading.movimiento:
            self._motion_detected += 1
        return reading

    # ----------------------------
    # MUTATIONS
    # ----------------------------
    def register(self, device_type: Optional[str]) -> str:
        if not isinstance(device_type, str) or not device_type:
            raise ValidationError("Device type is required")
        if device_type not in Config.DEVICE_TYPES:
            raise ValidationError(f"Unsupported device type: {device_type}")

        stamp = self.clock()
        device_id = f"{device_type}-{stamp}"
        while device_id in self._devices or device_id in self._retired:
            stamp += 1
            device_id = f"{device_type}-{stamp}"

        self._devices[device_id] = Device(
            id=device_id,
            type=device_type,
            status="online",
            data=self._new_reading(device_type),
        )
        self._recompute_stats()
        logger.info("Registered %s", device_id)
        return device_id

    def unregister(self, device_id: Optional[str]) -> None:
        if not isinstance(device_id, str) or not device_id:
            raise ValidationError("Device ID is required")
        if device_id in Config.PERMANENT_IDS:
            raise InvalidOperation("Cannot unregister default devices")

        device = self._devices.pop(device_id, None)
        if device is not None:
            self._retired[device_id] = device
            logger.info("Unregistered %s", device_id)
        self._recompute_stats()

    def reactivate(self, device_id: Optional[str]) -> Device:
        if not isinstance(device_id, str) or not device_id:
            raise ValidationError("Device ID is required")

        device = self._devices.get(device_id)
        if device is None:
            device = self._retired.pop(device_id, None)
            if device is None:
                raise UnknownDevice(f"Unknown device: {device_id}")
            self._devices[device_id] = device

        device.status = "online"
        self._recompute_stats()
        logger.info("Reactivated %s", device_id)
        return device

    def refresh_readings(self, now: Optional[datetime] = None) -> NetworkStats:
        """Regenerate readings of online devices; offline ones keep their last reading."""
        for device in self._devices.values():
            if device.status == "online":
                device.data = self._new_reading(device.type, now)
        return self._recompute_stats()

    # ----------------------------
    # READS
    # ----------------------------
    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._devices

    def get(self, device_id: str) -> Optional[Device]:
        return self._devices.get(device_id)

    def snapshot(self) -> Tuple[NetworkStats, List[Device]]:
        return self.stats.model_copy(), [d.model_copy(deep=True) for d in self._devices.values()]

    def snapshot_message(self, kind: str, timestamp: str) -> SnapshotMessage:
        stats, devices = self.snapshot()
        return SnapshotMessage(type=kind, timestamp=timestamp, networkStats=stats, devices=devices)
