# History.py
# Short rolling history of what the snapshots carried, for charting.
# Only the last HISTORY_LENGTH points per series are kept.

from collections import deque
from typing import Any, Deque, Dict

import Config
from MSG import SnapshotMessage, validate_message


class SnapshotHistory:

    def __init__(self, maxlen: int = Config.HISTORY_LENGTH):
        self.maxlen = maxlen
        self.temperature: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self.sound: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self.motion: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self.device_status: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self.network_quality: Deque[Dict[str, Any]] = deque(maxlen=maxlen)

    def feed(self, message) -> None:
        if not isinstance(message, SnapshotMessage):
            message = validate_message(message)

        for d in message.devices:
            if d.status != "online":
                continue
            ts = d.data.timestamp
            if d.type == "temperature" and d.data.temperatura is not None:
                self.temperature.append({"value": d.data.temperatura, "timestamp": ts})
            elif d.type == "sound" and d.data.sonido is not None:
                self.sound.append({"value": d.data.sonido, "timestamp": ts})
            elif d.type == "camera" and d.data.movimiento is not None:
                self.motion.append({"value": 1 if d.data.movimiento else 0, "timestamp": ts})

        online = sum(1 for d in message.devices if d.status == "online")
        self.device_status.append({
            "online": online,
            "offline": len(message.devices) - online,
            "timestamp": message.timestamp,
        })
        self.network_quality.append({
            "value": message.networkStats.networkQuality,
            "timestamp": message.timestamp,
        })
