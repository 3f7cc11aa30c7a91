# Registration_Client.py
# Async client for the host's Registration API.
# Every call returns (status_code, json_body); status 0 means the host was
# unreachable, mirroring how the transmitter reports network errors.

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

import Config
from MSG import NetworkStats, SnapshotMessage, validate_message

logger = logging.getLogger(__name__)

Result = Tuple[int, Dict[str, Any]]


class RegistrationClient:

    def __init__(
        self,
        base_url: str = Config.API_URL,
        timeout_s: float = Config.HTTP_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout_s)

    async def __aenter__(self) -> "RegistrationClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_json(self, path: str, payload: dict) -> Result:
        try:
            r = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.warning("POST %s failed: %s", path, e)
            return 0, {"error": str(e)}

        try:
            body = r.json()
        except ValueError:
            body = {"error": r.text}
        return r.status_code, body

    async def register(self, device_type: str) -> Result:
        return await self.post_json("/devices/register", {"deviceType": device_type})

    async def unregister(self, device_id: str) -> Result:
        return await self.post_json("/devices/unregister", {"deviceId": device_id})

    async def reactivate(self, device_id: str) -> Result:
        return await self.post_json("/devices/reactivate", {"deviceId": device_id})


def is_success(status: int) -> bool:
    return 200 <= status < 300


class DeviceView:
    """Caller-side picture of the device list, updated from API responses.

    Register/unregister answers are folded in optimistically; the next
    snapshot from the live channel replaces everything, since only the
    broadcast is authoritative.
    """

    def __init__(self, client: RegistrationClient):
        self.client = client
        self.devices: Dict[str, str] = {}  # id -> type
        self.stats: Optional[NetworkStats] = None
        self.loading = False
        self.error: Optional[str] = None

    async def register(self, device_type: str) -> Optional[str]:
        self.loading, self.error = True, None
        try:
            status, body = await self.client.register(device_type)
        finally:
            self.loading = False

        if not is_success(status):
            self.error = body.get("error") or "Failed to register device"
            return None
        self.devices[body["deviceId"]] = device_type
        self.stats = NetworkStats.model_validate(body["networkStats"])
        return body["deviceId"]

    async def unregister(self, device_id: str) -> bool:
        self.loading, self.error = True, None
        try:
            status, body = await self.client.unregister(device_id)
        finally:
            self.loading = False

        if not is_success(status):
            self.error = body.get("error") or "Failed to unregister device"
            return False
        self.devices.pop(device_id, None)
        self.stats = NetworkStats.model_validate(body["networkStats"])
        return True

    def apply(self, message) -> None:
        if not isinstance(message, SnapshotMessage):
            message = validate_message(message)
        self.devices = {d.id: d.type for d in message.devices}
        self.stats = message.networkStats.model_copy()
