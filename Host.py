# Host.py acts as the authoritative side of the device network
#
# Responsibilities:
# - Own the DeviceRegistry (one per app, kept on app.state)
# - Register / unregister / reactivate devices (HTTP POST /devices/*)
# - Push a full snapshot on connect and on every broadcast tick (WebSocket /ws)
# - Provide the current snapshot for polling clients (GET /devices)
# - Health check (GET /health)

import json
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

import Config
from Errors import NetworkError, ValidationError
from MSG import SnapshotMessage, to_wire
from Registry import DeviceRegistry

logger = logging.getLogger("uvicorn")


# ----------------------------
# HELPERS
# ----------------------------
def now_iso() -> str:
    return datetime.now().astimezone().isoformat()


def error_response(exc: NetworkError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


async def read_json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except Exception:
        raise ValidationError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("Body must be a JSON object")
    return body


class Broadcaster:
    """Fans complete registry snapshots out to every open observer.

    Observers are anything with an async send_text(); the /ws route hands in
    Starlette WebSockets. Messages are never diffs: each one carries the whole
    registry.
    """

    def __init__(self, registry: DeviceRegistry):
        self.registry = registry
        self.observers: Set[Any] = set()

    def _encode(self, msg: SnapshotMessage) -> str:
        return json.dumps(to_wire(msg), ensure_ascii=False)

    async def attach(self, ws) -> None:
        init = self.registry.snapshot_message("init", now_iso())
        await ws.send_text(self._encode(init))
        self.observers.add(ws)

    def detach(self, ws) -> None:
        self.observers.discard(ws)

    async def serve(self, ws) -> None:
        """Keep one accepted observer attached until it goes away."""
        try:
            await self.attach(ws)
            logger.info("Client connected (%d open)", len(self.observers))
            # Clients never send anything meaningful; reading only detects the close
            while True:
                await ws.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            self.detach(ws)
            logger.info("Client disconnected (%d open)", len(self.observers))

    async def tick(self) -> Optional[SnapshotMessage]:
        if not self.observers:
            return None

        self.registry.refresh_readings()
        update = self.registry.snapshot_message("update", now_iso())
        msg = self._encode(update)

        dead: list = []
        for ws in list(self.observers):
            try:
                await ws.send_text(msg)
            except Exception:
                logger.debug("Dropping observer after failed send", exc_info=True)
                dead.append(ws)

        for ws in dead:
            self.observers.discard(ws)
        return update

    async def run(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                await self.tick()
            except Exception:
                logger.exception("Broadcast tick failed")


# ----------------------------
# ROUTES
# ----------------------------
router = APIRouter()


@router.post("/devices/register")
async def register_device(request: Request) -> JSONResponse:
    registry: DeviceRegistry = request.app.state.registry
    try:
        body = await read_json_body(request)
        device_type = body.get("deviceType")
        device_id = registry.register(device_type)
    except NetworkError as exc:
        return error_response(exc)

    return JSONResponse(status_code=200, content={
        "deviceId": device_id,
        "message": f"Device {device_type} registered successfully",
        "networkStats": to_wire(registry.stats),
    })


@router.post("/devices/unregister")
async def unregister_device(request: Request) -> JSONResponse:
    registry: DeviceRegistry = request.app.state.registry
    try:
        body = await read_json_body(request)
        device_id = body.get("deviceId")
        registry.unregister(device_id)
    except NetworkError as exc:
        return error_response(exc)

    return JSONResponse(status_code=200, content={
        "message": f"Device {device_id} unregistered successfully",
        "networkStats": to_wire(registry.stats),
    })


@router.post("/devices/reactivate")
async def reactivate_device(request: Request) -> JSONResponse:
    registry: DeviceRegistry = request.app.state.registry
    try:
        body = await read_json_body(request)
        device_id = body.get("deviceId")
        registry.reactivate(device_id)
    except NetworkError as exc:
        return error_response(exc)

    return JSONResponse(status_code=200, content={
        "message": f"Device {device_id} reactivated successfully",
        "networkStats": to_wire(registry.stats),
    })


@router.get("/devices")
async def list_devices(request: Request) -> JSONResponse:
    registry: DeviceRegistry = request.app.state.registry
    return JSONResponse(status_code=200, content=to_wire(registry.snapshot_message("init", now_iso())))


def create_app(
    registry: Optional[DeviceRegistry] = None,
    broadcast_interval_s: float = Config.BROADCAST_INTERVAL_S,
) -> FastAPI:
    registry = registry or DeviceRegistry()
    broadcaster = Broadcaster(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(broadcaster.run(broadcast_interval_s))
        logger.info("Broadcasting snapshots every %.1fs", broadcast_interval_s)
        try:
            yield
        finally:
            task.cancel()

    app = FastAPI(title=Config.APP_TITLE, lifespan=lifespan)
    app.state.registry = registry
    app.state.broadcaster = broadcaster

    app.include_router(router)
    app.include_router(router, prefix="/api")

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, "service": "host", "time": now_iso()}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await ws.accept()
        await broadcaster.serve(ws)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=Config.HOST, port=Config.PORT)
