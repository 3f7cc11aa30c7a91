import asyncio
import json
import re

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from Host import Broadcaster, create_app
from Registry import DeviceRegistry


@pytest.fixture
def app():
    return create_app(registry=DeviceRegistry(), broadcast_interval_s=0.05)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def total_devices(client) -> int:
    return client.get("/devices").json()["networkStats"]["totalDevices"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_register_returns_id_and_stats(client):
    before = total_devices(client)
    r = client.post("/devices/register", json={"deviceType": "temperature"})
    assert r.status_code == 200
    body = r.json()
    assert re.fullmatch(r"temperature-\d+", body["deviceId"])
    assert body["networkStats"]["totalDevices"] == before + 1
    assert "registered" in body["message"]


def test_register_without_type(client):
    r = client.post("/devices/register", json={})
    assert r.status_code == 400
    assert "error" in r.json()
    assert total_devices(client) == 2


def test_register_with_malformed_body(client):
    r = client.post("/devices/register", content="{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid JSON body"


@pytest.mark.parametrize("device_id", ["server-1", "pc-1"])
def test_unregister_permanent(client, device_id):
    r = client.post("/devices/unregister", json={"deviceId": device_id})
    assert r.status_code == 400
    assert r.json() == {"error": "Cannot unregister default devices"}
    assert total_devices(client) == 2


def test_unregister_without_id(client):
    r = client.post("/devices/unregister", json={})
    assert r.status_code == 400


def test_unregister_then_reactivate(client):
    device_id = client.post("/devices/register", json={"deviceType": "camera"}).json()["deviceId"]

    r = client.post("/devices/unregister", json={"deviceId": device_id})
    assert r.status_code == 200
    assert r.json()["networkStats"]["totalDevices"] == 2

    r = client.post("/devices/reactivate", json={"deviceId": device_id})
    assert r.status_code == 200
    assert r.json()["networkStats"]["activeCameras"] == 1


def test_reactivate_unknown(client):
    r = client.post("/devices/reactivate", json={"deviceId": "camera-1"})
    assert r.status_code == 404


def test_api_prefix_is_mounted(client):
    r = client.post("/api/devices/register", json={"deviceType": "sound"})
    assert r.status_code == 200


def test_ws_sends_init_on_connect(client):
    with client.websocket_connect("/ws") as ws:
        msg = ws.receive_json()
    assert msg["type"] == "init"
    assert [d["id"] for d in msg["devices"]] == ["server-1", "pc-1"]
    assert set(msg["networkStats"]) >= {
        "totalDevices", "onlineDevices", "networkQuality", "activeCameras", "motionDetected",
    }


def test_registered_device_shows_up_in_next_update(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "init"
        device_id = client.post("/devices/register", json={"deviceType": "temperature"}).json()["deviceId"]

        found = None
        for _ in range(5):
            msg = ws.receive_json()
            assert msg["type"] == "update"
            found = next((d for d in msg["devices"] if d["id"] == device_id), None)
            if found:
                break

    assert found is not None
    assert found["status"] == "online"
    assert "temperatura" in found["data"]
    assert msg["networkStats"]["totalDevices"] == 3


# ----------------------------
# Broadcaster without a server
# ----------------------------
class FakeObserver:

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(text))


def test_tick_without_observers_does_nothing(fixed_random):
    from Reading_Generation import MockReadingGenerator

    reg = DeviceRegistry(generator=MockReadingGenerator(fixed_random(0.0)))
    reg.register("camera")
    b = Broadcaster(reg)
    assert asyncio.run(b.tick()) is None
    assert reg.stats.motionDetected == 1


def test_tick_sends_full_snapshot_and_drops_dead_observers():
    reg = DeviceRegistry()
    b = Broadcaster(reg)
    good, bad = FakeObserver(), FakeObserver(fail=True)

    async def scenario():
        await b.attach(good)
        b.observers.add(bad)
        await b.tick()

    asyncio.run(scenario())
    assert [m["type"] for m in good.sent] == ["init", "update"]
    assert len(good.sent[1]["devices"]) == 2
    assert b.observers == {good}


@pytest.mark.parametrize("route", ["/devices/unregister", "/devices/reactivate"])
@pytest.mark.parametrize("device_id", [["camera-1"], {"id": "x"}, 42])
def test_non_string_device_id_is_rejected(client, route, device_id):
    r = client.post(route, json={"deviceId": device_id})
    assert r.status_code == 400
    assert r.json() == {"error": "Device ID is required"}
    assert total_devices(client) == 2


@pytest.mark.parametrize("device_type", [["camera"], {"type": "camera"}, 7])
def test_non_string_device_type_is_rejected(client, device_type):
    r = client.post("/devices/register", json={"deviceType": device_type})
    assert r.status_code == 400
    assert total_devices(client) == 2


class VanishingSocket:
    """Peer that is gone before the init snapshot can be sent."""

    def __init__(self):
        self.received = False

    async def send_text(self, text):
        raise WebSocketDisconnect(code=1006)

    async def receive_text(self):
        self.received = True
        raise WebSocketDisconnect(code=1000)


def test_client_dropping_before_init_is_handled():
    b = Broadcaster(DeviceRegistry())
    ws = VanishingSocket()
    asyncio.run(b.serve(ws))
    assert b.observers == set()
    assert ws.received is False
