import random

from History import SnapshotHistory
from Reading_Generation import MockReadingGenerator
from Registry import DeviceRegistry


def test_series_are_bounded(snapshot_of):
    reg = DeviceRegistry(generator=MockReadingGenerator(random.Random(9)))
    for t in ("temperature", "sound", "camera"):
        reg.register(t)

    history = SnapshotHistory(maxlen=4)
    for i in range(10):
        reg.refresh_readings()
        history.feed(snapshot_of(reg, ts=f"t{i}"))

    for series in (history.temperature, history.sound, history.motion,
                   history.device_status, history.network_quality):
        assert len(series) == 4
    assert [p["timestamp"] for p in history.device_status] == ["t6", "t7", "t8", "t9"]
    assert history.network_quality[-1]["value"] == reg.stats.networkQuality
    assert all(p["value"] in (0, 1) for p in history.motion)


def test_offline_devices_do_not_feed_readings(registry, snapshot_of):
    device_id = registry.register("temperature")
    registry.get(device_id).status = "offline"

    history = SnapshotHistory()
    history.feed(snapshot_of(registry))
    assert list(history.temperature) == []
    assert history.device_status[-1]["offline"] == 1
    assert history.device_status[-1]["online"] == 2
