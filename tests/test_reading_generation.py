import random
from datetime import datetime, timezone

from Reading_Generation import MockReadingGenerator, generate


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_temperature_in_range():
    gen = MockReadingGenerator(random.Random(1))
    for _ in range(200):
        r = gen.generate("temperature", NOW)
        assert 20.0 <= r.temperatura <= 25.0
        assert r.sonido is None and r.movimiento is None


def test_sound_is_rounded_db():
    gen = MockReadingGenerator(random.Random(2))
    for _ in range(200):
        r = gen.generate("sound", NOW)
        assert isinstance(r.sonido, int)
        assert 30 <= r.sonido <= 80


def test_camera_motion_follows_probability(fixed_random):
    assert MockReadingGenerator(fixed_random(0.1)).generate("camera", NOW).movimiento is True
    assert MockReadingGenerator(fixed_random(0.5)).generate("camera", NOW).movimiento is False


def test_computer_and_speaker_only_carry_timestamp():
    for device_type in ("computer", "speaker"):
        r = generate(device_type, NOW)
        assert r.model_dump(exclude_none=True) == {"timestamp": r.timestamp}


def test_timestamp_is_generation_time():
    r = generate("temperature", NOW)
    assert datetime.fromisoformat(r.timestamp) == NOW
