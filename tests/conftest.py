import random

import pytest

from MSG import to_wire
from Reading_Generation import MockReadingGenerator
from Registry import DeviceRegistry


class FixedRandom(random.Random):
    """random() always returns the same value; uniform() and friends follow."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def registry():
    return DeviceRegistry(generator=MockReadingGenerator(random.Random(42)))


@pytest.fixture
def snapshot_of():
    def build(reg: DeviceRegistry, kind: str = "update", ts: str = "2026-01-01T00:00:00+00:00") -> dict:
        return to_wire(reg.snapshot_message(kind, ts))
    return build
