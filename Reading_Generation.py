#This program creates synthetic readings for every simulated device type,
#in the same format the host broadcasts in each snapshot.

import random
from datetime import datetime
from typing import Optional

from MSG import Reading

MOTION_PROBABILITY = 0.3


class MockReadingGenerator:

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _timestamp(self, now: Optional[datetime] = None):
        #Returns ISO8601 timestamp in local time with timezone offset.
        return (now or datetime.now()).astimezone().isoformat()

    def _temperature_reading(self):
        return {
            "temperatura": round(self.rng.uniform(20.0, 25.0), 2) #Temp in Celsius
        }

    def _sound_reading(self):
        return {
            "sonido": round(self.rng.uniform(30.0, 80.0)) #Sound level in dB
        }

    def _camera_reading(self):
        return {
            "movimiento": self.rng.random() < MOTION_PROBABILITY #Motion detected flag
        }

    def generate(self, device_type: str, now: Optional[datetime] = None) -> Reading:
        #Generate one reading for a device of the given type.
        fields = {"timestamp": self._timestamp(now)}

        if device_type == "temperature":
            fields.update(self._temperature_reading())
        elif device_type == "sound":
            fields.update(self._sound_reading())
        elif device_type == "camera":
            fields.update(self._camera_reading())

        return Reading(**fields)


_default = MockReadingGenerator()


def generate(device_type: str, now: Optional[datetime] = None) -> Reading:
    return _default.generate(device_type, now)
