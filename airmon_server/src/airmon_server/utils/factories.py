from datetime import datetime, timezone

import factory
from airmon_core.domain.models import SensorReading


class UTCFloatTimestamp(factory.Factory):
    class Meta:
        model = float

    @classmethod
    def _create(cls, *_, **__):
        return datetime.now(tz=timezone.utc).timestamp()


class SensorReadingFactory(factory.Factory):
    class Meta:
        model = SensorReading

    device_id = factory.Sequence(lambda n: f"sensor-{n}")
    sensor_type = "pm25"
    value = 20.0
    ts = UTCFloatTimestamp()
