"""
Deterministic synthetic readings for demos and seeding.

Nothing in the aggregation path imports this module; generated readings only
enter the system through the normal ingest path.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, List, Mapping, Tuple

from airmon_core.domain.models import SensorReading

# (baseline value, relative jitter)
DEFAULT_BASELINES: Mapping[str, Tuple[float, float]] = {
    "pm25": (19.7, 0.2),
    "pm10": (32.1, 0.2),
    "voc": (75.0, 0.3),
    "hcho": (20.0, 0.4),
    "nox": (50.0, 0.3),
    "temperature": (25.2, 0.1),
    "humidity": (55.9, 0.15),
    "co2": (442.0, 0.2),
    "pm03": (8.0, 0.2),
    "pm1": (12.0, 0.2),
    "pm5": (18.0, 0.2),
    "pc03": (25000.0, 0.3),
    "pc05": (12000.0, 0.3),
    "pc1": (5000.0, 0.3),
    "pc25": (1200.0, 0.3),
    "pc5": (150.0, 0.3),
    "pc10": (30.0, 0.3),
}

# physical floors applied after jitter
_FLOORS: Mapping[str, float] = {"co2": 400.0}
_CEILINGS: Mapping[str, float] = {"humidity": 100.0}


def _hash32(text: str) -> int:
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    return h - (1 << 32) if h & 0x80000000 else h


def deterministic_variation(seed: str, base: float, pct: float) -> float:
    """*base* shifted by up to ``pct * base`` in either direction, fixed for a given *seed*."""
    normalized = (_hash32(seed) % 2001) / 1000 - 1
    return base + normalized * base * pct


@dataclass
class SyntheticReadingGenerator:
    device_id: str
    baselines: Mapping[str, Tuple[float, float]] = field(
        default_factory=lambda: dict(DEFAULT_BASELINES)
    )

    def reading_at(self, sensor_type: str, ts: float) -> SensorReading:
        base, pct = self.baselines[sensor_type]
        seed = f"{datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()}:{sensor_type}"
        value = deterministic_variation(seed, base, pct)
        value = max(_FLOORS.get(sensor_type, 0.0), value)
        value = min(_CEILINGS.get(sensor_type, value), value)
        return SensorReading(
            device_id=self.device_id, sensor_type=sensor_type, value=value, ts=ts
        )

    def iter_readings(
        self, start_ts: float, end_ts: float, interval_s: float
    ) -> Iterator[SensorReading]:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        ts = start_ts
        while ts <= end_ts:
            for sensor_type in self.baselines:
                yield self.reading_at(sensor_type, ts)
            ts += interval_s

    def readings(self, start_ts: float, end_ts: float, interval_s: float) -> List[SensorReading]:
        return list(self.iter_readings(start_ts, end_ts, interval_s))
