"""
Per-metric quality bands and prolonged critical-level detection.

Threshold values are the facility defaults for the deployed sensors. A value
at or above ``poor`` is critical.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from airmon_core.domain.models import SensorReading


class MetricQuality(str, Enum):
    GOOD = "Good"
    MODERATE = "Moderate"
    POOR = "Poor"


@dataclass(frozen=True)
class Thresholds:
    good: float
    moderate: float
    poor: float


DEFAULT_THRESHOLDS: Mapping[str, Thresholds] = {
    "pm03": Thresholds(0, 50000, 100000),
    "pm1": Thresholds(0, 30000, 60000),
    "pm25": Thresholds(50.4, 60.4, 75.4),
    "pm5": Thresholds(0, 100, 200),
    "pm10": Thresholds(75.0, 150.0, 250.0),
    "co2": Thresholds(700, 1000, 1500),
    "hcho": Thresholds(30.0, 80.0, 120.0),
    "voc": Thresholds(100.0, 200.0, 300.0),
    "nox": Thresholds(100.0, 200.0, 300.0),
    "no2": Thresholds(53, 100, 360),
    "temperature": Thresholds(18, 25, 35),
    "humidity": Thresholds(40, 60, 80),
}


def metric_quality(
    metric: str, value: float, thresholds: Mapping[str, Thresholds] = DEFAULT_THRESHOLDS
) -> MetricQuality:
    """Quality band of *value*; metrics without thresholds are always Good."""
    limits = thresholds.get(metric)
    if limits is None:
        return MetricQuality.GOOD
    if value >= limits.poor:
        return MetricQuality.POOR
    if value >= limits.moderate:
        return MetricQuality.MODERATE
    return MetricQuality.GOOD


def critical_limits(thresholds: Mapping[str, Thresholds] = DEFAULT_THRESHOLDS) -> Dict[str, float]:
    return {metric: limits.poor for metric, limits in thresholds.items()}


@dataclass(frozen=True)
class ProlongedExceedance:
    sensor_type: str
    limit: float
    start_ts: float
    end_ts: float
    latest_value: float

    @property
    def duration_h(self) -> float:
        return (self.end_ts - self.start_ts) / 3600


def prolonged_exceedances(
    readings: Iterable[SensorReading],
    min_hours: float = 1.0,
    limits: Optional[Mapping[str, float]] = None,
) -> List[ProlongedExceedance]:
    """
    Longest unbroken run at or above the critical limit, per sensor type.

    A run is a sequence of consecutive readings (by timestamp) that are all at
    or above the limit; any reading below it ends the run. Only runs lasting at
    least *min_hours* are reported, longest first.
    """
    limits = critical_limits() if limits is None else limits
    by_type: Dict[str, List[SensorReading]] = {}
    for reading in readings:
        if reading.sensor_type in limits:
            by_type.setdefault(reading.sensor_type, []).append(reading)

    found = []
    for sensor_type, series in by_type.items():
        limit = limits[sensor_type]
        longest: Optional[ProlongedExceedance] = None
        run_start: Optional[float] = None
        for reading in sorted(series, key=lambda r: r.ts):
            if reading.value < limit:
                run_start = None
                continue
            if run_start is None:
                run_start = reading.ts
            if longest is None or reading.ts - run_start > longest.end_ts - longest.start_ts:
                longest = ProlongedExceedance(
                    sensor_type, limit, run_start, reading.ts, reading.value
                )
        if longest is not None and longest.duration_h >= min_hours:
            found.append(longest)
    return sorted(found, key=lambda e: e.duration_h, reverse=True)
