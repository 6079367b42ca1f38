"""
CO2-based room occupancy estimate.

This is a best-effort heuristic, not a calibrated sensor fusion model. It
assumes roughly 150 ppm of CO2 above the 400 ppm outdoor baseline per
occupant and a fixed ventilation rate for passive decay.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from airmon_core.domain.bucketing import TimeZone, resolve_tz
from airmon_core.domain.models import SensorReading, SensorType

CO2_AMBIENT = 400.0
CO2_PER_OCCUPANT = 150.0
VENTILATION_RATE = 0.5  # air changes per hour
DECAY_CONSTANT = math.log(2) / (VENTILATION_RATE * 60)  # per minute
TREND_THRESHOLD = 10.0
OPERATING_HOURS = (8, 18)


class Co2Trend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass(frozen=True)
class OccupancyReading:
    ts: float
    co2: float
    temperature: Optional[float] = None
    humidity: Optional[float] = None


@dataclass(frozen=True)
class OccupancyResult:
    estimated_occupancy: int
    confidence: float
    is_occupied: bool
    co2_trend: Co2Trend


def co2_decay(initial_co2: float, minutes: float) -> float:
    """CO2 level expected after *minutes* of passive decay in an empty room."""
    decayed = CO2_AMBIENT + (initial_co2 - CO2_AMBIENT) * math.exp(-DECAY_CONSTANT * minutes)
    return max(CO2_AMBIENT, decayed)


def in_operating_hours(ts: float, tz: TimeZone) -> bool:
    hour = datetime.fromtimestamp(ts, tz=resolve_tz(tz)).hour
    return OPERATING_HOURS[0] <= hour <= OPERATING_HOURS[1]


def _result(estimate: float, confidence: float, trend: Co2Trend) -> OccupancyResult:
    return OccupancyResult(
        estimated_occupancy=max(0, int(math.floor(estimate + 0.5))),
        confidence=min(0.95, confidence),
        is_occupied=estimate > 0.5,
        co2_trend=trend,
    )


def detect_occupancy(
    readings: Sequence[OccupancyReading], tz: TimeZone = timezone.utc
) -> OccupancyResult:
    if len(readings) < 2:
        return OccupancyResult(0, 0.0, False, Co2Trend.STABLE)

    ordered = sorted(readings, key=lambda r: r.ts)
    previous, latest = ordered[-2], ordered[-1]
    change = latest.co2 - previous.co2
    minutes = (latest.ts - previous.ts) / 60

    trend = Co2Trend.STABLE
    if abs(change) > TREND_THRESHOLD:
        trend = Co2Trend.RISING if change > 0 else Co2Trend.FALLING

    if trend is Co2Trend.FALLING and minutes > 0:
        expected = co2_decay(previous.co2, minutes)
        actual_rate = (previous.co2 - latest.co2) / minutes
        expected_rate = (previous.co2 - expected) / minutes
        ratio = actual_rate / max(expected_rate, 1)
        if ratio > 0.8:
            # decaying like an empty room
            base = max(0.0, (latest.co2 - CO2_AMBIENT) / CO2_PER_OCCUPANT)
            return _result(base * (1 - ratio * 0.5), 0.8, trend)

    if latest.co2 <= CO2_AMBIENT + 50:
        return _result(0.0, 0.5, trend)

    operating = in_operating_hours(latest.ts, tz)
    co2_factor = (latest.co2 - CO2_AMBIENT) / CO2_PER_OCCUPANT
    time_multiplier = 1.0 if operating else 0.3
    trend_multiplier = {Co2Trend.RISING: 1.2, Co2Trend.FALLING: 0.7}.get(trend, 1.0)
    estimate = co2_factor * time_multiplier * trend_multiplier

    confidence = min(0.95, 0.5 + (latest.co2 - CO2_AMBIENT) / 1000)
    if trend is Co2Trend.RISING and operating:
        confidence *= 1.2
    if trend is Co2Trend.FALLING and not operating:
        confidence *= 1.1
    return _result(estimate, confidence, trend)


def enhanced_occupancy_percentage(
    readings: Iterable[OccupancyReading],
    room_capacity: int = 30,
    tz: TimeZone = timezone.utc,
) -> float:
    """Average operating-hours occupancy as a percentage of *room_capacity*."""
    in_hours = sorted((r for r in readings if in_operating_hours(r.ts, tz)), key=lambda r: r.ts)
    if not in_hours or room_capacity <= 0:
        return 0.0

    estimates = []
    for i in range(len(in_hours)):
        result = detect_occupancy(in_hours[max(0, i - 2) : i + 1], tz)
        if result.confidence > 0.3:
            estimates.append(result.estimated_occupancy)
    if not estimates:
        return 0.0

    percentage = sum(estimates) / len(estimates) / room_capacity * 100
    return min(100.0, max(0.0, percentage))


def occupancy_readings(readings: Iterable[SensorReading]) -> List[OccupancyReading]:
    """CO2 history from raw readings, with temperature/humidity taken at the same timestamp."""
    co2: Dict[float, float] = {}
    temperature: Dict[float, float] = {}
    humidity: Dict[float, float] = {}
    for reading in readings:
        if reading.sensor_type == SensorType.CO2.value:
            co2[reading.ts] = reading.value
        elif reading.sensor_type == SensorType.TEMPERATURE.value:
            temperature[reading.ts] = reading.value
        elif reading.sensor_type == SensorType.HUMIDITY.value:
            humidity[reading.ts] = reading.value
    return [
        OccupancyReading(ts=ts, co2=value, temperature=temperature.get(ts), humidity=humidity.get(ts))
        for ts, value in sorted(co2.items())
    ]
