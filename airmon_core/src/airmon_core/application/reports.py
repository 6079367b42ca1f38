import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from airmon_core.domain.aqi import aqi_category, sub_index_aqi
from airmon_core.domain.breakpoints import Pollutant
from airmon_core.domain.bucketing import BucketRecord, TimeZone, aggregate_readings, resolve_tz
from airmon_core.domain.errors import ReadingSourceError
from airmon_core.domain.models import Period, SensorReading, SensorType, parse_reading
from airmon_core.domain.occupancy import (
    OccupancyResult,
    detect_occupancy,
    in_operating_hours,
    occupancy_readings,
)
from airmon_core.domain.ports import ReadingSource
from airmon_core.domain.thresholds import (
    MetricQuality,
    ProlongedExceedance,
    metric_quality,
    prolonged_exceedances,
)

logger = logging.getLogger(__name__)

POLLUTANT_LABELS = {
    Pollutant.PM25: "PM2.5",
    Pollutant.PM10: "PM10",
    Pollutant.VOC: "VOC",
    Pollutant.HCHO: "HCHO",
    Pollutant.NOX: "NOx",
}


@dataclass
class AverageAqi:
    pm25_aqi: float = 0.0
    pm10_aqi: float = 0.0
    voc_aqi: float = 0.0
    hcho_aqi: float = 0.0
    nox_aqi: float = 0.0
    overall_aqi: float = 0.0
    count: int = 0


@dataclass
class PollutantShare:
    pollutant: str
    count: int
    percentage: int


@dataclass
class HourlyLevel:
    hour: int
    value: float


@dataclass
class OperatingSplit:
    operating_aqi: float = 0.0
    after_hours_aqi: float = 0.0


@dataclass
class DeviceReport:
    device_id: str
    period: Period
    records: List[BucketRecord] = field(default_factory=list)
    average_aqi: AverageAqi = field(default_factory=AverageAqi)
    category: Optional[str] = None
    dominant_pollutants: List[PollutantShare] = field(default_factory=list)
    co2_peak_hours: List[HourlyLevel] = field(default_factory=list)
    occupancy: Optional[OccupancyResult] = None
    operating_split: OperatingSplit = field(default_factory=OperatingSplit)
    metric_quality: Dict[str, MetricQuality] = field(default_factory=dict)
    prolonged: List[ProlongedExceedance] = field(default_factory=list)
    error: Optional[str] = None


def average_aqi(records: Iterable[BucketRecord]) -> AverageAqi:
    """Mean sub-indices and overall AQI over the records that carry AQI."""
    totals: Dict[str, float] = defaultdict(float)
    count = 0
    for record in records:
        if record.aqi is None:
            continue
        count += 1
        for key, value in record.aqi.sub_indices().items():
            totals[key] += value
        totals["overall"] += record.aqi.overall_aqi
    if not count:
        return AverageAqi()
    return AverageAqi(
        pm25_aqi=totals["pm25"] / count,
        pm10_aqi=totals["pm10"] / count,
        voc_aqi=totals["voc"] / count,
        hcho_aqi=totals["hcho"] / count,
        nox_aqi=totals["nox"] / count,
        overall_aqi=totals["overall"] / count,
        count=count,
    )


def dominant_pollutants(readings: Iterable[Any]) -> List[PollutantShare]:
    """How often each pollutant was above the Good band (sub-index > 50)."""
    counts: Dict[str, int] = defaultdict(int)
    for raw in readings:
        reading = parse_reading(raw)
        if reading is None or reading.value < 0:
            continue
        try:
            pollutant = Pollutant(reading.sensor_type)
        except ValueError:
            continue
        if sub_index_aqi(pollutant, reading.value) > 50:
            counts[POLLUTANT_LABELS[pollutant]] += 1

    total = max(1, sum(counts.values()))
    shares = [
        PollutantShare(pollutant=name, count=n, percentage=int(n / total * 100 + 0.5))
        for name, n in counts.items()
    ]
    return sorted(shares, key=lambda s: s.count, reverse=True)


def co2_peak_hours(
    readings: Iterable[SensorReading], tz: TimeZone = timezone.utc, limit: int = 24
) -> List[HourlyLevel]:
    """Average CO2 per local hour of day, highest first."""
    zone = resolve_tz(tz)
    by_hour: Dict[int, List[float]] = defaultdict(list)
    for reading in readings:
        if reading.sensor_type == SensorType.CO2.value:
            by_hour[datetime.fromtimestamp(reading.ts, tz=zone).hour].append(reading.value)
    levels = [HourlyLevel(hour=h, value=sum(v) / len(v)) for h, v in by_hour.items()]
    return sorted(levels, key=lambda level: level.value, reverse=True)[:limit]


def operating_split(
    readings: Iterable[SensorReading], fallback_aqi: float = 0.0, tz: TimeZone = timezone.utc
) -> OperatingSplit:
    """
    PM2.5 AQI inside and outside operating hours.

    A side without PM2.5 readings reports *fallback_aqi* instead.
    """
    zone = resolve_tz(tz)
    inside: List[float] = []
    outside: List[float] = []
    for reading in readings:
        if reading.sensor_type != Pollutant.PM25.value or reading.value < 0:
            continue
        (inside if in_operating_hours(reading.ts, zone) else outside).append(reading.value)

    def side(values: List[float]) -> float:
        if not values:
            return fallback_aqi
        aqi = sub_index_aqi(Pollutant.PM25, sum(values) / len(values))
        return aqi if aqi > 0 else fallback_aqi

    return OperatingSplit(operating_aqi=side(inside), after_hours_aqi=side(outside))


def latest_quality(readings: Iterable[SensorReading]) -> Dict[str, MetricQuality]:
    """Quality band of the most recent reading of each sensor type."""
    latest: Dict[str, SensorReading] = {}
    for reading in readings:
        current = latest.get(reading.sensor_type)
        if current is None or reading.ts >= current.ts:
            latest[reading.sensor_type] = reading
    return {name: metric_quality(name, r.value) for name, r in sorted(latest.items())}


def build_report(
    device_id: str,
    period: Union[Period, str],
    source: ReadingSource,
    *,
    now: Optional[float] = None,
    tz: TimeZone = "UTC",
    prolonged_hours: float = 1.0,
) -> DeviceReport:
    period = Period(period)
    now = time.time() if now is None else now
    try:
        raw = source.fetch_readings(device_id, now - period.window_s, now)
    except ReadingSourceError as exc:
        logger.error("Report for %s could not fetch readings: %s", device_id, exc)
        return DeviceReport(device_id=device_id, period=period, error=str(exc))

    readings = [r for r in map(parse_reading, raw) if r is not None]
    records = aggregate_readings(readings, period, now, include_aqi=True, tz=tz)
    averages = average_aqi(records)
    co2_history = occupancy_readings(readings)

    return DeviceReport(
        device_id=device_id,
        period=period,
        records=records,
        average_aqi=averages,
        category=aqi_category(averages.overall_aqi) if averages.count else None,
        dominant_pollutants=dominant_pollutants(readings),
        co2_peak_hours=co2_peak_hours(readings, tz),
        occupancy=detect_occupancy(co2_history[-3:], tz) if co2_history else None,
        operating_split=operating_split(readings, averages.overall_aqi, tz),
        metric_quality=latest_quality(readings),
        prolonged=prolonged_exceedances(readings, prolonged_hours),
    )
