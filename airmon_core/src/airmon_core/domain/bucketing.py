import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Dict, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo

from airmon_core.domain.aqi import AqiBreakdown, aqi_from_averages, has_pollutant
from airmon_core.domain.models import Period, TimeBucket, parse_reading

logger = logging.getLogger(__name__)

TimeZone = Union[str, tzinfo]

_LABEL_FORMATS = {
    Period.TEN_MIN: "%H:%M",
    Period.ONE_HOUR: "%H:%M",
    Period.EIGHT_HOURS: "%d %b %H:%M",
    Period.ONE_DAY: "%d %b",
}
LIVE_LABEL_FORMAT = "%H:%M:%S"


def resolve_tz(tz: TimeZone) -> tzinfo:
    return ZoneInfo(tz) if isinstance(tz, str) else tz


def format_label(ts: float, fmt: str, tz: TimeZone = "UTC") -> str:
    return datetime.fromtimestamp(ts, tz=resolve_tz(tz)).strftime(fmt)


@dataclass
class BucketRecord:
    start_ts: float
    label: str
    values: Dict[str, float] = field(default_factory=dict)
    aqi: Optional[AqiBreakdown] = None

    def as_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"timestamp_label": self.label}
        row.update(self.values)
        if self.aqi is not None:
            row.update(self.aqi.as_row())
        return row


def allocate_buckets(period: Period, now: float) -> List[TimeBucket]:
    window_start = now - period.window_s
    width = period.bucket_width_s
    return [TimeBucket(start_ts=window_start + i * width) for i in range(period.bucket_count)]


def fold_readings(
    buckets: List[TimeBucket],
    width: float,
    readings: Iterable[Any],
    window_end: Optional[float] = None,
) -> int:
    """
    Fold *readings* into pre-allocated contiguous *buckets* in one pass.

    Readings before the first bucket or after the window end are dropped; a
    reading exactly at the window end belongs to the last bucket.

    Returns:
        Number of malformed readings skipped.
    """
    if not buckets:
        return 0
    window_start = buckets[0].start_ts
    if window_end is None:
        window_end = window_start + width * len(buckets)
    skipped = 0
    for raw in readings:
        reading = parse_reading(raw)
        if reading is None:
            skipped += 1
            continue
        idx = math.floor((reading.ts - window_start) / width)
        if idx >= len(buckets) and reading.ts <= window_end:
            idx = len(buckets) - 1
        if 0 <= idx < len(buckets):
            buckets[idx].add(reading.sensor_type, reading.value)
    return skipped


def aggregate_readings(
    readings: Iterable[Any],
    period: Union[Period, str],
    now: float,
    *,
    include_aqi: bool = False,
    tz: TimeZone = "UTC",
) -> List[BucketRecord]:
    """
    Average readings into the fixed buckets of a historical period.

    Every bucket of the window is emitted, oldest first. A bucket lists only
    the sensor types measured in it; missing types are left out rather than
    reported as zero. With *include_aqi*, buckets holding pollutant data also
    carry their AQI breakdown.
    """
    period = Period(period)
    buckets = allocate_buckets(period, now)
    skipped = fold_readings(buckets, period.bucket_width_s, readings, window_end=now)
    if skipped:
        logger.debug("Skipped %d malformed readings", skipped)

    zone = resolve_tz(tz)
    fmt = _LABEL_FORMATS[period]
    records = []
    for bucket in buckets:
        values = bucket.averages()
        aqi = aqi_from_averages(values) if include_aqi and has_pollutant(values) else None
        records.append(
            BucketRecord(
                start_ts=bucket.start_ts,
                label=format_label(bucket.start_ts, fmt, zone),
                values=values,
                aqi=aqi,
            )
        )
    return records
