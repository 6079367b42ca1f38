import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class SensorType(str, Enum):
    PM03 = "pm03"
    PM1 = "pm1"
    PM25 = "pm25"
    PM5 = "pm5"
    PM10 = "pm10"
    CO2 = "co2"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    VOC = "voc"
    HCHO = "hcho"
    NOX = "nox"
    NO2 = "no2"
    PC03 = "pc03"
    PC05 = "pc05"
    PC1 = "pc1"
    PC25 = "pc25"
    PC5 = "pc5"
    PC10 = "pc10"
    AQI_OVERALL = "aqi_overall"


class Period(str, Enum):
    """Historical period selector. The name is the bucket width."""

    TEN_MIN = "10min"
    ONE_HOUR = "1hr"
    EIGHT_HOURS = "8hr"
    ONE_DAY = "24hr"

    @property
    def window_s(self) -> float:
        return _PERIOD_LAYOUT[self][0]

    @property
    def bucket_count(self) -> int:
        return _PERIOD_LAYOUT[self][1]

    @property
    def bucket_width_s(self) -> float:
        return self.window_s / self.bucket_count


_HOUR = 3600.0
_DAY = 24 * _HOUR

_PERIOD_LAYOUT = {
    Period.TEN_MIN: (2 * _HOUR, 12),
    Period.ONE_HOUR: (_DAY, 24),
    Period.EIGHT_HOURS: (7 * _DAY, 21),
    Period.ONE_DAY: (30 * _DAY, 30),
}


@dataclass(frozen=True)
class SensorReading:
    device_id: str
    sensor_type: str
    value: float
    ts: float  # epoch seconds, time of measurement


@dataclass
class TimeBucket:
    start_ts: float
    sums: Dict[str, float] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)

    def add(self, sensor_type: str, value: float) -> None:
        self.sums[sensor_type] = self.sums.get(sensor_type, 0.0) + value
        self.counts[sensor_type] = self.counts.get(sensor_type, 0) + 1

    def averages(self) -> Dict[str, float]:
        return {key: self.sums[key] / count for key, count in self.counts.items() if count}

    @property
    def is_empty(self) -> bool:
        return not any(self.counts.values())


def _coerce_ts(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            raw = raw.replace(tzinfo=timezone.utc)
        return raw.timestamp()
    if isinstance(raw, (int, float)):
        ts = float(raw)
    elif isinstance(raw, str):
        try:
            ts = float(raw)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError:
                return None
            return _coerce_ts(parsed)
    else:
        return None
    return ts if math.isfinite(ts) else None


def _coerce_value(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def parse_reading(raw: Any) -> Optional[SensorReading]:
    """
    Coerce a reading from a store row or event payload.

    Accepts a SensorReading or a mapping carrying ``device_id``,
    ``sensor_type``, ``value`` and ``ts`` (or ``timestamp``). Timestamps may be
    epoch seconds, datetimes or ISO-8601 strings.

    Returns:
        The reading, or None when it is malformed and should be skipped.
    """
    if isinstance(raw, SensorReading):
        fields: Mapping[str, Any] = raw.__dict__
    elif isinstance(raw, Mapping):
        fields = raw
    else:
        return None

    sensor_type = fields.get("sensor_type")
    if isinstance(sensor_type, SensorType):
        sensor_type = sensor_type.value
    if not sensor_type or not isinstance(sensor_type, str):
        return None

    ts = _coerce_ts(fields.get("ts", fields.get("timestamp")))
    value = _coerce_value(fields.get("value"))
    if ts is None or value is None:
        return None

    return SensorReading(
        device_id=str(fields.get("device_id", "")),
        sensor_type=sensor_type,
        value=value,
        ts=ts,
    )
