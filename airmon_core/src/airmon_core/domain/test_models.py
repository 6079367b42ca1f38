from datetime import datetime, timezone

from airmon_core.domain.models import (
    Period,
    SensorReading,
    SensorType,
    TimeBucket,
    parse_reading,
)


def test_period_layout():
    assert (Period.TEN_MIN.window_s, Period.TEN_MIN.bucket_count) == (7200, 12)
    assert Period.TEN_MIN.bucket_width_s == 600
    assert Period.ONE_HOUR.bucket_width_s == 3600
    assert Period.EIGHT_HOURS.bucket_width_s == 8 * 3600
    assert Period("24hr").bucket_count == 30


def test_time_bucket_averages():
    bucket = TimeBucket(start_ts=0.0)
    assert bucket.is_empty
    assert bucket.averages() == {}
    bucket.add("pm25", 10.0)
    bucket.add("pm25", 30.0)
    assert bucket.averages() == {"pm25": 20.0}
    assert not bucket.is_empty


def test_parse_reading_passes_through_readings():
    reading = SensorReading("dev", "co2", 500.0, 10.0)
    assert parse_reading(reading) == reading


def test_parse_reading_accepts_timestamp_forms():
    dt = datetime(2024, 1, 1, tzinfo=timezone.utc)
    expected = dt.timestamp()
    for ts in (expected, str(expected), "2024-01-01T00:00:00Z", dt, dt.replace(tzinfo=None)):
        parsed = parse_reading({"device_id": "dev", "sensor_type": "pm25", "value": 3, "timestamp": ts})
        assert parsed.ts == expected


def test_parse_reading_normalises_enum_sensor_type():
    parsed = parse_reading({"sensor_type": SensorType.VOC, "value": 1.5, "ts": 1})
    assert parsed.sensor_type == "voc"
    assert parsed.device_id == ""


def test_parse_reading_rejects_malformed():
    bad = [
        "pm25",
        {"value": 1, "ts": 1},
        {"sensor_type": "pm25", "value": True, "ts": 1},
        {"sensor_type": "pm25", "value": float("nan"), "ts": 1},
        {"sensor_type": "pm25", "value": 1},
        {"sensor_type": "pm25", "value": 1, "ts": float("inf")},
    ]
    assert all(parse_reading(raw) is None for raw in bad)
