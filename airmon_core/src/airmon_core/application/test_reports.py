import pytest

from airmon_core.application.reports import (
    average_aqi,
    build_report,
    co2_peak_hours,
    dominant_pollutants,
    latest_quality,
    operating_split,
)
from airmon_core.domain.aqi import AqiBreakdown, sub_index_aqi
from airmon_core.domain.bucketing import BucketRecord
from airmon_core.domain.errors import ReadingSourceError
from airmon_core.domain.models import Period, SensorReading
from airmon_core.domain.thresholds import MetricQuality

NOW = 1_700_000_000.0
TEN_AM_UTC = 1_699_956_000.0


class FakeSource:
    def __init__(self, readings=()):
        self.readings = list(readings)

    def fetch_readings(self, device_id, start_ts, end_ts, sensor_types=None):
        return [r for r in self.readings if start_ts <= r.ts <= end_ts]


class FailingSource:
    def fetch_readings(self, device_id, start_ts, end_ts, sensor_types=None):
        raise ReadingSourceError("db down")


def reading(sensor_type, value, ts=NOW - 60):
    return SensorReading(device_id="dev-1", sensor_type=sensor_type, value=value, ts=ts)


def test_average_aqi_skips_records_without_aqi():
    records = [
        BucketRecord(0.0, "a", {"pm25": 12.0}, AqiBreakdown(pm25_aqi=50)),
        BucketRecord(1.0, "b", {"pm25": 35.4}, AqiBreakdown(pm25_aqi=100, pm10_aqi=20)),
        BucketRecord(2.0, "c"),
    ]
    averages = average_aqi(records)
    assert averages.count == 2
    assert averages.pm25_aqi == 75.0
    assert averages.pm10_aqi == 10.0
    assert averages.overall_aqi == 75.0


def test_average_aqi_of_nothing():
    assert average_aqi([]).count == 0


def test_dominant_pollutants_counts_readings_above_good():
    readings = [
        reading("pm25", 40.0),
        reading("pm25", 50.0),
        reading("pm25", 5.0),
        reading("pm10", 200.0),
        reading("voc", 10.0),
        reading("co2", 2000.0),
        reading("hcho", -1.0),
    ]
    shares = dominant_pollutants(readings)
    assert [(s.pollutant, s.count, s.percentage) for s in shares] == [
        ("PM2.5", 2, 67),
        ("PM10", 1, 33),
    ]


def test_co2_peak_hours_by_local_hour():
    readings = [
        reading("co2", 800.0, TEN_AM_UTC),
        reading("co2", 1000.0, TEN_AM_UTC + 1800),
        reading("co2", 600.0, TEN_AM_UTC + 4 * 3600),
        reading("pm25", 999.0, TEN_AM_UTC),
    ]
    utc = co2_peak_hours(readings)
    assert [(h.hour, h.value) for h in utc] == [(10, 900.0), (14, 600.0)]
    assert [h.hour for h in co2_peak_hours(readings, "Asia/Dubai")] == [14, 18]
    assert len(co2_peak_hours(readings, limit=1)) == 1


def test_build_report():
    source = FakeSource(
        [
            reading("pm25", 40.0, NOW - 600),
            reading("pm25", 40.0, NOW - 7200),
            reading("co2", 700.0, NOW - 600),
            reading("co2", 750.0, NOW - 300),
        ]
    )
    report = build_report("dev-1", Period.ONE_DAY, source, now=NOW)

    assert report.error is None
    assert len(report.records) == 30
    assert report.average_aqi.count == 1
    assert report.category == "Unhealthy for Sensitive Groups"
    assert report.dominant_pollutants[0].pollutant == "PM2.5"
    assert report.co2_peak_hours[0].value == pytest.approx(725.0)
    assert report.occupancy is not None
    assert report.metric_quality == {"co2": MetricQuality.GOOD, "pm25": MetricQuality.GOOD}
    assert report.prolonged == []
    # both PM2.5 readings fall after hours
    assert report.operating_split.after_hours_aqi == sub_index_aqi("pm25", 40.0)
    assert report.operating_split.operating_aqi == report.average_aqi.overall_aqi


def test_build_report_without_data():
    report = build_report("dev-1", "1hr", FakeSource(), now=NOW)
    assert report.category is None
    assert report.occupancy is None
    assert len(report.records) == 24


def test_build_report_fetch_failure():
    report = build_report("dev-1", "1hr", FailingSource(), now=NOW)
    assert report.error == "db down"
    assert report.records == []


def test_operating_split_by_local_hour():
    readings = [
        reading("pm25", 12.0, TEN_AM_UTC),
        reading("pm25", 12.0, TEN_AM_UTC + 8 * 3600),  # 18:00 still counts
        reading("pm25", 35.4, TEN_AM_UTC + 10 * 3600),
        reading("pm10", 400.0, TEN_AM_UTC),
    ]
    split = operating_split(readings)
    assert split.operating_aqi == 50
    assert split.after_hours_aqi == 100

    # 20:00 UTC is already past midnight in Dubai
    shifted = operating_split(readings, tz="Asia/Dubai")
    assert shifted.operating_aqi == 50
    assert shifted.after_hours_aqi == pytest.approx(sub_index_aqi("pm25", (12.0 + 35.4) / 2))


def test_operating_split_falls_back_without_pm25():
    split = operating_split([reading("pm25", 12.0, TEN_AM_UTC)], fallback_aqi=42.0)
    assert split.operating_aqi == 50
    assert split.after_hours_aqi == 42.0
    assert operating_split([]).operating_aqi == 0.0


def test_latest_quality_uses_most_recent_reading():
    readings = [
        reading("co2", 1600.0, NOW - 600),
        reading("co2", 1100.0, NOW - 60),
        reading("pm25", 80.0, NOW - 60),
        reading("unknown", 1e9, NOW - 60),
    ]
    assert latest_quality(readings) == {
        "co2": MetricQuality.MODERATE,
        "pm25": MetricQuality.POOR,
        "unknown": MetricQuality.GOOD,
    }


def test_build_report_flags_prolonged_exceedance():
    source = FakeSource(
        [reading("co2", 1600.0, NOW - 5400 + i * 600) for i in range(10)]
        + [reading("co2", 900.0, NOW - 7200)]
    )
    report = build_report("dev-1", "1hr", source, now=NOW)
    assert [e.sensor_type for e in report.prolonged] == ["co2"]
    assert report.prolonged[0].duration_h == pytest.approx(1.5)

    strict = build_report("dev-1", "1hr", source, now=NOW, prolonged_hours=2.0)
    assert strict.prolonged == []
