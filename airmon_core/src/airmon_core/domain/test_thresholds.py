import pytest

from airmon_core.domain.models import SensorReading
from airmon_core.domain.thresholds import (
    DEFAULT_THRESHOLDS,
    MetricQuality,
    Thresholds,
    critical_limits,
    metric_quality,
    prolonged_exceedances,
)

T0 = 1_700_000_000.0


def co2(value, minutes):
    return SensorReading(device_id="dev-1", sensor_type="co2", value=value, ts=T0 + minutes * 60)


@pytest.mark.parametrize(
    "metric, value, expected",
    [
        ("co2", 650, MetricQuality.GOOD),
        ("co2", 1000, MetricQuality.MODERATE),
        ("co2", 1500, MetricQuality.POOR),
        ("pm25", 60.3, MetricQuality.GOOD),
        ("pm25", 75.4, MetricQuality.POOR),
        ("humidity", 65, MetricQuality.MODERATE),
        ("radon", 1e6, MetricQuality.GOOD),
    ],
)
def test_metric_quality(metric, value, expected):
    assert metric_quality(metric, value) is expected


def test_metric_quality_with_custom_thresholds():
    custom = {"co2": Thresholds(400, 600, 800)}
    assert metric_quality("co2", 700, custom) is MetricQuality.MODERATE
    assert metric_quality("pm25", 500, custom) is MetricQuality.GOOD


def test_critical_limits_are_poor_thresholds():
    limits = critical_limits()
    assert limits["co2"] == 1500
    assert limits["no2"] == 360
    assert set(limits) == set(DEFAULT_THRESHOLDS)


def test_prolonged_run_is_reported():
    readings = [co2(1600, m) for m in range(0, 75, 5)]
    found = prolonged_exceedances(readings)
    assert len(found) == 1
    assert found[0].sensor_type == "co2"
    assert found[0].limit == 1500
    assert found[0].duration_h == pytest.approx(70 / 60)
    assert found[0].latest_value == 1600


def test_dip_below_limit_breaks_the_run():
    readings = [co2(1600, m) for m in range(0, 40, 5)]
    readings += [co2(1200, 40)]
    readings += [co2(1700, m) for m in range(45, 90, 5)]
    assert prolonged_exceedances(readings) == []
    assert prolonged_exceedances(readings, min_hours=0.5)[0].start_ts == T0 + 45 * 60


def test_longest_run_wins_and_order_does_not_matter():
    readings = [co2(1600, m) for m in range(0, 30, 5)]
    readings += [co2(900, 30)]
    readings += [co2(1800, m) for m in range(35, 140, 5)]
    found = prolonged_exceedances(list(reversed(readings)))
    assert found[0].start_ts == T0 + 35 * 60
    assert found[0].latest_value == 1800


def test_custom_limits_and_unknown_types():
    readings = [co2(800, m) for m in range(0, 65, 5)]
    readings.append(SensorReading("dev-1", "radon", 1e6, T0))
    assert prolonged_exceedances(readings) == []
    assert len(prolonged_exceedances(readings, limits={"co2": 700})) == 1
