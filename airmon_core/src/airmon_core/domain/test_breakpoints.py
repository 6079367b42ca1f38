import pytest

from airmon_core.domain.breakpoints import (
    AQI_BANDS,
    BREAKPOINTS,
    BreakpointRange,
    Pollutant,
    validate_table,
)


@pytest.mark.parametrize("pollutant", list(Pollutant))
def test_every_pollutant_has_a_valid_table(pollutant):
    validate_table(BREAKPOINTS[pollutant])


def test_bands_are_shared():
    for table in BREAKPOINTS.values():
        assert tuple((r.aqi_low, r.aqi_high) for r in table) == AQI_BANDS


def test_validate_rejects_short_table():
    with pytest.raises(ValueError):
        validate_table(BREAKPOINTS[Pollutant.PM25][:5])


def test_validate_rejects_overlap():
    table = list(BREAKPOINTS[Pollutant.VOC])
    table[1] = BreakpointRange(40, 100, 51, 100)
    with pytest.raises(ValueError):
        validate_table(tuple(table))
