"""
Piecewise-linear calibration tables mapping pollutant concentrations to AQI.

Every pollutant has six ordered concentration ranges; the AQI bands they pair
with are shared across pollutants.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class Pollutant(str, Enum):
    PM25 = "pm25"
    PM10 = "pm10"
    VOC = "voc"
    HCHO = "hcho"
    NOX = "nox"


@dataclass(frozen=True)
class BreakpointRange:
    c_low: float
    c_high: float
    aqi_low: int
    aqi_high: int


AQI_BANDS: Tuple[Tuple[int, int], ...] = (
    (0, 50),
    (51, 100),
    (101, 150),
    (151, 200),
    (201, 300),
    (301, 500),
)


def _table(*concentrations: Tuple[float, float]) -> Tuple[BreakpointRange, ...]:
    return tuple(
        BreakpointRange(c_low, c_high, aqi_low, aqi_high)
        for (c_low, c_high), (aqi_low, aqi_high) in zip(concentrations, AQI_BANDS)
    )


BREAKPOINTS: Dict[Pollutant, Tuple[BreakpointRange, ...]] = {
    Pollutant.PM25: _table(
        (0, 12.0), (12.1, 35.4), (35.5, 55.4), (55.5, 150.4), (150.5, 250.4), (250.5, 350.4)
    ),
    Pollutant.PM10: _table((0, 54), (55, 154), (155, 254), (255, 354), (355, 424), (425, 604)),
    Pollutant.HCHO: _table((0, 30), (31, 50), (51, 100), (101, 200), (201, 300), (301, 500)),
    Pollutant.VOC: _table((0, 50), (51, 100), (101, 150), (151, 200), (201, 300), (301, 500)),
    Pollutant.NOX: _table((0, 50), (51, 100), (101, 150), (151, 200), (201, 300), (301, 500)),
}


def validate_table(table: Tuple[BreakpointRange, ...]) -> None:
    """Raise ValueError unless *table* is six increasing ranges on the shared bands."""
    if len(table) != len(AQI_BANDS):
        raise ValueError(f"expected {len(AQI_BANDS)} ranges, got {len(table)}")
    for rng, band in zip(table, AQI_BANDS):
        if (rng.aqi_low, rng.aqi_high) != band:
            raise ValueError(f"range {rng} is not on AQI band {band}")
        if not rng.c_low < rng.c_high:
            raise ValueError(f"empty concentration range {rng}")
    for lower, upper in zip(table, table[1:]):
        if upper.c_low < lower.c_high:
            raise ValueError(f"ranges overlap: {lower} / {upper}")
