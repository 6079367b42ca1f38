"""
AQI calculation.

Two PM2.5 formulas exist on purpose. ``sub_index_aqi`` uses the device
calibration tables and backs every chart, report and live series.
``quick_aqi_from_pm25`` is the simplified EPA-style curve used where only a
PM2.5 figure is available (snapshot cards). Their breakpoints differ, so the
two do not agree numerically and must not be swapped for one another.

All AQI values are capped at 500.
"""

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

from airmon_core.domain.breakpoints import BREAKPOINTS, Pollutant

AQI_MAX = 500

PollutantKey = Union[Pollutant, str]


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _pollutant(pollutant: PollutantKey) -> Pollutant:
    try:
        return Pollutant(pollutant.lower() if isinstance(pollutant, str) else pollutant)
    except ValueError:
        raise ValueError(f"no breakpoint table for pollutant {pollutant!r}") from None


def sub_index_aqi(pollutant: PollutantKey, concentration: float) -> int:
    """
    AQI for a single pollutant concentration.

    A range is selected while the concentration is below the *next* range's
    lower bound, so values falling between two ranges use the lower one; the
    last range catches everything above. The interpolated value is capped at
    the selected band's upper AQI.

    Raises:
        ValueError: negative concentration or pollutant without a table.
    """
    table = BREAKPOINTS[_pollutant(pollutant)]
    if concentration < 0:
        raise ValueError(f"negative concentration {concentration}")

    selected = table[-1]
    for rng, next_rng in zip(table, table[1:]):
        if concentration < next_rng.c_low:
            selected = rng
            break

    slope = (selected.aqi_high - selected.aqi_low) / (selected.c_high - selected.c_low)
    aqi = _round_half_up(slope * (concentration - selected.c_low) + selected.aqi_low)
    return min(selected.aqi_high, aqi)


def overall_aqi(sub_indices: Mapping[str, Optional[int]]) -> int:
    """Worst sub-index across the five pollutants; unmeasured ones count as 0."""
    return max((sub_indices.get(p.value) or 0) for p in Pollutant)


_QUICK_PM25 = (
    # (c_low, c_high, aqi_low, aqi_high)
    (0.0, 12.0, 0, 50),
    (12.0, 35.4, 50, 100),
    (35.4, 55.4, 100, 150),
    (55.4, 150.4, 150, 200),
    (150.4, 250.4, 200, 300),
)
_QUICK_PM25_TOP = (250.4, 500.4, 300, 500)


def quick_aqi_from_pm25(pm25: float) -> float:
    """Simplified PM2.5-only AQI estimate (unrounded, continuous, capped at 500)."""
    if pm25 < 0:
        raise ValueError(f"negative concentration {pm25}")
    c_low, c_high, aqi_low, aqi_high = _QUICK_PM25_TOP
    for segment in _QUICK_PM25:
        if pm25 <= segment[1]:
            c_low, c_high, aqi_low, aqi_high = segment
            break
    aqi = aqi_low + (aqi_high - aqi_low) / (c_high - c_low) * (pm25 - c_low)
    return min(float(AQI_MAX), aqi)


@dataclass(frozen=True)
class AqiBreakdown:
    pm25_aqi: int = 0
    pm10_aqi: int = 0
    voc_aqi: int = 0
    hcho_aqi: int = 0
    nox_aqi: int = 0

    @property
    def overall_aqi(self) -> int:
        return overall_aqi(self.sub_indices())

    def sub_indices(self) -> Dict[str, int]:
        return {
            Pollutant.PM25.value: self.pm25_aqi,
            Pollutant.PM10.value: self.pm10_aqi,
            Pollutant.VOC.value: self.voc_aqi,
            Pollutant.HCHO.value: self.hcho_aqi,
            Pollutant.NOX.value: self.nox_aqi,
        }

    def as_row(self) -> Dict[str, int]:
        return {
            "overallAqi": self.overall_aqi,
            "pm25Aqi": self.pm25_aqi,
            "pm10Aqi": self.pm10_aqi,
            "hchoAqi": self.hcho_aqi,
            "vocAqi": self.voc_aqi,
            "noxAqi": self.nox_aqi,
        }


def has_pollutant(values: Mapping[str, float]) -> bool:
    return any(p.value in values for p in Pollutant)


def aqi_from_averages(values: Mapping[str, float]) -> AqiBreakdown:
    """Sub-indices for the pollutants present in *values*, concentrations clamped at 0."""
    subs = {
        p.value: sub_index_aqi(p, max(0.0, values[p.value])) for p in Pollutant if p.value in values
    }
    return AqiBreakdown(**{f"{key}_aqi": aqi for key, aqi in subs.items()})


_CATEGORIES = (
    (50, "Good", "green"),
    (100, "Moderate", "yellow"),
    (150, "Unhealthy for Sensitive Groups", "orange"),
    (200, "Unhealthy", "red"),
    (300, "Very Unhealthy", "purple"),
)
_TOP_CATEGORY = ("Hazardous", "maroon")


def aqi_category(aqi: float) -> str:
    for limit, label, _ in _CATEGORIES:
        if aqi <= limit:
            return label
    return _TOP_CATEGORY[0]


def aqi_to_color(aqi: float) -> str:
    for limit, _, color in _CATEGORIES:
        if aqi <= limit:
            return color
    return _TOP_CATEGORY[1]
