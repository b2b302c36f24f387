"""Surface drying model.

Estimates how long a climbing surface needs to dry from the recent
precipitation load and the current evaporation conditions:

* snow or ice on the rock overrides everything with an indeterminate
  sentinel, because melt timing is not modelled here;
* the drying rate grows with temperature above freezing and with wind;
* canopy cover shades the rock and scales the rate down;
* drying that already happened since the rain stopped is subtracted.

The result is a precise number of hours. Rounding and display units are left
to consumers.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..abstractions import DrynessCategory


SNOW_ICE_SENTINEL_HOURS = 999.0
MAX_HOURS_UNTIL_DRY = 240.0

FREEZING_POINT_C = 0.0
TRACE_PRECIPITATION_MM = 0.1
SATURATION_MM = 60.0
LOAD_PER_MM = 1.0

BASE_RATE_MM_PER_HOUR = 0.05
TEMPERATURE_COEFFICIENT = 0.02  # mm/h per degree above freezing
WIND_COEFFICIENT = 0.01  # mm/h per km/h
MIN_SKY_EXPOSURE = 0.1

# Upper bounds (inclusive) in hours for each category, checked in order.
CATEGORY_THRESHOLDS = (
    (1.0, DrynessCategory.DRY),
    (6.0, DrynessCategory.NEARLY_DRY),
    (24.0, DrynessCategory.DAMP),
)


@dataclass(frozen=True)
class DryingInputs:
    precipitation_mm: float
    temperature_c: float
    wind_speed_kmh: float
    hours_since_precipitation: Optional[float] = None
    canopy_fraction: float = 0.0
    snow_ice: bool = False


@dataclass(frozen=True)
class DryingResult:
    hours_until_dry: float
    category: DrynessCategory
    drying_rate: Optional[float] = None

    @property
    def indeterminate(self) -> bool:
        return self.category is DrynessCategory.UNKNOWN


def base_drying_rate(temperature_c: float, wind_speed_kmh: float) -> float:
    """Open-air evaporation rate in mm of surface water per hour."""
    warmth = max(temperature_c - FREEZING_POINT_C, 0.0)
    wind = max(wind_speed_kmh, 0.0)
    return BASE_RATE_MM_PER_HOUR + TEMPERATURE_COEFFICIENT * warmth + WIND_COEFFICIENT * wind


def attenuate(rate: float, canopy_fraction: float) -> float:
    canopy = min(1.0, max(0.0, canopy_fraction))
    return rate * max(1.0 - canopy, MIN_SKY_EXPOSURE)


def moisture_load(precipitation_mm: float) -> float:
    if precipitation_mm < TRACE_PRECIPITATION_MM:
        return 0.0
    return min(precipitation_mm, SATURATION_MM) * LOAD_PER_MM


def categorize(hours_until_dry: float) -> DrynessCategory:
    if hours_until_dry >= SNOW_ICE_SENTINEL_HOURS:
        return DrynessCategory.UNKNOWN
    for upper, category in CATEGORY_THRESHOLDS:
        if hours_until_dry <= upper:
            return category
    return DrynessCategory.WET


def estimate_drying(inputs: DryingInputs) -> DryingResult:
    if inputs.snow_ice:
        return DryingResult(SNOW_ICE_SENTINEL_HOURS, DrynessCategory.UNKNOWN)

    rate = attenuate(base_drying_rate(inputs.temperature_c, inputs.wind_speed_kmh), inputs.canopy_fraction)
    load = moisture_load(inputs.precipitation_mm)
    if load == 0.0:
        return DryingResult(0.0, categorize(0.0), rate)

    # Unknown elapsed time counts as "just stopped".
    elapsed = max(inputs.hours_since_precipitation or 0.0, 0.0)
    hours = max(load / rate - elapsed, 0.0)
    hours = min(hours, MAX_HOURS_UNTIL_DRY)
    return DryingResult(hours, categorize(hours), rate)


__all__ = [
    "DryingInputs",
    "DryingResult",
    "MAX_HOURS_UNTIL_DRY",
    "SNOW_ICE_SENTINEL_HOURS",
    "attenuate",
    "base_drying_rate",
    "categorize",
    "estimate_drying",
    "moisture_load",
]
