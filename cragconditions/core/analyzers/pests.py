"""Pest activity heuristics.

Two independent 0-100 scores are computed from the current weather and the
calendar, one for mosquitoes and one for general outdoor pests (flies, gnats,
wasps, ants). Each score maps onto the shared five-step risk scale and the
assessment reports the worse of the two.

Temperatures are Celsius, wind is km/h and rainfall is the millimetre total
over the observation window.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..abstractions import PestRiskLevel


COLD_GATE_C = 10.0
DEFAULT_HUMIDITY = 50.0
MAX_FACTORS = 4

# Score thresholds, highest first.
LEVEL_THRESHOLDS = (
    (80, PestRiskLevel.EXTREME),
    (60, PestRiskLevel.VERY_HIGH),
    (40, PestRiskLevel.HIGH),
    (20, PestRiskLevel.MODERATE),
)

# Northern hemisphere activity multipliers, January first.
MOSQUITO_SEASON = (0.0, 0.0, 0.1, 0.3, 0.6, 0.9, 1.0, 1.0, 0.7, 0.3, 0.1, 0.0)
PEST_SEASON = (0.1, 0.1, 0.3, 0.5, 0.8, 1.0, 1.0, 1.0, 0.8, 0.5, 0.2, 0.1)


@dataclass(frozen=True)
class PestInputs:
    temperature_c: float
    month: int
    humidity_percent: Optional[float] = None
    wind_speed_kmh: float = 0.0
    precipitation_mm: float = 0.0
    latitude: float = 0.0


@dataclass(frozen=True)
class PestScore:
    score: int
    factors: Tuple[str, ...]

    @property
    def level(self) -> PestRiskLevel:
        return score_to_level(self.score)


@dataclass(frozen=True)
class PestAssessment:
    level: PestRiskLevel
    mosquito: PestScore
    outdoor: PestScore
    factors: Tuple[str, ...] = ()


def score_to_level(score: int) -> PestRiskLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return PestRiskLevel.LOW


def seasonal_factor(table: Sequence[float], month: int, latitude: float = 0.0) -> float:
    """Look up ``month`` (1-12) in ``table``, flipping seasons south of the equator."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    index = month - 1
    if latitude < 0:
        index = (index + 6) % 12
    return table[index]


def mosquito_score(inputs: PestInputs) -> PestScore:
    temp = inputs.temperature_c
    if temp < COLD_GATE_C:
        return PestScore(0, ("Too cold for mosquitoes",))

    humidity = _humidity(inputs)
    factors: List[str] = []
    score = 0

    if 21.1 <= temp <= 29.4:
        score += 30
        factors.append("Optimal mosquito temperature")
    elif 15.6 <= temp < 21.1:
        score += 20
        factors.append("Warm enough for mosquito activity")
    elif 29.4 < temp <= 35.0:
        score += 20
        factors.append("Hot but mosquitoes still active")
    elif temp < 15.6:
        score += 10
        factors.append("Cool, reduced mosquito activity")
    else:
        score += 5
        factors.append("Too hot, mosquitoes seek shade")

    if humidity >= 70:
        score += 25
        factors.append("High humidity favors mosquitoes")
    elif humidity >= 50:
        score += 15
        factors.append("Moderate humidity")
    elif humidity >= 30:
        score += 5
        factors.append("Low humidity limits mosquitoes")
    else:
        factors.append("Very dry, mosquitoes dehydrate")

    rain = inputs.precipitation_mm
    if rain >= 50.8:
        score += 25
        factors.append("Recent heavy rain created breeding sites")
    elif rain >= 25.4:
        score += 20
        factors.append("Recent rain provides breeding habitat")
    elif rain >= 12.7:
        score += 12
        factors.append("Some recent moisture")
    elif rain >= 2.54:
        score += 5
        factors.append("Minimal recent rainfall")
    else:
        factors.append("Dry conditions limit breeding")

    wind = inputs.wind_speed_kmh
    if wind <= 8:
        score += 10
        factors.append("Calm conditions favor mosquitoes")
    elif wind <= 16:
        score += 6
        factors.append("Light wind")
    elif wind <= 24:
        score += 3
        factors.append("Moderate wind limits flight")
    else:
        factors.append("Strong wind grounds mosquitoes")

    season = seasonal_factor(MOSQUITO_SEASON, inputs.month, inputs.latitude)
    score += int(season * 10)
    factors.append(_season_label(season, "mosquito season", "Off-season for mosquitoes"))

    return PestScore(_clamp(score), tuple(factors))


def outdoor_pest_score(inputs: PestInputs) -> PestScore:
    temp = inputs.temperature_c
    if temp < COLD_GATE_C:
        return PestScore(0, ("Too cold for most insects",))

    humidity = _humidity(inputs)
    factors: List[str] = []
    score = 0

    if 23.9 <= temp <= 32.2:
        score += 40
        factors.append("Optimal temperature for insect activity")
    elif 18.3 <= temp < 23.9:
        score += 30
        factors.append("Warm, good insect activity")
    elif 32.2 < temp <= 37.8:
        score += 30
        factors.append("Hot, high insect activity")
    elif 12.8 <= temp < 18.3:
        score += 15
        factors.append("Cool, reduced insect activity")
    elif temp < 12.8:
        score += 8
        factors.append("Near insect activity threshold")
    else:
        score += 15
        factors.append("Extreme heat, insects seek shade")

    if 60 <= humidity <= 80:
        score += 20
        factors.append("Ideal humidity for insects")
    elif humidity > 80:
        score += 15
        factors.append("High humidity")
    elif humidity >= 40:
        score += 12
        factors.append("Moderate humidity")
    else:
        score += 5
        factors.append("Dry conditions")

    rain = inputs.precipitation_mm
    if 25.4 <= rain < 76.2:
        score += 20
        factors.append("Recent rain increased pest breeding")
    elif 12.7 <= rain < 25.4:
        score += 15
        factors.append("Some moisture aids pest activity")
    elif rain >= 76.2:
        score += 12
        factors.append("Heavy rain, mixed pest effects")
    else:
        score += 8
        factors.append("Dry period")

    season = seasonal_factor(PEST_SEASON, inputs.month, inputs.latitude)
    score += int(season * 20)
    factors.append(_season_label(season, "pest season", "Low pest season"))

    return PestScore(_clamp(score), tuple(factors))


def assess_pests(inputs: PestInputs) -> PestAssessment:
    mosquito = mosquito_score(inputs)
    outdoor = outdoor_pest_score(inputs)
    factors: List[str] = []
    for factor in mosquito.factors + outdoor.factors:
        if factor not in factors and len(factors) < MAX_FACTORS:
            factors.append(factor)
    return PestAssessment(
        level=PestRiskLevel.worst(mosquito.level, outdoor.level),
        mosquito=mosquito,
        outdoor=outdoor,
        factors=tuple(factors),
    )


# Helpers ------------------------------------------------------------------
def _humidity(inputs: PestInputs) -> float:
    if inputs.humidity_percent is None:
        return DEFAULT_HUMIDITY
    return inputs.humidity_percent


def _season_label(multiplier: float, season: str, off_season: str) -> str:
    if multiplier >= 0.8:
        return f"Peak {season}"
    if multiplier >= 0.5:
        return f"Active {season}"
    if multiplier >= 0.2:
        return f"Early/late {season}"
    return off_season


def _clamp(score: int) -> int:
    return int(min(100, max(0, score)))


__all__ = [
    "MOSQUITO_SEASON",
    "PEST_SEASON",
    "PestAssessment",
    "PestInputs",
    "PestScore",
    "assess_pests",
    "mosquito_score",
    "outdoor_pest_score",
    "score_to_level",
    "seasonal_factor",
]
