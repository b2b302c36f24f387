from __future__ import annotations

from datetime import timedelta

from cragconditions.core.abstractions import (
    CanopyReading,
    ConditionAssessment,
    DataSource,
    DrynessCategory,
    PestRiskLevel,
)
from fakes import NOW, make_observation


def make_assessment(**overrides) -> ConditionAssessment:
    values = dict(
        location_id="index",
        computed_at=NOW,
        dryness=DrynessCategory.DAMP,
        hours_until_dry=12.5,
        pest_level=PestRiskLevel.MODERATE,
        observed_at=NOW - timedelta(minutes=5),
        source=DataSource.PRIMARY,
        canopy_fraction=0.4,
    )
    values.update(overrides)
    return ConditionAssessment(**values)


def test_newer_observation_wins_per_field():
    older = make_observation("a", observed_at=NOW - timedelta(hours=1), temperature_c=5.0, humidity_percent=90.0)
    newer = make_observation("b", temperature_c=9.0, humidity_percent=None)

    merged = older.merge(newer)

    assert merged.provider == "a"
    assert merged.temperature_c == 9.0
    assert merged.humidity_percent == 90.0
    assert merged.providers == ("a", "b")


def test_source_label():
    assert make_assessment().source_label == "primary"
    assert make_assessment(source=DataSource.FALLBACK, canopy_fraction=None).source_label == "fallback+canopy-unknown"
    assert make_assessment(source=DataSource.STALE_CACHE).source_label == "stale-cache"


def test_assessment_dict_round_trip():
    assessment = make_assessment(pest_factors=("Moderate humidity",), providers=("open-meteo",))

    payload = assessment.to_dict()

    assert payload["computed_at"] == "2024-06-01T12:00:00Z"
    assert payload["source_label"] == "primary"
    assert ConditionAssessment.from_dict(payload) == assessment


def test_canopy_reading_is_clamped():
    assert CanopyReading("index", 1.7, NOW).fraction == 1.0
    assert CanopyReading("index", -0.2, NOW).fraction == 0.0


def test_pest_levels_are_ordered():
    assert PestRiskLevel.worst(PestRiskLevel.LOW, PestRiskLevel.HIGH, PestRiskLevel.MODERATE) is PestRiskLevel.HIGH
    assert PestRiskLevel.LOW.rank < PestRiskLevel.EXTREME.rank
