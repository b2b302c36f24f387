from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from cragconditions.core.abstractions import ConditionAssessment, DataSource, DrynessCategory, PestRiskLevel
from cragconditions.core.cache import ConditionCache, ReadingCache
from fakes import NOW, TimeController


def make_assessment(computed_at=NOW, location_id="index") -> ConditionAssessment:
    return ConditionAssessment(
        location_id=location_id,
        computed_at=computed_at,
        dryness=DrynessCategory.DRY,
        hours_until_dry=0.0,
        pest_level=PestRiskLevel.LOW,
        observed_at=computed_at,
        source=DataSource.PRIMARY,
    )


def test_get_before_any_put_is_never_refreshed(clock):
    cache = ConditionCache(clock=clock)

    cached = cache.get("index")

    assert cached.never_refreshed
    assert cached.assessment is None
    assert cached.age_seconds is None
    assert cached.as_dict()["never_refreshed"] is True


def test_get_after_put_returns_same_value(clock):
    cache = ConditionCache(freshness_seconds=600, clock=clock)
    assessment = make_assessment()

    assert cache.put("index", assessment) is True
    cached = cache.get("index")

    assert cached.assessment is assessment
    assert cached.age_seconds == pytest.approx(0.0)
    assert cached.is_stale is False
    assert cached.sequence == 1


def test_staleness_follows_clock(clock):
    cache = ConditionCache(freshness_seconds=600, clock=clock)
    cache.put("index", make_assessment())

    clock.advance(601)
    cached = cache.get("index")

    assert cached.is_stale is True
    assert cached.age_seconds == pytest.approx(601)


def test_older_assessment_is_rejected(clock):
    cache = ConditionCache(clock=clock)
    newer = make_assessment()
    cache.put("index", newer)

    assert cache.put("index", make_assessment(NOW - timedelta(minutes=1))) is False
    assert cache.get("index").assessment is newer

    newest = replace(newer, computed_at=NOW + timedelta(minutes=1))
    assert cache.put("index", newest) is True
    assert cache.get("index").sequence == 2


def test_claim_fetch_is_single_flight():
    cache = ConditionCache()

    future, owner = cache.claim_fetch("index")
    joined, joined_owner = cache.claim_fetch("index")
    other, other_owner = cache.claim_fetch("squamish")

    assert owner is True
    assert joined is future and joined_owner is False
    assert other is not future and other_owner is True
    assert cache.is_fetching("index")

    cache.release_fetch("index", future)
    assert not cache.is_fetching("index")
    fresh, fresh_owner = cache.claim_fetch("index")
    assert fresh is not future and fresh_owner is True


def test_snapshot_and_restore(clock):
    source = ConditionCache(clock=clock)
    source.put("index", make_assessment())
    source.get("squamish")

    snapshot = source.snapshot()
    assert list(snapshot) == ["index"]

    target = ConditionCache(clock=clock)
    newer = make_assessment(NOW + timedelta(hours=1))
    target.put("index", newer)
    assert target.restore(snapshot) == 0
    assert target.get("index").assessment is newer
    assert ConditionCache(clock=clock).restore(snapshot) == 1


def test_reading_cache_expires_entries():
    controller = TimeController()
    cache = ReadingCache(time_func=controller)

    cache.set("canopy:1", 0.4, ttl=10)
    assert cache.get("canopy:1") == 0.4

    controller.advance(11)
    assert cache.get("canopy:1") is None
    assert cache.stats() == {"hits": 1, "misses": 1, "keys": 0}
