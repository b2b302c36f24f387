from datetime import datetime, timedelta, timezone

import pytest

from cragconditions.core.health import CycleReport, HealthRegistry


NOW = datetime(2024, 1, 10, 12, 30, tzinfo=timezone.utc)


@pytest.fixture()
def registry() -> HealthRegistry:
    registry = HealthRegistry()
    registry.record_cycle(
        CycleReport(started_at=NOW - timedelta(seconds=12), finished_at=NOW, locations=6, failures=1)
    )
    registry.record_provider_error("openweather")
    registry.record_provider_error("open-meteo", increment=3)
    registry.set_cache_stats({"hits": 42, "misses": 3, "keys": 7})
    return registry


def test_snapshot_returns_expected_payload(registry: HealthRegistry) -> None:
    payload = registry.snapshot(now=NOW + timedelta(minutes=5), max_cycle_age=600)

    assert payload["healthy"] is True
    assert payload["providers"] == {"open-meteo": 3, "openweather": 1}
    assert payload["canopy_cache"] == {"hits": 42, "misses": 3, "keys": 7}
    assert payload["last_cycle"] == {
        "started_at": "2024-01-10T12:29:48+00:00",
        "finished_at": "2024-01-10T12:30:00+00:00",
        "duration_seconds": 12.0,
        "locations": 6,
        "failures": 1,
    }


def test_overdue_cycle_is_unhealthy(registry: HealthRegistry) -> None:
    assert registry.is_healthy(now=NOW + timedelta(seconds=600), max_cycle_age=600) is True
    assert registry.is_healthy(now=NOW + timedelta(seconds=601), max_cycle_age=600) is False


def test_no_cycle_is_unhealthy() -> None:
    assert HealthRegistry().is_healthy(now=NOW) is False
    assert HealthRegistry().snapshot(now=NOW)["last_cycle"] is None


def test_provider_errors_can_be_drained(registry: HealthRegistry) -> None:
    drained = registry.drain_provider_errors()
    assert drained == {"openweather": 1, "open-meteo": 3}
    assert registry.snapshot()["providers"] == {}


def test_provider_error_validation(registry: HealthRegistry) -> None:
    with pytest.raises(ValueError):
        registry.record_provider_error("")
    with pytest.raises(ValueError):
        registry.record_provider_error("open-meteo", increment=0)


def test_empty_cache_stats_reset(registry: HealthRegistry) -> None:
    registry.set_cache_stats(None)
    assert registry.snapshot()["canopy_cache"] == {"hits": 0, "misses": 0, "keys": 0}
