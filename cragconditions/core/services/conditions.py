from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Mapping, Optional

from ..abstractions import ConditionAssessment, DataSource
from ..cache import CachedAssessment, ConditionCache
from ..health import HealthRegistry
from .scheduler import RefreshScheduler


class ConditionService:
    """Entry point for consumers: cached reads, forced refreshes and health.

    Reads are served from the cache only and never start a fetch. A forced
    refresh goes through the scheduler so it coalesces with any fetch already
    running for the same location.
    """

    def __init__(
        self,
        scheduler: RefreshScheduler,
        cache: ConditionCache,
        health: Optional[HealthRegistry] = None,
        *,
        force_refresh_timeout: Optional[float] = 30.0,
        max_cycle_age: Optional[float] = None,
        store=None,
    ) -> None:
        self.scheduler = scheduler
        self.cache = cache
        self.health_registry = health or HealthRegistry()
        self.force_refresh_timeout = force_refresh_timeout
        self.max_cycle_age = max_cycle_age if max_cycle_age is not None else 3 * scheduler.interval
        self.store = store
        self._log = logging.getLogger(self.__class__.__name__)

    # Lifecycle ----------------------------------------------------------
    def start(self) -> None:
        if self.store is not None:
            self.restore(self.store.load())
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    # Public API ---------------------------------------------------------
    def get_assessment(self, location_id: str) -> CachedAssessment:
        """Return the cached assessment and its age.

        A tracked location that has not completed a refresh yet comes back
        with ``never_refreshed`` set instead of an error.
        """
        self.scheduler.location(location_id)
        return self.cache.get(location_id)

    def force_refresh(self, location_id: str, timeout: Optional[float] = None) -> ConditionAssessment:
        """Refresh now and return the new assessment.

        When the refresh fails or this caller's wait expires, the last known
        assessment is returned with a stale-cache source. The error is raised
        only for a location that never refreshed successfully, typically
        :class:`ProviderUnavailable` or :class:`RefreshTimeout`.
        """
        wait = timeout if timeout is not None else self.force_refresh_timeout
        self.scheduler.location(location_id)
        try:
            return self.scheduler.refresh(location_id, timeout=wait)
        except Exception as exc:
            cached = self.cache.get(location_id)
            if cached.assessment is None:
                raise
            self._log.warning(
                "Serving stale assessment for %s (age %.0fs) after %s: %s",
                location_id,
                cached.age_seconds,
                type(exc).__name__,
                exc,
            )
            return replace(cached.assessment, source=DataSource.STALE_CACHE)

    def health(self, now: Optional[datetime] = None, reset_provider_errors: bool = False) -> Dict[str, object]:
        """Return the health snapshot.

        With ``reset_provider_errors`` the provider error counters are drained,
        so each report covers only the failures since the previous reset.
        """
        drained = self.health_registry.drain_provider_errors() if reset_provider_errors else None
        snapshot = self.health_registry.snapshot(now, self.max_cycle_age)
        if drained is not None:
            snapshot["providers"] = drained
        snapshot["scheduler_running"] = self.scheduler.running
        snapshot["locations"] = len(self.scheduler.locations())
        return snapshot

    def is_healthy(self, now: Optional[datetime] = None) -> bool:
        return self.health_registry.is_healthy(now, self.max_cycle_age)

    # Persistence --------------------------------------------------------
    def snapshot(self) -> Dict[str, ConditionAssessment]:
        return self.cache.snapshot()

    def restore(self, assessments: Mapping[str, ConditionAssessment]) -> int:
        tracked = {location.id for location in self.scheduler.locations()}
        known = {key: value for key, value in assessments.items() if key in tracked}
        skipped = len(assessments) - len(known)
        if skipped:
            self._log.info("Skipped %d restored assessments for untracked locations", skipped)
        restored = self.cache.restore(known)
        self._log.info("Restored %d assessments", restored)
        return restored


__all__ = ["ConditionService"]
