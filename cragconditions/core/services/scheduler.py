"""Background refresh of the condition cache.

Every tracked location moves between two states, idle and fetching. A fetch
is started either by the fixed-interval timer (for the whole tracked set) or
by an on-demand refresh for one location. At most one fetch per location is
in flight: a trigger arriving while one is running attaches to it and gets
its result.

A failed fetch leaves the previous assessment in the cache and is retried on
the next tick. There is no backoff beyond the timer interval.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from concurrent.futures import wait
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..abstractions import ConditionAssessment, Location, LocationRegistry
from ..cache import ConditionCache, utcnow
from ..canopy import CanopyService
from ..errors import ProviderUnavailable, RefreshTimeout, UnknownLocation
from ..gateway import ProviderGateway
from ..health import CycleReport, HealthRegistry
from .calculator import ConditionCalculator


logger = logging.getLogger(__name__)


class RefreshScheduler:
    def __init__(
        self,
        gateway: ProviderGateway,
        canopy: Optional[CanopyService],
        calculator: ConditionCalculator,
        cache: ConditionCache,
        registry: LocationRegistry,
        *,
        interval: float = 1800.0,
        fetch_timeout: Optional[float] = None,
        max_workers: int = 4,
        health: Optional[HealthRegistry] = None,
        store=None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.gateway = gateway
        self.canopy = canopy
        self.calculator = calculator
        self.cache = cache
        self.registry = registry
        self.interval = interval
        self.fetch_timeout = fetch_timeout
        self.health = health
        self.store = store
        self._clock = clock
        self._max_workers = max_workers
        self._executor = self._new_executor()
        self._executor_closed = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._locations: Dict[str, Location] = {}
        self._locations_lock = threading.Lock()
        self.reload_locations()

    # Tracked locations --------------------------------------------------
    def reload_locations(self) -> int:
        locations = {location.id: location for location in self.registry.list_tracked_locations()}
        with self._locations_lock:
            self._locations = locations
        logger.info("Tracking %d locations", len(locations))
        return len(locations)

    def locations(self) -> List[Location]:
        with self._locations_lock:
            return list(self._locations.values())

    def location(self, location_id: str) -> Location:
        with self._locations_lock:
            location = self._locations.get(location_id)
        if location is None:
            raise UnknownLocation(location_id)
        return location

    # Timer --------------------------------------------------------------
    def start(self) -> None:
        """Start the timer thread. A stopped scheduler can be started again."""
        if self._thread is not None and self._thread.is_alive():
            return
        if self._executor_closed:
            self._executor = self._new_executor()
            self._executor_closed = False
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="conditions-timer", daemon=True)
        self._thread.start()
        logger.info("Refresh scheduler started (interval %.0fs)", self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel the timer, drain in-flight fetches and save a final snapshot."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._executor.shutdown(wait=True)
        self._executor_closed = True
        self._save_snapshot()
        logger.info("Refresh scheduler stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.run_cycle()
            except Exception:  # pragma: no cover - logged for visibility
                logger.exception("Refresh cycle crashed")
            if self._stop.wait(self.interval):
                break

    # Refreshing ---------------------------------------------------------
    def run_cycle(self) -> CycleReport:
        """Refresh every tracked location once and wait for the results."""
        started = self._clock()
        locations = self.locations()
        futures = [self._submit(location) for location in locations]
        wait(futures)
        failures = sum(1 for future in futures if future.exception() is not None)
        report = CycleReport(
            started_at=started,
            finished_at=self._clock(),
            locations=len(locations),
            failures=failures,
        )
        if self.health is not None:
            self.health.record_cycle(report)
        self._save_snapshot()
        logger.info(
            "Refresh cycle finished: %d locations, %d failures in %.1fs",
            report.locations,
            report.failures,
            report.duration_seconds,
        )
        return report

    def refresh(self, location_id: str, timeout: Optional[float] = None) -> ConditionAssessment:
        """Refresh one location now, joining a fetch already in flight.

        ``timeout`` bounds only this caller's wait. When it expires
        :class:`RefreshTimeout` is raised and the fetch keeps running for
        everyone else attached to it.
        """
        location = self.location(location_id)
        future = self._submit(location)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout as exc:
            raise RefreshTimeout(f"refresh of {location_id} did not finish within {timeout}s") from exc

    def is_fetching(self, location_id: str) -> bool:
        return self.cache.is_fetching(location_id)

    # Helpers ------------------------------------------------------------
    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="conditions-refresh")

    def _submit(self, location: Location) -> "Future[ConditionAssessment]":
        future, is_owner = self.cache.claim_fetch(location.id)
        if not is_owner:
            logger.debug("Joining in-flight refresh for %s", location.id)
            return future
        try:
            self._executor.submit(self._run_fetch, location, future)
        except RuntimeError as exc:
            # executor already shut down
            self.cache.release_fetch(location.id, future)
            future.set_exception(exc)
        return future

    def _run_fetch(self, location: Location, future: "Future[ConditionAssessment]") -> None:
        try:
            assessment = self._fetch(location)
        except ProviderUnavailable as exc:
            logger.warning("Refresh failed for %s, keeping previous assessment: %s", location.id, exc)
            self.cache.release_fetch(location.id, future)
            future.set_exception(exc)
        except Exception as exc:
            logger.exception("Unexpected refresh failure for %s", location.id)
            self.cache.release_fetch(location.id, future)
            future.set_exception(exc)
        else:
            if not self.cache.put(location.id, assessment):
                assessment = self.cache.get(location.id).assessment or assessment
            self.cache.release_fetch(location.id, future)
            future.set_result(assessment)

    def _fetch(self, location: Location) -> ConditionAssessment:
        result = self.gateway.fetch(location, timeout=self.fetch_timeout)
        canopy = self.canopy.get_reading(location) if self.canopy is not None else None
        return self.calculator.assess(location, result.observation, canopy, result.source, now=self._clock())

    def _save_snapshot(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self.cache.snapshot())
        except Exception:  # pragma: no cover - logged for visibility
            logger.exception("Failed to save condition snapshot")


__all__ = ["RefreshScheduler"]
