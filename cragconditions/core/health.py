"""In-memory health registry used for liveness reporting.

The scheduler reports every completed cycle here, providers report their
failures and the canopy cache reports its counters. The registry is safe to
share between the refresh workers and whatever surface reads it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class CacheStats:
    """Simple container for cache related counters."""

    hits: int = 0
    misses: int = 0
    keys: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "keys": self.keys}


@dataclass(frozen=True)
class CycleReport:
    started_at: datetime
    finished_at: datetime
    locations: int
    failures: int

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def as_dict(self) -> Dict[str, object]:
        return {
            "started_at": _format_datetime(self.started_at),
            "finished_at": _format_datetime(self.finished_at),
            "duration_seconds": round(self.duration_seconds, 3),
            "locations": self.locations,
            "failures": self.failures,
        }


class HealthRegistry:
    """Stores the last refresh cycle, provider error counters and cache stats."""

    def __init__(self) -> None:
        self._last_cycle: Optional[CycleReport] = None
        self._provider_errors: Dict[str, int] = {}
        self._cache_stats: CacheStats = CacheStats()
        self._lock = Lock()

    # -- Refresh cycles -----------------------------------------------------
    def record_cycle(self, report: CycleReport) -> None:
        with self._lock:
            self._last_cycle = report

    @property
    def last_cycle(self) -> Optional[CycleReport]:
        with self._lock:
            return self._last_cycle

    def is_healthy(self, now: Optional[datetime] = None, max_cycle_age: float = 5400.0) -> bool:
        """True when a cycle has finished within ``max_cycle_age`` seconds."""
        report = self.last_cycle
        if report is None:
            return False
        now = now or datetime.now(timezone.utc)
        return (now - report.finished_at).total_seconds() <= max_cycle_age

    # -- Provider errors ----------------------------------------------------
    def record_provider_error(self, provider: str, increment: int = 1) -> None:
        if not provider:
            raise ValueError("provider must be provided")
        if increment <= 0:
            raise ValueError("increment must be positive")
        with self._lock:
            self._provider_errors[provider] = (
                self._provider_errors.get(provider, 0) + increment
            )

    def drain_provider_errors(self) -> Dict[str, int]:
        with self._lock:
            snapshot = dict(self._provider_errors)
            self._provider_errors.clear()
            return snapshot

    # -- Cache stats --------------------------------------------------------
    def set_cache_stats(self, stats: Optional[Mapping[str, int]]) -> None:
        if not stats:
            self._cache_stats = CacheStats()
            return
        hits = int(stats.get("hits", 0))
        misses = int(stats.get("misses", 0))
        keys = int(stats.get("keys", 0))
        self._cache_stats = CacheStats(hits=hits, misses=misses, keys=keys)

    # -- Snapshot -----------------------------------------------------------
    def snapshot(self, now: Optional[datetime] = None, max_cycle_age: float = 5400.0) -> Dict[str, object]:
        with self._lock:
            cycle = self._last_cycle.as_dict() if self._last_cycle else None
            providers = dict(self._provider_errors)
            cache = self._cache_stats.as_dict()
        return {
            "healthy": self.is_healthy(now, max_cycle_age),
            "last_cycle": cycle,
            "providers": providers,
            "canopy_cache": cache,
        }


def _format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


__all__ = ["CacheStats", "CycleReport", "HealthRegistry"]
