from __future__ import annotations

import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .abstractions import ConditionAssessment


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReadingCache:
    """A lightweight thread-safe TTL cache for slow-changing readings."""

    def __init__(self, time_func: Callable[[], float] = time.monotonic) -> None:
        self._time_func = time_func
        self._storage: Dict[str, Tuple[float, Any]] = {}
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any:
        with self._lock:
            item = self._storage.get(key)
            if not item:
                self.misses += 1
                return None
            expires_at, value = item
            if expires_at < self._time_func():
                self._storage.pop(key, None)
                self.misses += 1
                return None
            self.hits += 1
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._storage[key] = (self._time_func() + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self.hits, "misses": self.misses, "keys": len(self._storage)}


@dataclass
class CacheEntry:
    """Latest assessment for one location plus its fetch bookkeeping."""

    location_id: str
    assessment: Optional[ConditionAssessment] = None
    sequence: int = 0
    in_flight: Optional["Future[ConditionAssessment]"] = None
    lock: Lock = field(default_factory=Lock, repr=False, compare=False)


@dataclass(frozen=True)
class CachedAssessment:
    """Result of a cache read: the assessment (if any) and how old it is."""

    location_id: str
    assessment: Optional[ConditionAssessment]
    age_seconds: Optional[float]
    is_stale: bool
    sequence: int

    @property
    def never_refreshed(self) -> bool:
        return self.assessment is None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "location_id": self.location_id,
            "never_refreshed": self.never_refreshed,
            "age_seconds": None if self.age_seconds is None else round(self.age_seconds, 1),
            "is_stale": self.is_stale,
            "assessment": self.assessment.to_dict() if self.assessment is not None else None,
        }


class ConditionCache:
    """Process-wide map from location id to the latest assessment.

    Reads never block on I/O. Each entry has its own lock, so replacement is
    atomic per location and concurrent locations never contend.
    """

    def __init__(
        self,
        freshness_seconds: float = 3600.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.freshness_seconds = freshness_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, location_id: str) -> CachedAssessment:
        entry = self._entry(location_id)
        with entry.lock:
            assessment = entry.assessment
            sequence = entry.sequence
        if assessment is None:
            return CachedAssessment(location_id, None, None, True, sequence)
        age = max(0.0, (self._clock() - assessment.computed_at).total_seconds())
        return CachedAssessment(
            location_id=location_id,
            assessment=assessment,
            age_seconds=age,
            is_stale=age > self.freshness_seconds,
            sequence=sequence,
        )

    def put(self, location_id: str, assessment: ConditionAssessment) -> bool:
        """Replace the assessment for a location.

        An assessment computed before the one already stored is rejected so
        readers never move backwards in time. Returns whether it was stored.
        """
        entry = self._entry(location_id)
        with entry.lock:
            current = entry.assessment
            if current is not None and assessment.computed_at < current.computed_at:
                return False
            entry.assessment = assessment
            entry.sequence += 1
            return True

    # -- Fetch coalescing ---------------------------------------------------
    def claim_fetch(self, location_id: str) -> Tuple["Future[ConditionAssessment]", bool]:
        """Return the in-flight future for a location, creating one if idle.

        The boolean is True for the caller that created the future and must
        therefore run the fetch and call :meth:`release_fetch`.
        """
        entry = self._entry(location_id)
        with entry.lock:
            if entry.in_flight is not None:
                return entry.in_flight, False
            future: "Future[ConditionAssessment]" = Future()
            entry.in_flight = future
            return future, True

    def release_fetch(self, location_id: str, future: "Future[ConditionAssessment]") -> None:
        entry = self._entry(location_id)
        with entry.lock:
            if entry.in_flight is future:
                entry.in_flight = None

    def is_fetching(self, location_id: str) -> bool:
        entry = self._entry(location_id)
        with entry.lock:
            return entry.in_flight is not None

    # -- Persistence hooks --------------------------------------------------
    def snapshot(self) -> Dict[str, ConditionAssessment]:
        with self._lock:
            entries = list(self._entries.values())
        result: Dict[str, ConditionAssessment] = {}
        for entry in entries:
            with entry.lock:
                if entry.assessment is not None:
                    result[entry.location_id] = entry.assessment
        return result

    def restore(self, assessments: Mapping[str, ConditionAssessment]) -> int:
        restored = 0
        for location_id, assessment in assessments.items():
            if self.put(location_id, assessment):
                restored += 1
        return restored

    def __contains__(self, location_id: object) -> bool:
        with self._lock:
            return location_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _entry(self, location_id: str) -> CacheEntry:
        with self._lock:
            entry = self._entries.get(location_id)
            if entry is None:
                entry = CacheEntry(location_id=location_id)
                self._entries[location_id] = entry
            return entry


__all__ = ["CacheEntry", "CachedAssessment", "ConditionCache", "ReadingCache", "utcnow"]
