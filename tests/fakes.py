from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from cragconditions.core.abstractions import Observation


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class StubProvider:
    """In-memory weather provider with an optional gate to hold fetches."""

    def __init__(
        self,
        name: str,
        observation: Optional[Observation] = None,
        error: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
    ) -> None:
        self.name = name
        self.observation = observation
        self.error = error
        self.gate = gate
        self.started = threading.Event()
        self.calls = 0
        self.timeouts: List[Optional[float]] = []
        self._lock = threading.Lock()

    def fetch(self, latitude: float, longitude: float, timeout: Optional[float] = None) -> Observation:
        with self._lock:
            self.calls += 1
            self.timeouts.append(timeout)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        assert self.observation is not None
        return replace(self.observation, provider=self.name, providers=(self.name,))


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)

    def __call__(self) -> datetime:
        return self.now


class TimeController:
    def __init__(self) -> None:
        self.now = 0.0

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


def make_observation(provider: str = "stub", **overrides) -> Observation:
    values = dict(
        provider=provider,
        observed_at=NOW,
        precipitation_mm=0.0,
        temperature_c=18.0,
        wind_speed_kmh=10.0,
        snow_ice=False,
        humidity_percent=55.0,
        hours_since_precipitation=48.0,
        lookback_hours=48,
    )
    values.update(overrides)
    return Observation(**values)


