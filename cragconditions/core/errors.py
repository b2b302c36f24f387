"""Error taxonomy for the conditions engine."""
from __future__ import annotations

from typing import List, Optional, Sequence


class ConditionsError(RuntimeError):
    """Base error for the conditions engine."""


class ProviderError(ConditionsError):
    """A single weather provider failed."""


class ProviderTimeout(ProviderError):
    """A single weather provider did not answer in time."""


class QuotaExceeded(ProviderError):
    """Raised when a provider reports a quota/usage limit issue."""


class ProviderUnavailable(ConditionsError):
    """Every configured weather provider failed."""

    def __init__(self, message: str = "all providers failed", errors: Optional[Sequence[Exception]] = None) -> None:
        super().__init__(message)
        self.errors: List[Exception] = list(errors or ())


class CanopyUnavailable(ConditionsError):
    """Canopy lookup failed or is disabled."""


class CanopyRateLimited(CanopyUnavailable):
    """The canopy provider asked us to slow down."""

    def __init__(self, message: str = "canopy lookups rate limited", retry_after: float = 60.0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UnknownLocation(ConditionsError, KeyError):
    """Requested location id is not in the tracked set."""

    def __init__(self, location_id: str) -> None:
        super().__init__(f"unknown location: {location_id}")
        self.location_id = location_id

    def __str__(self) -> str:
        return f"unknown location: {self.location_id}"


class RefreshTimeout(ConditionsError):
    """The caller stopped waiting for a refresh; the fetch itself continues."""


__all__ = [
    "CanopyRateLimited",
    "CanopyUnavailable",
    "ConditionsError",
    "ProviderError",
    "ProviderTimeout",
    "ProviderUnavailable",
    "QuotaExceeded",
    "RefreshTimeout",
    "UnknownLocation",
]
