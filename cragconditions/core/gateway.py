"""Ordered provider chain that turns coordinates into one observation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .abstractions import DataSource, Location, Observation, WeatherProvider
from .errors import ProviderError, ProviderUnavailable, QuotaExceeded
from .health import HealthRegistry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    observation: Observation
    source: DataSource


class ProviderGateway:
    """Try providers in priority order; the first success wins.

    Each provider call gets its own timeout and is never retried within the
    same fetch. When the winning observation has gaps, later providers are
    asked to fill them. The gateway keeps no state between calls.
    """

    def __init__(
        self,
        providers: Iterable[WeatherProvider],
        health: Optional[HealthRegistry] = None,
    ) -> None:
        self._providers: List[WeatherProvider] = list(providers)
        if not self._providers:
            raise ValueError("at least one weather provider is required")
        self._health = health

    @property
    def providers(self) -> List[WeatherProvider]:
        return list(self._providers)

    def fetch(self, location: Location, timeout: Optional[float] = None) -> GatewayResult:
        errors: List[Exception] = []
        for index, provider in enumerate(self._providers):
            try:
                observation = provider.fetch(location.latitude, location.longitude, timeout=timeout)
            except QuotaExceeded as exc:
                logger.warning("Provider %s quota exceeded for %s", provider.name, location.id)
                self._record_error(provider)
                errors.append(exc)
                continue
            except ProviderError as exc:
                logger.warning("Provider %s failed for %s: %s", provider.name, location.id, exc)
                self._record_error(provider)
                errors.append(exc)
                continue
            except Exception as exc:  # noqa: BLE001
                logger.exception("Provider %s raised an unexpected error for %s", provider.name, location.id)
                self._record_error(provider)
                errors.append(exc)
                continue

            source = DataSource.PRIMARY if index == 0 else DataSource.FALLBACK
            observation = self._fill_gaps(observation, location, index, timeout)
            return GatewayResult(observation=observation, source=source)

        logger.error("All weather providers failed for %s", location.id)
        raise ProviderUnavailable(
            f"all providers failed for {location.id}", errors=errors
        ) from (errors[0] if errors else None)

    # Helpers ------------------------------------------------------------
    def _fill_gaps(
        self,
        observation: Observation,
        location: Location,
        index: int,
        timeout: Optional[float],
    ) -> Observation:
        for provider in self._providers[index + 1:]:
            missing = observation.missing_fields()
            if not missing:
                break
            try:
                extra = provider.fetch(location.latitude, location.longitude, timeout=timeout)
            except Exception as exc:  # noqa: BLE001
                logger.info("Provider %s could not fill %s for %s: %s", provider.name, ", ".join(missing), location.id, exc)
                continue
            logger.debug("Filling %s for %s from %s", ", ".join(missing), location.id, provider.name)
            observation = observation.merge(extra)
        return observation

    def _record_error(self, provider: WeatherProvider) -> None:
        if self._health is not None:
            self._health.record_provider_error(provider.name)


__all__ = ["GatewayResult", "ProviderGateway"]
