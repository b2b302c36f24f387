"""Wire the conditions engine from Django settings."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Sequence

from django.conf import settings
from django.core.cache import caches

from .abstractions import CanopyProvider, LocationRegistry, WeatherProvider
from .cache import ConditionCache, ReadingCache
from .canopy import CanopyService, EarthEngineCanopyClient
from .gateway import ProviderGateway
from .health import HealthRegistry
from .persistence import AssessmentStore
from .providers import OpenMeteoProvider, OpenWeatherProvider, RequestConfig
from .registry import StaticLocationRegistry
from .services import ConditionCalculator, ConditionService, RefreshScheduler


logger = logging.getLogger(__name__)


def build_providers(request_config: Optional[RequestConfig] = None) -> Sequence[WeatherProvider]:
    request_config = request_config or RequestConfig(
        timeout=settings.CONDITIONS_PROVIDER_TIMEOUT,
        lookback_hours=settings.CONDITIONS_LOOKBACK_HOURS,
    )
    providers: list = [OpenMeteoProvider(request_config=request_config)]
    if settings.OPENWEATHERMAP_API_KEY:
        providers.append(OpenWeatherProvider(api_key=settings.OPENWEATHERMAP_API_KEY, request_config=request_config))
    else:
        logger.warning("OPENWEATHERMAP_API_KEY not set, running without a fallback provider")
    return providers


def build_canopy_client() -> Optional[EarthEngineCanopyClient]:
    return EarthEngineCanopyClient.from_credentials(
        settings.GOOGLE_EARTH_ENGINE_PROJECT_ID,
        settings.GOOGLE_EARTH_ENGINE_CLIENT_EMAIL,
        settings.GOOGLE_EARTH_ENGINE_PRIVATE_KEY,
        timeout=settings.CONDITIONS_CANOPY_TIMEOUT,
        min_interval=settings.CONDITIONS_CANOPY_MIN_INTERVAL,
    )


def build_condition_service(
    *,
    registry: Optional[LocationRegistry] = None,
    providers: Optional[Sequence[WeatherProvider]] = None,
    canopy_client: Optional[CanopyProvider] = None,
    store: Optional[AssessmentStore] = None,
    health: Optional[HealthRegistry] = None,
) -> ConditionService:
    """Assemble a service; every collaborator not passed in comes from settings."""
    health = health or HealthRegistry()
    registry = registry or StaticLocationRegistry.from_file(settings.CONDITIONS_LOCATIONS_FILE)
    gateway = ProviderGateway(providers if providers is not None else build_providers(), health=health)
    canopy = CanopyService(
        canopy_client if canopy_client is not None else build_canopy_client(),
        ttl=settings.CONDITIONS_CANOPY_TTL,
        timeout=settings.CONDITIONS_CANOPY_TIMEOUT,
        cache=ReadingCache(),
        health=health,
    )
    if store is None:
        store = AssessmentStore(caches[settings.CONDITIONS_CACHE_ALIAS], key=settings.CONDITIONS_SNAPSHOT_KEY)
    cache = ConditionCache(freshness_seconds=settings.CONDITIONS_FRESHNESS_SECONDS)
    scheduler = RefreshScheduler(
        gateway,
        canopy,
        ConditionCalculator(),
        cache,
        registry,
        interval=settings.CONDITIONS_REFRESH_INTERVAL,
        fetch_timeout=settings.CONDITIONS_PROVIDER_TIMEOUT,
        max_workers=settings.CONDITIONS_MAX_WORKERS,
        health=health,
        store=store,
    )
    return ConditionService(
        scheduler,
        cache,
        health,
        force_refresh_timeout=settings.CONDITIONS_FORCE_REFRESH_TIMEOUT,
        max_cycle_age=settings.CONDITIONS_HEALTH_MAX_CYCLE_AGE,
        store=store,
    )


@lru_cache(maxsize=1)
def get_condition_service() -> ConditionService:
    """Process-wide service built from settings on first use."""
    return build_condition_service()


__all__ = ["build_canopy_client", "build_condition_service", "build_providers", "get_condition_service"]
