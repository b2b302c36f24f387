"""Tree canopy coverage lookups.

Canopy is an optional input: a missing or failing lookup degrades to the
location's reference value, then to "unknown", and never fails a refresh.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account
from requests import Response

from .abstractions import CanopyProvider, CanopyReading, Location
from .cache import ReadingCache, utcnow
from .errors import CanopyRateLimited, CanopyUnavailable
from .health import HealthRegistry


logger = logging.getLogger(__name__)

EARTH_ENGINE_SCOPE = "https://www.googleapis.com/auth/earthengine"
EARTH_ENGINE_URL = "https://earthengine.googleapis.com/v1/projects/{project}/value:computeValue"
# Hansen global forest change, percent tree cover per 30 m pixel
TREE_COVER_IMAGE = "UMD/hansen/global_forest_change_2023_v1_11"
TREE_COVER_BAND = "treecover2000"
DEFAULT_RETRY_AFTER = 60.0


class EarthEngineCanopyClient:
    """Sample tree cover at a point through the Earth Engine REST API."""

    def __init__(
        self,
        project_id: str,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 15.0,
        min_interval: float = 1.0,
        base_url: Optional[str] = None,
        time_func: Callable[[], float] = time.monotonic,
        sleep_func: Callable[[float], None] = time.sleep,
    ) -> None:
        self.project_id = project_id
        self.session = session or requests.Session()
        self.timeout = timeout
        self.min_interval = min_interval
        self.base_url = base_url or EARTH_ENGINE_URL.format(project=project_id)
        self._time_func = time_func
        self._sleep_func = sleep_func
        self._throttle_lock = threading.Lock()
        self._next_slot = 0.0
        self._cooldown_until = 0.0
        self._log = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_credentials(
        cls,
        project_id: Optional[str],
        client_email: Optional[str],
        private_key: Optional[str],
        **kwargs: Any,
    ) -> Optional["EarthEngineCanopyClient"]:
        """Build an authenticated client, or ``None`` when credentials are missing."""
        if not project_id or not client_email or not private_key:
            logger.warning(
                "Earth Engine credentials not set, canopy lookups disabled "
                "(project_id=%s, client_email=%s, private_key=%s)",
                bool(project_id),
                bool(client_email),
                bool(private_key),
            )
            return None

        info = {
            "type": "service_account",
            "project_id": project_id,
            "private_key": private_key.replace("\\n", "\n"),
            "client_email": client_email,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
        try:
            credentials = service_account.Credentials.from_service_account_info(info, scopes=[EARTH_ENGINE_SCOPE])
        except (ValueError, KeyError) as exc:
            logger.warning("Failed to parse Earth Engine credentials, canopy lookups disabled: %s", exc)
            return None
        logger.info("Earth Engine client initialized (project: %s)", project_id)
        return cls(project_id, session=AuthorizedSession(credentials), **kwargs)

    # Public API ---------------------------------------------------------
    def get_coverage(self, latitude: float, longitude: float, timeout: Optional[float] = None) -> float:
        """Return the tree cover fraction at a point.

        Calls are spaced at least ``min_interval`` apart; a caller waits for
        its slot as long as the wait fits in ``timeout``. After a 429 every
        call fails fast with :class:`CanopyRateLimited` until the cool-down
        ends.
        """
        budget = timeout or self.timeout
        waited = self._throttle(budget)
        try:
            response = self.session.post(
                self.base_url,
                json={"expression": self._expression(latitude, longitude)},
                timeout=budget - waited,
            )
        except requests.RequestException as exc:
            raise CanopyUnavailable(f"canopy request failed: {exc}") from exc
        data = self._handle_response(response)
        result = data.get("result")
        if not isinstance(result, dict) or result.get(TREE_COVER_BAND) is None:
            raise CanopyUnavailable("canopy response missing tree cover value")
        try:
            percent = float(result[TREE_COVER_BAND])
        except (TypeError, ValueError) as exc:
            raise CanopyUnavailable("canopy response has invalid tree cover value") from exc
        return min(1.0, max(0.0, percent / 100.0))

    # Helpers ------------------------------------------------------------
    def _throttle(self, budget: float) -> float:
        with self._throttle_lock:
            now = self._time_func()
            if now < self._cooldown_until:
                raise CanopyRateLimited("canopy provider cooling down", retry_after=self._cooldown_until - now)
            slot = max(now, self._next_slot)
            delay = slot - now
            if delay >= budget:
                raise CanopyRateLimited("canopy lookups throttled", retry_after=delay)
            self._next_slot = slot + self.min_interval
        if delay > 0:
            self._log.debug("Waiting %.2fs for a canopy request slot", delay)
            self._sleep_func(delay)
        return delay

    def _handle_response(self, response: Response) -> Dict[str, Any]:
        if response.status_code == 429:
            retry_after = _retry_after(response)
            with self._throttle_lock:
                self._cooldown_until = max(self._cooldown_until, self._time_func() + retry_after)
            self._log.warning("Canopy provider rate limited, backing off %.0fs", retry_after)
            raise CanopyRateLimited(retry_after=retry_after)
        if response.status_code >= 400:
            self._log.error("Canopy provider returned %s: %s", response.status_code, response.text)
            raise CanopyUnavailable(f"HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise CanopyUnavailable("invalid json") from exc
        if not isinstance(data, dict):
            raise CanopyUnavailable("unexpected payload")
        return data

    @staticmethod
    def _expression(latitude: float, longitude: float) -> Dict[str, Any]:
        def call(name: str, **arguments: Any) -> Dict[str, Any]:
            return {"functionInvocationValue": {"functionName": name, "arguments": arguments}}

        image = call(
            "Image.select",
            input=call("Image.load", id={"constantValue": TREE_COVER_IMAGE}),
            bandSelectors={"constantValue": [TREE_COVER_BAND]},
        )
        point = call("GeometryConstructors.Point", coordinates={"constantValue": [longitude, latitude]})
        reduce_region = call(
            "Image.reduceRegion",
            image=image,
            geometry=point,
            reducer=call("Reducer.first"),
            scale={"constantValue": 30},
        )
        return {"result": "0", "values": {"0": reduce_region}}


class CanopyService:
    """Resolve canopy readings with a long-lived cache in front of the client."""

    def __init__(
        self,
        client: Optional[CanopyProvider] = None,
        *,
        ttl: float = 30 * 24 * 3600,
        timeout: Optional[float] = None,
        cache: Optional[ReadingCache] = None,
        health: Optional[HealthRegistry] = None,
    ) -> None:
        self._client = client
        self._ttl = ttl
        self._timeout = timeout
        self._cache = cache or ReadingCache()
        self._health = health

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def get_reading(self, location: Location) -> Optional[CanopyReading]:
        """Return a reading, or ``None`` when coverage is unknown."""
        key = self._cache_key(location)
        cached = self._cache.get(key)
        if cached is not None:
            self._report_stats()
            return cached

        reading = None
        if self._client is not None:
            try:
                fraction = self._client.get_coverage(location.latitude, location.longitude, timeout=self._timeout)
            except CanopyUnavailable as exc:
                logger.warning("Canopy lookup failed for %s: %s", location.id, exc)
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected canopy failure for %s", location.id)
            else:
                reading = CanopyReading(location.id, fraction, utcnow(), source="earthengine")
                self._cache.set(key, reading, self._ttl)

        if reading is None and location.canopy_fraction is not None:
            reading = CanopyReading(location.id, location.canopy_fraction, utcnow(), source="registry")
        self._report_stats()
        return reading

    def _report_stats(self) -> None:
        if self._health is not None:
            self._health.set_cache_stats(self._cache.stats())

    @staticmethod
    def _cache_key(location: Location) -> str:
        return f"canopy:{location.latitude:.4f}:{location.longitude:.4f}"


def _retry_after(response: Response) -> float:
    value = response.headers.get("Retry-After")
    try:
        return max(0.0, float(value)) if value is not None else DEFAULT_RETRY_AFTER
    except ValueError:
        return DEFAULT_RETRY_AFTER


__all__ = ["CanopyService", "EarthEngineCanopyClient"]
