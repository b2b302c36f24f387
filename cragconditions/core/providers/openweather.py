"""OpenWeatherMap fallback provider."""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Optional

from .base import HttpProvider, malformed_payload, require, safe_float
from ..abstractions import Observation
from ..errors import ProviderError


logger = logging.getLogger(__name__)

MS_TO_KMH = 3.6


def _is_snow_ice_condition(condition_id: Optional[int]) -> bool:
    # 6xx snow group, 511 freezing rain
    if condition_id is None:
        return False
    return 600 <= condition_id <= 622 or condition_id == 511


class OpenWeatherProvider(HttpProvider):
    """Integration with the OpenWeather current weather endpoint.

    The endpoint only reports the last one or three hours of precipitation,
    so ``hours_since_precipitation`` is known only while it is wet and
    humidity is always present. Gaps are filled by the gateway from other
    providers when available.
    """

    name = "openweather"
    base_url = "https://api.openweathermap.org/data/2.5/weather"

    def __init__(self, *, api_key: str, base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or self.base_url
        self._log = logging.getLogger(self.__class__.__name__)

    def fetch(self, latitude: float, longitude: float, timeout: Optional[float] = None) -> Observation:
        params = {"lat": latitude, "lon": longitude, "appid": self.api_key, "units": "metric"}
        response = self._request("GET", self.base_url, timeout=timeout, params=params)
        data = self._json(response)
        with malformed_payload(self.name):
            return self._parse(data)

    def _parse(self, data: dict) -> Observation:
        main = data.get("main") or {}
        wind = data.get("wind") or {}
        rain = data.get("rain") or {}
        snow = data.get("snow") or {}
        conditions = data.get("weather") or []
        if not main:
            raise ProviderError(f"{self.name}: missing main block")

        temperature = require(safe_float(main.get("temp")), "temperature", self.name)
        wind_ms = safe_float(wind.get("speed")) or 0.0
        rain_mm = safe_float(rain.get("3h")) or safe_float(rain.get("1h")) or 0.0
        snow_mm = safe_float(snow.get("3h")) or safe_float(snow.get("1h")) or 0.0
        precipitation = rain_mm + snow_mm

        condition_id = None
        if conditions:
            condition_id = _safe_int(conditions[0].get("id"))

        return Observation(
            provider=self.name,
            observed_at=self._parse_timestamp(data.get("dt")),
            precipitation_mm=round(precipitation, 2),
            temperature_c=temperature,
            wind_speed_kmh=round(wind_ms * MS_TO_KMH, 2),
            snow_ice=snow_mm > 0 or _is_snow_ice_condition(condition_id),
            humidity_percent=safe_float(main.get("humidity")),
            hours_since_precipitation=0.0 if precipitation > 0 else None,
            lookback_hours=3 if rain.get("3h") is not None else 1,
        )

    @staticmethod
    def _parse_timestamp(value: Optional[object]) -> datetime:
        if value is None:
            return datetime.now(tz=timezone.utc)
        return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _safe_int(value: Optional[object]) -> Optional[int]:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


__all__ = ["OpenWeatherProvider"]
