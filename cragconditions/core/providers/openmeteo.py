from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from .base import HttpProvider, malformed_payload, require, safe_float
from ..abstractions import Observation
from ..errors import ProviderError


# WMO weather codes: snow grains/fall/showers, freezing drizzle, freezing rain
SNOW_ICE_CODES = frozenset({56, 57, 66, 67, 71, 73, 75, 77, 85, 86})
PRECIPITATION_THRESHOLD_MM = 0.1
FREEZING_POINT_C = 0.0


class OpenMeteoProvider(HttpProvider):
    """Primary provider backed by the keyless Open-Meteo forecast API."""

    name = "open-meteo"
    base_url = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url or self.base_url
        self._log = logging.getLogger(self.__class__.__name__)

    def fetch(self, latitude: float, longitude: float, timeout: Optional[float] = None) -> Observation:
        lookback = self.request_config.lookback_hours
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": ",".join(
                [
                    "temperature_2m",
                    "relative_humidity_2m",
                    "precipitation",
                    "snowfall",
                    "wind_speed_10m",
                    "weather_code",
                    "snow_depth",
                ]
            ),
            "hourly": "precipitation,snowfall",
            "past_days": max(1, math.ceil(lookback / 24)),
            "forecast_days": 1,
            "timezone": "UTC",
            "wind_speed_unit": "kmh",
        }
        response = self._request("GET", self.base_url, timeout=timeout, params=params)
        data = self._json(response)
        with malformed_payload(self.name):
            return self._parse(data, lookback)

    def _parse(self, data: dict, lookback: int) -> Observation:
        current = data.get("current")
        if not current:
            raise ProviderError(f"{self.name}: missing current weather")
        now = self._parse_time(current.get("time"))
        temperature = require(safe_float(current.get("temperature_2m")), "temperature", self.name)
        wind = require(safe_float(current.get("wind_speed_10m")), "wind speed", self.name)

        hourly = data.get("hourly") or {}
        window = self._window(hourly, now, lookback)
        precipitation = sum(amount for _, amount, _ in window)
        snowfall = sum(snow for _, _, snow in window)

        current_precip = safe_float(current.get("precipitation")) or 0.0
        if current_precip >= PRECIPITATION_THRESHOLD_MM:
            hours_since = 0.0
        else:
            hours_since = self._hours_since_precipitation(window, now, lookback)

        return Observation(
            provider=self.name,
            observed_at=now,
            precipitation_mm=round(precipitation, 2),
            temperature_c=temperature,
            wind_speed_kmh=wind,
            snow_ice=self._snow_ice(current, temperature, snowfall),
            humidity_percent=safe_float(current.get("relative_humidity_2m")),
            hours_since_precipitation=hours_since,
            lookback_hours=lookback,
        )

    # helpers ------------------------------------------------------------
    def _window(self, hourly: dict, now: datetime, lookback: int) -> List[Tuple[datetime, float, float]]:
        timestamps = hourly.get("time") or []
        if not timestamps:
            raise ProviderError(f"{self.name}: missing hourly data")
        precipitation = hourly.get("precipitation") or []
        snowfall = hourly.get("snowfall") or []
        start = now - timedelta(hours=lookback)
        result = []
        for idx, ts in enumerate(timestamps):
            moment = self._parse_time(ts)
            if start < moment <= now:
                result.append(
                    (
                        moment,
                        _safe_index(precipitation, idx) or 0.0,
                        _safe_index(snowfall, idx) or 0.0,
                    )
                )
        return result

    @staticmethod
    def _hours_since_precipitation(
        window: Sequence[Tuple[datetime, float, float]], now: datetime, lookback: int
    ) -> float:
        wet_hours = [moment for moment, amount, _ in window if amount >= PRECIPITATION_THRESHOLD_MM]
        if not wet_hours:
            # dry for at least the whole window
            return float(lookback)
        return max(0.0, (now - max(wet_hours)).total_seconds() / 3600)

    @staticmethod
    def _snow_ice(current: dict, temperature: float, snowfall_cm: float) -> bool:
        if (safe_float(current.get("snow_depth")) or 0.0) > 0:
            return True
        code = current.get("weather_code")
        if code is not None and int(code) in SNOW_ICE_CODES:
            return True
        return snowfall_cm > 0 and temperature <= FREEZING_POINT_C

    @staticmethod
    def _parse_time(value: Optional[str]) -> datetime:
        if not value:
            return datetime.now(tz=timezone.utc)
        if value.endswith("Z"):
            value = value[:-1]
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


def _safe_index(values: List[Optional[float]], index: int) -> Optional[float]:
    try:
        value = values[index]
    except (IndexError, TypeError):
        return None
    return safe_float(value)


__all__ = ["OpenMeteoProvider", "SNOW_ICE_CODES"]
