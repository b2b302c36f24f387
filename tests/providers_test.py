from __future__ import annotations

from datetime import datetime, timezone

import pytest
import requests

from cragconditions.core.errors import ProviderError, ProviderTimeout, QuotaExceeded
from cragconditions.core.providers import OpenMeteoProvider, OpenWeatherProvider, RequestConfig


METEO_URL = "https://meteo.test/forecast"
OWM_URL = "https://owm.test/weather"


def meteo_payload(**current_overrides):
    current = {
        "time": "2024-06-01T12:00",
        "temperature_2m": 18.5,
        "relative_humidity_2m": 65,
        "precipitation": 0.0,
        "snowfall": 0.0,
        "wind_speed_10m": 12.0,
        "weather_code": 3,
        "snow_depth": 0.0,
    }
    current.update(current_overrides)
    return {
        "current": current,
        "hourly": {
            "time": [
                "2024-05-30T11:00",
                "2024-06-01T09:00",
                "2024-06-01T10:00",
                "2024-06-01T11:00",
                "2024-06-01T12:00",
                "2024-06-01T13:00",
            ],
            "precipitation": [5.0, 2.0, 1.5, 0.0, 0.0, 4.0],
            "snowfall": [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        },
    }


def test_openmeteo_normalizes_current_and_window(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL)
    requests_mock.get(METEO_URL, json=meteo_payload())

    observation = provider.fetch(47.8, -121.5)

    assert observation.provider == "open-meteo"
    assert observation.observed_at == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    # only hours inside (now - 48h, now] count
    assert observation.precipitation_mm == pytest.approx(3.5)
    assert observation.hours_since_precipitation == pytest.approx(2.0)
    assert observation.temperature_c == 18.5
    assert observation.wind_speed_kmh == 12.0
    assert observation.humidity_percent == 65
    assert observation.snow_ice is False
    assert observation.lookback_hours == 48

    query = requests_mock.last_request.qs
    assert query["past_days"] == ["2"]
    assert query["wind_speed_unit"] == ["kmh"]


def test_openmeteo_dry_window_reports_full_lookback(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL, request_config=RequestConfig(lookback_hours=24))
    payload = meteo_payload()
    payload["hourly"]["precipitation"] = [0.0] * 6
    requests_mock.get(METEO_URL, json=payload)

    observation = provider.fetch(47.8, -121.5)

    assert observation.precipitation_mm == 0.0
    assert observation.hours_since_precipitation == 24.0
    assert requests_mock.last_request.qs["past_days"] == ["1"]


def test_openmeteo_still_raining(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL)
    requests_mock.get(METEO_URL, json=meteo_payload(precipitation=0.8))

    assert provider.fetch(47.8, -121.5).hours_since_precipitation == 0.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"weather_code": 71},
        {"weather_code": 67},
        {"snow_depth": 0.05},
    ],
)
def test_openmeteo_snow_ice_detection(requests_mock, overrides):
    provider = OpenMeteoProvider(base_url=METEO_URL)
    requests_mock.get(METEO_URL, json=meteo_payload(**overrides))

    assert provider.fetch(47.8, -121.5).snow_ice is True


def test_openmeteo_missing_current_block(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL)
    requests_mock.get(METEO_URL, json={"hourly": {}})

    with pytest.raises(ProviderError):
        provider.fetch(47.8, -121.5)


def test_openmeteo_http_errors(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL)

    requests_mock.get(METEO_URL, status_code=500, text="boom")
    with pytest.raises(ProviderError):
        provider.fetch(47.8, -121.5)

    requests_mock.get(METEO_URL, status_code=429, text="slow down")
    with pytest.raises(QuotaExceeded):
        provider.fetch(47.8, -121.5)


def test_timeout_is_normalized(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL)
    requests_mock.get(METEO_URL, exc=requests.exceptions.ConnectTimeout)

    with pytest.raises(ProviderTimeout):
        provider.fetch(47.8, -121.5, timeout=0.5)


def test_invalid_json_is_provider_error(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL)
    requests_mock.get(METEO_URL, text="not json")

    with pytest.raises(ProviderError):
        provider.fetch(47.8, -121.5)


@pytest.mark.parametrize(
    "overrides",
    [
        {"time": "yesterday afternoon"},
        {"weather_code": "heavy"},
    ],
)
def test_openmeteo_malformed_current_is_provider_error(requests_mock, overrides):
    provider = OpenMeteoProvider(base_url=METEO_URL)
    requests_mock.get(METEO_URL, json=meteo_payload(**overrides))

    with pytest.raises(ProviderError, match="malformed payload"):
        provider.fetch(47.8, -121.5)


def test_openmeteo_malformed_blocks_are_provider_error(requests_mock):
    provider = OpenMeteoProvider(base_url=METEO_URL)

    requests_mock.get(METEO_URL, json={"current": ["2024-06-01T12:00", 18.5]})
    with pytest.raises(ProviderError):
        provider.fetch(47.8, -121.5)

    payload = meteo_payload()
    payload["hourly"]["time"] = ["2024-06-01T12:00", 42]
    requests_mock.get(METEO_URL, json=payload)
    with pytest.raises(ProviderError):
        provider.fetch(47.8, -121.5)

def test_openweather_normalization(requests_mock):
    provider = OpenWeatherProvider(api_key="key", base_url=OWM_URL)
    requests_mock.get(
        OWM_URL,
        json={
            "dt": 1717243200,
            "main": {"temp": 14.0, "humidity": 80},
            "wind": {"speed": 5.0},
            "rain": {"1h": 0.6},
            "weather": [{"id": 500, "main": "Rain"}],
        },
    )

    observation = provider.fetch(47.8, -121.5)

    assert observation.provider == "openweather"
    assert observation.observed_at == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert observation.temperature_c == 14.0
    assert observation.wind_speed_kmh == pytest.approx(18.0)
    assert observation.precipitation_mm == pytest.approx(0.6)
    assert observation.hours_since_precipitation == 0.0
    assert observation.lookback_hours == 1
    assert observation.snow_ice is False
    assert requests_mock.last_request.qs["units"] == ["metric"]


def test_openweather_dry_leaves_elapsed_unknown(requests_mock):
    provider = OpenWeatherProvider(api_key="key", base_url=OWM_URL)
    requests_mock.get(
        OWM_URL,
        json={"dt": 1717243200, "main": {"temp": 20.0}, "wind": {"speed": 1.0}, "weather": [{"id": 800}]},
    )

    observation = provider.fetch(47.8, -121.5)

    assert observation.precipitation_mm == 0.0
    assert observation.hours_since_precipitation is None
    assert observation.humidity_percent is None
    assert observation.missing_fields() == ("humidity_percent", "hours_since_precipitation")


def test_openweather_snow_condition(requests_mock):
    provider = OpenWeatherProvider(api_key="key", base_url=OWM_URL)
    requests_mock.get(
        OWM_URL,
        json={"dt": 1717243200, "main": {"temp": -2.0, "humidity": 90}, "weather": [{"id": 601}]},
    )

    assert provider.fetch(47.8, -121.5).snow_ice is True


@pytest.mark.parametrize(
    "payload",
    [
        {"dt": "yesterday", "main": {"temp": 14.0}},
        {"dt": 1717243200, "main": "warm"},
    ],
)
def test_openweather_malformed_payload_is_provider_error(requests_mock, payload):
    provider = OpenWeatherProvider(api_key="key", base_url=OWM_URL)
    requests_mock.get(OWM_URL, json=payload)

    with pytest.raises(ProviderError, match="malformed payload"):
        provider.fetch(47.8, -121.5)
