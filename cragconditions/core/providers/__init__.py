from .base import HttpProvider, RequestConfig
from .openmeteo import OpenMeteoProvider
from .openweather import OpenWeatherProvider

__all__ = ["HttpProvider", "OpenMeteoProvider", "OpenWeatherProvider", "RequestConfig"]
