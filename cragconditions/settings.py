"""Django settings for the climbing conditions engine."""
from __future__ import annotations

from pathlib import Path
import os

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent


def env(name: str, default: str | None = None) -> str:
    """Fetch environment variables while allowing explicit defaults."""

    value = os.environ.get(name, default)
    if value is None:
        raise ImproperlyConfigured(f"Environment variable {name} is required")
    return value


def env_float(name: str, default: float) -> float:
    raw = env(name, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise ImproperlyConfigured(f"Environment variable {name} must be a number, got {raw!r}") from exc


def env_int(name: str, default: int) -> int:
    raw = env(name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ImproperlyConfigured(f"Environment variable {name} must be an integer, got {raw!r}") from exc


SECRET_KEY = env("DJANGO_SECRET_KEY")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "cragconditions",
]

REDIS_URL = os.environ.get("REDIS_URL")
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
            },
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "conditions-local",
        }
    }

CONDITIONS_CACHE_ALIAS = os.environ.get("CONDITIONS_CACHE_ALIAS", "default")
CONDITIONS_SNAPSHOT_KEY = os.environ.get("CONDITIONS_SNAPSHOT_KEY", "cragconditions:assessments")

CONDITIONS_REFRESH_INTERVAL = env_float("CONDITIONS_REFRESH_INTERVAL", 1800.0)
CONDITIONS_FRESHNESS_SECONDS = env_float("CONDITIONS_FRESHNESS_SECONDS", 3600.0)
CONDITIONS_PROVIDER_TIMEOUT = env_float("CONDITIONS_PROVIDER_TIMEOUT", 10.0)
CONDITIONS_CANOPY_TIMEOUT = env_float("CONDITIONS_CANOPY_TIMEOUT", 15.0)
CONDITIONS_CANOPY_TTL = env_float("CONDITIONS_CANOPY_TTL", 30 * 24 * 3600.0)
CONDITIONS_CANOPY_MIN_INTERVAL = env_float("CONDITIONS_CANOPY_MIN_INTERVAL", 1.0)
CONDITIONS_MAX_WORKERS = env_int("CONDITIONS_MAX_WORKERS", 4)
CONDITIONS_LOOKBACK_HOURS = env_int("CONDITIONS_LOOKBACK_HOURS", 48)
CONDITIONS_FORCE_REFRESH_TIMEOUT = env_float("CONDITIONS_FORCE_REFRESH_TIMEOUT", 30.0)
CONDITIONS_HEALTH_MAX_CYCLE_AGE = env_float("CONDITIONS_HEALTH_MAX_CYCLE_AGE", 3 * CONDITIONS_REFRESH_INTERVAL)
CONDITIONS_LOCATIONS_FILE = env("CONDITIONS_LOCATIONS_FILE", str(BASE_DIR / "data" / "locations.json"))

OPENWEATHERMAP_API_KEY = os.environ.get("OPENWEATHERMAP_API_KEY", "")

GOOGLE_EARTH_ENGINE_PROJECT_ID = os.environ.get("GOOGLE_EARTH_ENGINE_PROJECT_ID", "")
GOOGLE_EARTH_ENGINE_CLIENT_EMAIL = os.environ.get("GOOGLE_EARTH_ENGINE_CLIENT_EMAIL", "")
GOOGLE_EARTH_ENGINE_PRIVATE_KEY = os.environ.get("GOOGLE_EARTH_ENGINE_PRIVATE_KEY", "")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("CONDITIONS_LOG_LEVEL", "INFO"),
    },
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_TZ = True
