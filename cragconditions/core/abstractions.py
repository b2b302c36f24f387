"""Core abstractions for the climbing conditions domain."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple


class DrynessCategory(str, Enum):
    DRY = "dry"
    NEARLY_DRY = "nearly_dry"
    DAMP = "damp"
    WET = "wet"
    UNKNOWN = "unknown"


class PestRiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"
    EXTREME = "extreme"

    @property
    def rank(self) -> int:
        return _PEST_ORDER.index(self)

    @classmethod
    def worst(cls, *levels: "PestRiskLevel") -> "PestRiskLevel":
        return max(levels, key=lambda level: level.rank)


_PEST_ORDER = (
    PestRiskLevel.LOW,
    PestRiskLevel.MODERATE,
    PestRiskLevel.HIGH,
    PestRiskLevel.VERY_HIGH,
    PestRiskLevel.EXTREME,
)


class DataSource(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    STALE_CACHE = "stale-cache"


CANOPY_UNKNOWN_LABEL = "canopy-unknown"


@dataclass(frozen=True)
class Location:
    """Tracked climbing location. Owned by the registry, immutable."""

    id: str
    latitude: float
    longitude: float
    elevation_m: Optional[float] = None
    name: Optional[str] = None
    canopy_fraction: Optional[float] = None

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class Observation:
    """Normalized weather observation.

    Units are metric so providers are interchangeable:
    - temperature in Celsius
    - wind speed in kilometres per hour
    - precipitation in millimetres, summed over ``lookback_hours``
    - humidity in percent

    ``None`` marks a field the provider could not supply; see :meth:`merge`.
    """

    provider: str
    observed_at: datetime
    precipitation_mm: float
    temperature_c: float
    wind_speed_kmh: float
    snow_ice: bool = False
    humidity_percent: Optional[float] = None
    hours_since_precipitation: Optional[float] = None
    lookback_hours: int = 48
    providers: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.providers:
            object.__setattr__(self, "providers", (self.provider,))

    def missing_fields(self) -> Tuple[str, ...]:
        return tuple(name for name in _GAP_FIELDS if getattr(self, name) is None)

    def merge(self, other: "Observation") -> "Observation":
        """Combine two observations, the most recent one winning per field.

        Fields that are ``None`` on the winner are filled from the other
        observation. Precipitation totals are only comparable within the same
        window, so they travel with ``lookback_hours`` from whichever
        observation covers the longer window. The result keeps the provider
        name of ``self``.
        """
        newer, older = (other, self) if other.observed_at > self.observed_at else (self, other)
        values: Dict[str, Any] = {}
        for item in fields(self):
            if item.name in ("provider", "providers") or item.name in _WINDOW_FIELDS:
                continue
            value = getattr(newer, item.name)
            if value is None:
                value = getattr(older, item.name)
            values[item.name] = value
        wider = other if other.lookback_hours > self.lookback_hours else self
        for name in _WINDOW_FIELDS:
            values[name] = getattr(wider, name)
        providers = self.providers + tuple(p for p in other.providers if p not in self.providers)
        return replace(self, providers=providers, **values)


_GAP_FIELDS = ("humidity_percent", "hours_since_precipitation")
_WINDOW_FIELDS = ("precipitation_mm", "lookback_hours")


@dataclass(frozen=True)
class CanopyReading:
    """Tree canopy coverage for a location, clamped to [0, 1]."""

    location_id: str
    fraction: float
    fetched_at: datetime
    source: str = "earthengine"

    def __post_init__(self) -> None:
        object.__setattr__(self, "fraction", min(1.0, max(0.0, float(self.fraction))))


@dataclass(frozen=True)
class ConditionAssessment:
    """Latest derived climbing conditions for one location.

    Instances are replaced wholesale on refresh, never mutated.
    """

    location_id: str
    computed_at: datetime
    dryness: DrynessCategory
    hours_until_dry: float
    pest_level: PestRiskLevel
    observed_at: datetime
    source: DataSource
    canopy_fraction: Optional[float] = None
    pest_factors: Tuple[str, ...] = ()
    providers: Tuple[str, ...] = field(default=())

    @property
    def canopy_unknown(self) -> bool:
        return self.canopy_fraction is None

    @property
    def source_label(self) -> str:
        if self.canopy_unknown:
            return f"{self.source.value}+{CANOPY_UNKNOWN_LABEL}"
        return self.source.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location_id": self.location_id,
            "computed_at": _format_datetime(self.computed_at),
            "dryness": self.dryness.value,
            "hours_until_dry": self.hours_until_dry,
            "pest_level": self.pest_level.value,
            "observed_at": _format_datetime(self.observed_at),
            "source": self.source.value,
            "source_label": self.source_label,
            "canopy_fraction": self.canopy_fraction,
            "pest_factors": list(self.pest_factors),
            "providers": list(self.providers),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ConditionAssessment":
        return cls(
            location_id=str(payload["location_id"]),
            computed_at=_parse_datetime(payload["computed_at"]),
            dryness=DrynessCategory(payload["dryness"]),
            hours_until_dry=float(payload["hours_until_dry"]),
            pest_level=PestRiskLevel(payload["pest_level"]),
            observed_at=_parse_datetime(payload["observed_at"]),
            source=DataSource(payload["source"]),
            canopy_fraction=payload.get("canopy_fraction"),
            pest_factors=tuple(payload.get("pest_factors") or ()),
            providers=tuple(payload.get("providers") or ()),
        )


class WeatherProvider(Protocol):
    """A data source capable of returning weather observations."""

    name: str

    def fetch(self, latitude: float, longitude: float, timeout: Optional[float] = None) -> Observation:
        """Fetch a single normalized observation for the coordinates."""
        ...


class CanopyProvider(Protocol):
    """Geospatial lookup of canopy coverage."""

    def get_coverage(self, latitude: float, longitude: float, timeout: Optional[float] = None) -> float:
        """Return the canopy fraction in [0, 1] for the coordinates."""
        ...


class LocationRegistry(Protocol):
    """Source of the tracked location set."""

    def list_tracked_locations(self) -> Sequence[Location]:
        ...


def _format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = [
    "CANOPY_UNKNOWN_LABEL",
    "CanopyProvider",
    "CanopyReading",
    "ConditionAssessment",
    "DataSource",
    "DrynessCategory",
    "Location",
    "LocationRegistry",
    "Observation",
    "PestRiskLevel",
    "WeatherProvider",
]
