"""Static location registry loaded from a JSON reference file."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .abstractions import Location


logger = logging.getLogger(__name__)


class LocationRecord(BaseModel):
    """One entry of the locations file."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(min_length=1)
    name: Optional[str] = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    elevation_m: Optional[float] = None
    canopy_fraction: Optional[float] = Field(default=None, ge=0, le=1)

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("id must not be blank")
        return value

    def to_location(self) -> Location:
        return Location(
            id=self.id,
            latitude=self.latitude,
            longitude=self.longitude,
            elevation_m=self.elevation_m,
            name=self.name,
            canopy_fraction=self.canopy_fraction,
        )


class StaticLocationRegistry:
    """Fixed set of tracked locations, validated once at load time."""

    def __init__(self, locations: Iterable[Location]) -> None:
        self._locations: List[Location] = []
        seen = set()
        for location in locations:
            if location.id in seen:
                raise ValueError(f"duplicate location id: {location.id}")
            seen.add(location.id)
            self._locations.append(location)

    @classmethod
    def from_records(cls, records: Sequence[Any]) -> "StaticLocationRegistry":
        locations = []
        for index, raw in enumerate(records):
            try:
                record = LocationRecord.model_validate(raw)
            except ValidationError as exc:
                raise ValueError(f"invalid location at index {index}: {exc}") from exc
            locations.append(record.to_location())
        return cls(locations)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticLocationRegistry":
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid locations file {path}") from exc
        if isinstance(data, dict):
            data = data.get("locations", [])
        if not isinstance(data, list):
            raise ValueError(f"locations file {path} must contain a list")
        registry = cls.from_records(data)
        logger.info("Loaded %d locations from %s", len(registry), path)
        return registry

    def list_tracked_locations(self) -> Sequence[Location]:
        return tuple(self._locations)

    def __len__(self) -> int:
        return len(self._locations)


__all__ = ["LocationRecord", "StaticLocationRegistry"]
