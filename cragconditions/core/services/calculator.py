from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from ..abstractions import CanopyReading, ConditionAssessment, DataSource, Location, Observation
from ..analyzers.drying import DryingInputs, estimate_drying
from ..analyzers.pests import PestInputs, assess_pests
from ..cache import utcnow


class ConditionCalculator:
    """Compose the drying and pest models into one assessment per location.

    The calculator has no error path of its own: an unknown canopy is treated
    as open sky (0.0) and recorded on the assessment as ``canopy_fraction=None``.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._log = logging.getLogger(self.__class__.__name__)

    def assess(
        self,
        location: Location,
        observation: Observation,
        canopy: Optional[CanopyReading] = None,
        source: DataSource = DataSource.PRIMARY,
        now: Optional[datetime] = None,
    ) -> ConditionAssessment:
        canopy_fraction = canopy.fraction if canopy is not None else None
        drying = estimate_drying(
            DryingInputs(
                precipitation_mm=observation.precipitation_mm,
                temperature_c=observation.temperature_c,
                wind_speed_kmh=observation.wind_speed_kmh,
                hours_since_precipitation=observation.hours_since_precipitation,
                canopy_fraction=canopy_fraction or 0.0,
                snow_ice=observation.snow_ice,
            )
        )
        pests = assess_pests(
            PestInputs(
                temperature_c=observation.temperature_c,
                month=observation.observed_at.month,
                humidity_percent=observation.humidity_percent,
                wind_speed_kmh=observation.wind_speed_kmh,
                precipitation_mm=observation.precipitation_mm,
                latitude=location.latitude,
            )
        )
        assessment = ConditionAssessment(
            location_id=location.id,
            computed_at=now or self._clock(),
            dryness=drying.category,
            hours_until_dry=drying.hours_until_dry,
            pest_level=pests.level,
            observed_at=observation.observed_at,
            source=source,
            canopy_fraction=canopy_fraction,
            pest_factors=pests.factors,
            providers=observation.providers,
        )
        self._log.debug(
            "Assessed %s: %s (%.2fh), pests %s, source %s",
            location.id,
            assessment.dryness.value,
            assessment.hours_until_dry,
            assessment.pest_level.value,
            assessment.source_label,
        )
        return assessment


__all__ = ["ConditionCalculator"]
