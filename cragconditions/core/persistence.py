"""Optional durability for the condition cache across restarts."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from django.core.cache.backends.base import BaseCache

from .abstractions import ConditionAssessment


logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "cragconditions:assessments"


class AssessmentStore:
    """Save and load cache snapshots through a Django cache backend.

    Assessments are stored as plain dicts so any backend (local memory,
    Redis) can hold them. Snapshots never expire.
    """

    def __init__(self, cache: BaseCache, key: str = DEFAULT_SNAPSHOT_KEY) -> None:
        self._cache = cache
        self.key = key

    def save(self, assessments: Mapping[str, ConditionAssessment]) -> int:
        payload = {location_id: self._serialize(item) for location_id, item in assessments.items()}
        self._cache.set(self.key, payload, None)
        logger.debug("Saved %d assessments under %s", len(payload), self.key)
        return len(payload)

    def load(self) -> Dict[str, ConditionAssessment]:
        payload = self._cache.get(self.key)
        if not payload:
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring malformed snapshot under %s", self.key)
            return {}
        result: Dict[str, ConditionAssessment] = {}
        for location_id, item in payload.items():
            try:
                result[location_id] = self._deserialize(item)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping corrupt snapshot entry for %s: %s", location_id, exc)
        return result

    def _serialize(self, assessment: ConditionAssessment) -> Dict[str, Any]:
        return assessment.to_dict()

    def _deserialize(self, payload: Dict[str, Any]) -> ConditionAssessment:
        return ConditionAssessment.from_dict(payload)


__all__ = ["AssessmentStore", "DEFAULT_SNAPSHOT_KEY"]
