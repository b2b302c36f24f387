from .drying import DryingInputs, DryingResult, SNOW_ICE_SENTINEL_HOURS, categorize, estimate_drying
from .pests import PestAssessment, PestInputs, assess_pests, score_to_level

__all__ = [
    "DryingInputs",
    "DryingResult",
    "PestAssessment",
    "PestInputs",
    "SNOW_ICE_SENTINEL_HOURS",
    "assess_pests",
    "categorize",
    "estimate_drying",
    "score_to_level",
]
