from .calculator import ConditionCalculator
from .conditions import ConditionService
from .scheduler import RefreshScheduler

__all__ = ["ConditionCalculator", "ConditionService", "RefreshScheduler"]
