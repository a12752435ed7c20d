"""Supporting AI services."""

from .model_limits import ModelLimit, ModelLimitMatch, ModelLimitsService, find_model_limit

__all__ = ["ModelLimit", "ModelLimitMatch", "ModelLimitsService", "find_model_limit"]
