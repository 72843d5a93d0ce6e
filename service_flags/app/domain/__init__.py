"""
Domain helpers for the flag service.
"""

from .evaluation import EvaluationResult, FlagEvaluator
from .feature_check import FeatureCheck, FeatureCheckService

__all__ = [
    "EvaluationResult",
    "FeatureCheck",
    "FeatureCheckService",
    "FlagEvaluator",
]
