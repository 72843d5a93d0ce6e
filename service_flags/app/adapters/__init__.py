"""
Adapters package for the flag service.

Contains HTTP client wrappers for external dependencies. Adapters report
failures as EvaluationResult values rather than raising into request handlers.
"""

from .unleash_client import UnleashEvaluator

__all__ = [
    "UnleashEvaluator",
]
