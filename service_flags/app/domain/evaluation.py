"""
Evaluation result type and the evaluator contract used by the flag service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of asking the evaluator for a flag.

    Either a success carrying ``enabled`` or a failure carrying ``reason``.
    """

    enabled: Optional[bool] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, enabled: bool) -> "EvaluationResult":
        return cls(enabled=bool(enabled))

    @classmethod
    def failure(cls, reason: str) -> "EvaluationResult":
        return cls(reason=reason or "unknown error")


class FlagEvaluator(Protocol):
    """Anything that can authoritatively evaluate a flag by name."""

    async def evaluate(self, feature_name: str) -> EvaluationResult:
        ...
