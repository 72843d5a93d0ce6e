"""
Feature check service: cache-first flag lookups with a safe fallback.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from shared.logging import get_logger

from service_flags.app.caching.flag_cache import FlagCache
from service_flags.app.domain.evaluation import EvaluationResult, FlagEvaluator

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


SOURCE_CACHE = "cache"
SOURCE_EVALUATOR = "evaluator"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class FeatureCheck:
    """Answer to a feature query and where it came from."""

    feature_name: str
    enabled: bool
    source: str


class FeatureCheckService:
    """Answers flag queries from the cache, falling back to the evaluator.

    Successful evaluations are cached. Failed evaluations (errors, timeouts)
    resolve to disabled and are never cached, so a transient outage does not
    pin the flag off for a whole TTL window.
    """

    def __init__(
        self,
        cache: FlagCache,
        evaluator: FlagEvaluator,
        *,
        evaluator_timeout: float = 2.0,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.cache = cache
        self.evaluator = evaluator
        self.evaluator_timeout = evaluator_timeout
        self.metrics = metrics
        self.logger = get_logger("flags.feature_check")

    async def check_feature(self, feature_name: str) -> FeatureCheck:
        """Resolve ``feature_name`` to a boolean, consulting the cache first."""
        cached = self.cache.get(feature_name)
        if cached is not None:
            self._record_lookup("hit")
            self.logger.debug("Using cached flag value", feature=feature_name, enabled=cached)
            return FeatureCheck(feature_name, cached, SOURCE_CACHE)

        self._record_lookup("miss")
        result = await self._evaluate(feature_name)

        if not result.ok:
            self.logger.error(
                "Flag evaluation failed, defaulting to disabled",
                feature=feature_name,
                reason=result.reason,
            )
            return FeatureCheck(feature_name, False, SOURCE_FALLBACK)

        enabled = bool(result.enabled)
        self.logger.debug("Flag evaluated", feature=feature_name, enabled=enabled)
        self.cache.set(feature_name, enabled)
        return FeatureCheck(feature_name, enabled, SOURCE_EVALUATOR)

    async def is_enabled(self, feature_name: str) -> bool:
        """Shortcut returning only the boolean answer."""
        check = await self.check_feature(feature_name)
        return check.enabled

    async def _evaluate(self, feature_name: str) -> EvaluationResult:
        """Call the evaluator under the configured timeout."""
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self.evaluator.evaluate(feature_name),
                timeout=self.evaluator_timeout,
            )
        except asyncio.TimeoutError:
            result = EvaluationResult.failure(
                f"evaluator timed out after {self.evaluator_timeout}s"
            )
        except Exception as exc:
            self.logger.error(
                "Flag evaluator raised unexpectedly",
                feature=feature_name,
                error=str(exc),
                exc_info=True,
            )
            result = EvaluationResult.failure(f"{type(exc).__name__}: {exc}")

        self._record_evaluation(result, time.perf_counter() - start)
        return result

    def _record_lookup(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("flag_cache_lookups_total", result=outcome)

    def _record_evaluation(self, result: EvaluationResult, duration: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter(
            "flag_evaluations_total",
            status="success" if result.ok else "failure",
        )
        self.metrics.observe_histogram("flag_evaluation_duration_seconds", duration)
