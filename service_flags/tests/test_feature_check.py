"""
Unit tests for the feature check service.
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_flags.app.adapters.unleash_client import UnleashEvaluator
from service_flags.app.caching.flag_cache import FlagCache
from service_flags.app.domain.evaluation import EvaluationResult
from service_flags.app.domain.feature_check import (
    FeatureCheckService,
    SOURCE_CACHE,
    SOURCE_EVALUATOR,
    SOURCE_FALLBACK,
)
from shared.metrics import MetricsCollector


FEATURE = "frontend-example-hello-world"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class SlowEvaluator:
    """Evaluator that never answers in time."""

    async def evaluate(self, feature_name: str) -> EvaluationResult:
        await asyncio.sleep(10)
        return EvaluationResult.success(True)


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.histograms = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self.histograms.append((metric_name, value, labels))


class TestFeatureCheckService:
    """Test cases for FeatureCheckService."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return FlagCache(60.0, clock=clock)

    @pytest.fixture
    def evaluator(self):
        evaluator = AsyncMock()
        evaluator.evaluate.return_value = EvaluationResult.success(True)
        return evaluator

    @pytest.fixture
    def service(self, cache, evaluator):
        return FeatureCheckService(cache, evaluator, evaluator_timeout=0.5)

    @pytest.mark.asyncio
    async def test_miss_evaluates_and_caches(self, service, cache, evaluator):
        check = await service.check_feature(FEATURE)

        assert check.enabled is True
        assert check.source == SOURCE_EVALUATOR
        assert cache.get(FEATURE) is True
        evaluator.evaluate.assert_awaited_once_with(FEATURE)

    @pytest.mark.asyncio
    async def test_disabled_result_is_cached_too(self, service, cache, evaluator):
        evaluator.evaluate.return_value = EvaluationResult.success(False)

        check = await service.check_feature(FEATURE)

        assert check.enabled is False
        assert check.source == SOURCE_EVALUATOR
        assert cache.get(FEATURE) is False

    @pytest.mark.asyncio
    async def test_hit_skips_evaluator(self, service, cache, evaluator):
        cache.set(FEATURE, False)

        check = await service.check_feature(FEATURE)

        assert check.enabled is False
        assert check.source == SOURCE_CACHE
        evaluator.evaluate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_returns_false_and_is_not_cached(self, service, cache, evaluator):
        evaluator.evaluate.return_value = EvaluationResult.failure("connection refused")

        check = await service.check_feature(FEATURE)

        assert check.enabled is False
        assert check.source == SOURCE_FALLBACK
        assert cache.get(FEATURE) is None

    @pytest.mark.asyncio
    async def test_failure_is_retried_on_next_query(self, service, evaluator):
        evaluator.evaluate.side_effect = [
            EvaluationResult.failure("connection refused"),
            EvaluationResult.success(True),
        ]

        first = await service.check_feature(FEATURE)
        second = await service.check_feature(FEATURE)

        assert first.enabled is False
        assert second.enabled is True
        assert second.source == SOURCE_EVALUATOR
        assert evaluator.evaluate.await_count == 2

    @pytest.mark.asyncio
    async def test_evaluator_exception_maps_to_fallback(self, service, cache, evaluator):
        evaluator.evaluate.side_effect = RuntimeError("boom")

        check = await service.check_feature(FEATURE)

        assert check.enabled is False
        assert check.source == SOURCE_FALLBACK
        assert cache.get(FEATURE) is None

    @pytest.mark.asyncio
    async def test_evaluator_timeout_maps_to_fallback(self, cache):
        service = FeatureCheckService(cache, SlowEvaluator(), evaluator_timeout=0.05)

        check = await service.check_feature(FEATURE)

        assert check.enabled is False
        assert check.source == SOURCE_FALLBACK
        assert cache.get(FEATURE) is None

    @pytest.mark.asyncio
    async def test_is_enabled_returns_bool(self, service):
        assert await service.is_enabled(FEATURE) is True

    @pytest.mark.asyncio
    async def test_end_to_end_hit_then_expiry(self, service, clock, evaluator):
        first = await service.check_feature(FEATURE)
        clock.advance(0.5)
        second = await service.check_feature(FEATURE)

        assert (first.enabled, first.source) == (True, SOURCE_EVALUATOR)
        assert (second.enabled, second.source) == (True, SOURCE_CACHE)
        assert evaluator.evaluate.await_count == 1

        clock.advance(61)
        third = await service.check_feature(FEATURE)

        assert third.source == SOURCE_EVALUATOR
        assert evaluator.evaluate.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_both_evaluate(self, cache):
        """Concurrent cold misses may both reach the evaluator; last write wins."""
        release = asyncio.Event()
        calls = []

        class GatedEvaluator:
            async def evaluate(self, feature_name: str) -> EvaluationResult:
                calls.append(feature_name)
                await release.wait()
                return EvaluationResult.success(len(calls) % 2 == 0)

        service = FeatureCheckService(cache, GatedEvaluator(), evaluator_timeout=1.0)

        tasks = [asyncio.create_task(service.check_feature(FEATURE)) for _ in range(2)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert len(calls) == 2
        assert all(check.source == SOURCE_EVALUATOR for check in results)
        assert cache.get(FEATURE) in (True, False)

    @pytest.mark.asyncio
    async def test_records_metrics(self, cache, evaluator):
        metrics = DummyMetrics()
        service = FeatureCheckService(cache, evaluator, metrics=metrics)

        await service.check_feature(FEATURE)
        await service.check_feature(FEATURE)

        assert ("flag_cache_lookups_total", {"result": "miss"}) in metrics.counters
        assert ("flag_cache_lookups_total", {"result": "hit"}) in metrics.counters
        assert ("flag_evaluations_total", {"status": "success"}) in metrics.counters
        assert metrics.histograms[0][0] == "flag_evaluation_duration_seconds"

    @pytest.mark.asyncio
    async def test_records_into_prometheus_collector(self, cache, evaluator):
        metrics = MetricsCollector("flags")
        evaluator.evaluate.return_value = EvaluationResult.failure("down")
        service = FeatureCheckService(cache, evaluator, metrics=metrics)

        await service.check_feature(FEATURE)

        failures = metrics.registry.get_sample_value(
            "flag_evaluations_total", {"status": "failure"}
        )
        misses = metrics.registry.get_sample_value(
            "flag_cache_lookups_total", {"result": "miss"}
        )
        assert failures == 1.0
        assert misses == 1.0
        assert metrics.registry.get_sample_value("flag_evaluation_duration_seconds_count") == 1.0


    @pytest.mark.asyncio
    async def test_hanging_unleash_serves_last_snapshot(self):
        hang = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if hang.is_set():
                await asyncio.sleep(3600)
            return httpx.Response(200, json={"toggles": [{"name": FEATURE, "enabled": True}]})

        cache_clock = FakeClock()
        unleash_clock = FakeClock(1000.0)
        evaluator = UnleashEvaluator(
            "http://localhost:4242/api",
            "default:development.unleash-insecure-frontend-api-token",
            refresh_interval=5,
            inline_refresh_timeout=0.05,
            transport=httpx.MockTransport(handler),
            clock=unleash_clock,
        )
        service = FeatureCheckService(FlagCache(60.0, clock=cache_clock), evaluator, evaluator_timeout=0.2)

        first = await service.check_feature(FEATURE)
        hang.set()
        cache_clock.advance(61)
        unleash_clock.advance(61)
        second = await service.check_feature(FEATURE)

        assert (first.enabled, first.source) == (True, SOURCE_EVALUATOR)
        assert (second.enabled, second.source) == (True, SOURCE_EVALUATOR)
        await evaluator.close()

class TestEvaluationResult:
    """Test cases for EvaluationResult."""

    def test_success(self):
        result = EvaluationResult.success(True)
        assert result.ok is True
        assert result.enabled is True
        assert result.reason is None

    def test_failure(self):
        result = EvaluationResult.failure("timeout")
        assert result.ok is False
        assert result.enabled is None
        assert result.reason == "timeout"

    def test_failure_without_reason_still_fails(self):
        assert EvaluationResult.failure("").ok is False
