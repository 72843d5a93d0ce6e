"""
Feature flag service for the Feature Flag Access layer.
"""

import time
from typing import Callable, Dict, Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ConfigurationError

from service_flags.app.adapters.unleash_client import UnleashEvaluator
from service_flags.app.caching.flag_cache import FlagCache
from service_flags.app.domain.evaluation import FlagEvaluator
from service_flags.app.domain.feature_check import FeatureCheckService


class FlagService(BaseService):
    """Flag service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        evaluator: Optional[FlagEvaluator] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__("flags", 8080, config=config)

        if evaluator is None and (
            self.config.unleash_inline_refresh_timeout >= self.config.evaluator_timeout_seconds
        ):
            raise ConfigurationError(
                "unleash_inline_refresh_timeout must be shorter than evaluator_timeout_seconds",
                details={
                    "unleash_inline_refresh_timeout": self.config.unleash_inline_refresh_timeout,
                    "evaluator_timeout_seconds": self.config.evaluator_timeout_seconds,
                },
            )

        self.cache = FlagCache(self.config.flag_cache_ttl_seconds, clock=clock)
        self.evaluator = evaluator or UnleashEvaluator(
            self.config.unleash_url,
            self.config.unleash_api_token,
            app_name=self.config.unleash_app_name,
            instance_id=self.config.unleash_instance_id,
            environment=self.config.unleash_environment,
            refresh_interval=self.config.unleash_refresh_interval,
            http_timeout=self.config.unleash_http_timeout,
            inline_refresh_timeout=self.config.unleash_inline_refresh_timeout,
        )
        self.feature_checks = FeatureCheckService(
            self.cache,
            self.evaluator,
            evaluator_timeout=self.config.evaluator_timeout_seconds,
            metrics=self.metrics,
        )

        self._setup_flag_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.flag_service = self

    def _setup_flag_routes(self):
        """Set up flag routes."""

        @self.app.get("/")
        async def root():
            """Service banner."""
            return {"service": self.service_name, "version": "1.0.0"}

        @self.app.get("/api/feature-check")
        async def check_feature() -> bool:
            """Report whether the configured feature is enabled.

            Always answers 200; evaluator failures are reported as false.
            """
            self.logger.debug("Checking feature flag", feature=self.config.feature_name)
            check = await self.feature_checks.check_feature(self.config.feature_name)
            return check.enabled

    async def on_startup(self) -> None:
        if isinstance(self.evaluator, UnleashEvaluator):
            await self.evaluator.warmup()
            await self.evaluator.start()

    async def on_shutdown(self) -> None:
        if isinstance(self.evaluator, UnleashEvaluator):
            await self.evaluator.close()

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check the flag evaluator."""
        check_health = getattr(self.evaluator, "check_health", None)
        if check_health is None:
            return {}
        return {"unleash": await check_health()}


def create_app(
    config: Optional[ServiceConfig] = None,
    evaluator: Optional[FlagEvaluator] = None,
    clock: Optional[Callable[[], float]] = None,
):
    """Create FastAPI application."""
    service = FlagService(config, evaluator=evaluator, clock=clock or time.monotonic)
    return service.app


if __name__ == "__main__":
    service = FlagService(get_config("flags", 8080))
    service.run()
