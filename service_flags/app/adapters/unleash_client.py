"""
Unleash frontend API client acting as the flag evaluator.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Optional

import httpx

from shared.errors import ConfigurationError, ExternalServiceError
from shared.logging import get_logger

from service_flags.app.domain.evaluation import EvaluationResult


class UnleashEvaluator:
    """Evaluates flags against a snapshot of the toggles Unleash reports enabled.

    While the background polling loop runs, ``evaluate`` only reads the
    snapshot and never waits on the network once one exists. Without polling
    the snapshot is refreshed inline when older than ``refresh_interval``,
    bounded by ``inline_refresh_timeout``. If a refresh fails or times out while
    an older snapshot exists, the older snapshot keeps being served.
    """

    def __init__(
        self,
        url: str,
        api_token: str,
        *,
        app_name: str = "default",
        instance_id: str = "unleash-sample-backend",
        environment: Optional[str] = None,
        refresh_interval: int = 5,
        http_timeout: float = 5.0,
        inline_refresh_timeout: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not url:
            raise ConfigurationError("Unleash URL must be configured")
        if not api_token:
            raise ConfigurationError("Unleash API token must be configured")

        self.url = url.rstrip("/")
        self.app_name = app_name
        self.instance_id = instance_id
        self.environment = environment
        self.refresh_interval = refresh_interval
        self.inline_refresh_timeout = inline_refresh_timeout
        self._clock = clock
        self.logger = get_logger("flags.unleash")

        self._toggles: Optional[Dict[str, bool]] = None
        self._last_refresh: float = 0.0
        self._lock = asyncio.Lock()
        self._poll_task: Optional[asyncio.Task] = None
        self._client = httpx.AsyncClient(
            timeout=http_timeout,
            transport=transport,
            headers={
                "Authorization": api_token,
                "UNLEASH-APPNAME": app_name,
                "UNLEASH-INSTANCEID": instance_id,
            },
        )

    @property
    def is_ready(self) -> bool:
        """True once at least one toggle snapshot has been fetched."""
        return self._toggles is not None

    @property
    def is_polling(self) -> bool:
        """True while the background polling loop is running."""
        return self._poll_task is not None and not self._poll_task.done()

    async def evaluate(self, feature_name: str) -> EvaluationResult:
        """Return whether ``feature_name`` is enabled, as a result value."""
        if self._toggles is not None and self.is_polling:
            return EvaluationResult.success(self._toggles.get(feature_name, False))

        try:
            await self._refresh_inline()
        except ExternalServiceError as exc:
            if self._toggles is None:
                return EvaluationResult.failure(exc.message)
            self.logger.warning(
                "Serving stale Unleash toggles after refresh failure",
                feature=feature_name,
                error=exc.message,
                snapshot_age_seconds=round(self._clock() - self._last_refresh, 3),
            )

        return EvaluationResult.success(self._toggles.get(feature_name, False))

    async def warmup(self) -> None:
        """Eagerly fetch toggles so the first request does not pay the cost."""
        try:
            await self._refresh_toggles(force=True)
        except ExternalServiceError as exc:
            self.logger.warning("Unleash warmup failed", error=exc.message)

    async def start(self) -> None:
        """Start the background polling loop."""
        if self.refresh_interval <= 0 or self._poll_task is not None:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        self.logger.info("Unleash polling started", refresh_interval=self.refresh_interval)

    async def stop(self) -> None:
        """Stop the background polling loop."""
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None
        self.logger.info("Unleash polling stopped")

    async def close(self) -> None:
        """Stop polling and close the underlying HTTP client."""
        await self.stop()
        await self._client.aclose()

    async def check_health(self) -> str:
        """Return 'ok' if Unleash answers a toggle fetch, otherwise 'error'."""
        try:
            await self._refresh_inline()
            return "ok"
        except ExternalServiceError as exc:
            self.logger.error("Unleash health check failed", error=exc.message)
            return "error"

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self._refresh_toggles(force=True)
            except ExternalServiceError as exc:
                self.logger.warning("Unleash poll failed", error=exc.message)

    async def _refresh_inline(self) -> None:
        """Refresh a stale snapshot on the caller's path, bounded in time."""
        try:
            await asyncio.wait_for(
                self._refresh_toggles(force=False),
                timeout=self.inline_refresh_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ExternalServiceError(
                "unleash",
                f"refresh timed out after {self.inline_refresh_timeout}s",
            ) from exc

    async def _refresh_toggles(self, *, force: bool) -> None:
        """Refresh the toggle snapshot if it is stale."""
        if not force and self._is_fresh():
            return

        async with self._lock:
            if not force and self._is_fresh():
                return

            toggles = await self._fetch_toggles()
            self._toggles = toggles
            self._last_refresh = self._clock()
            self.logger.debug("Unleash toggles refreshed", enabled_count=sum(toggles.values()))

    def _is_fresh(self) -> bool:
        return self._toggles is not None and (self._clock() - self._last_refresh) < self.refresh_interval

    async def _fetch_toggles(self) -> Dict[str, bool]:
        params: Dict[str, Any] = {"appName": self.app_name}
        if self.environment:
            params["environment"] = self.environment

        try:
            response = await self._client.get(f"{self.url}/frontend", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ExternalServiceError("unleash", "request timed out", details={"error": str(exc)}) from exc
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                "unleash",
                f"unexpected status {exc.response.status_code}",
                details={"status_code": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError("unleash", "request failed", details={"error": str(exc)}) from exc
        except ValueError as exc:
            raise ExternalServiceError("unleash", "response was not valid JSON") from exc

        return self._parse_toggles(payload)

    @staticmethod
    def _parse_toggles(payload: Any) -> Dict[str, bool]:
        """Map the frontend API payload to ``{name: enabled}``."""
        toggles = payload.get("toggles") if isinstance(payload, dict) else None
        if not isinstance(toggles, list):
            raise ExternalServiceError("unleash", "response missing 'toggles' array")

        parsed: Dict[str, bool] = {}
        for toggle in toggles:
            if not isinstance(toggle, dict):
                continue
            name = toggle.get("name")
            if isinstance(name, str) and name:
                parsed[name] = toggle.get("enabled", True) is True
        return parsed
