"""
Mock Unleash server exposing the frontend API used by the flag service.
"""

from typing import Dict, Optional

from fastapi import FastAPI, Header, HTTPException, Query
from pydantic import BaseModel

from shared.logging import get_logger


class ToggleUpdate(BaseModel):
    """Body for flipping a toggle through the admin shortcut."""

    enabled: bool


class MockUnleashServer:
    """Mock Unleash server implementation."""

    def __init__(self, port: int = 4242, api_token: str = "default:development.unleash-insecure-frontend-api-token"):
        self.port = port
        self.api_token = api_token
        self.logger = get_logger("mock.unleash")
        self.app = FastAPI(title="Mock Unleash", version="1.0.0")

        # Toggle states keyed by feature name
        self.toggles: Dict[str, bool] = {
            "frontend-example-hello-world": True,
            "new-checkout-flow": False,
        }
        self.fetch_count = 0
        self.available = True

        self._setup_routes()

    def _setup_routes(self):
        """Set up mock Unleash routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "mock-unleash",
                "message": "Mock Unleash server for the Feature Flag Access layer",
                "version": "1.0.0",
            }

        @self.app.get("/api/frontend")
        async def frontend_toggles(
            authorization: Optional[str] = Header(None),
            app_name: Optional[str] = Query(None, alias="appName"),
        ):
            """Return the toggles enabled for the caller's context."""
            if authorization != self.api_token:
                raise HTTPException(status_code=401, detail="Invalid token")
            if not self.available:
                raise HTTPException(status_code=503, detail="Unleash unavailable")

            self.fetch_count += 1
            self.logger.info("Frontend toggles requested", app_name=app_name, fetch_count=self.fetch_count)

            return {
                "toggles": [
                    {
                        "name": name,
                        "enabled": True,
                        "variant": {"name": "disabled", "enabled": False},
                        "impressionData": False,
                    }
                    for name, enabled in self.toggles.items()
                    if enabled
                ]
            }

        @self.app.put("/admin/toggles/{name}")
        async def set_toggle(name: str, update: ToggleUpdate):
            """Enable or disable a toggle."""
            self.toggles[name] = update.enabled
            return {"name": name, "enabled": update.enabled}


def create_app():
    """Create mock Unleash application."""
    server = MockUnleashServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=4242)
