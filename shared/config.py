"""
Shared configuration management for the Feature Flag Access service.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="FLAGS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Unleash (flag evaluator)
    unleash_url: str = Field(default="http://localhost:4242/api")
    unleash_api_token: str = Field(default="default:development.unleash-insecure-frontend-api-token")
    unleash_app_name: str = Field(default="default")
    unleash_instance_id: str = Field(default="unleash-sample-backend")
    unleash_environment: Optional[str] = Field(default=None)
    unleash_refresh_interval: int = Field(default=5, ge=0)
    unleash_http_timeout: float = Field(default=5.0, gt=0)
    unleash_inline_refresh_timeout: float = Field(default=1.0, gt=0)

    # Flag cache
    flag_cache_ttl_seconds: float = Field(default=60.0, ge=0)
    evaluator_timeout_seconds: float = Field(default=2.0, gt=0)
    feature_name: str = Field(default="frontend-example-hello-world")

    # HTTP
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
