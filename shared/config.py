"""
Shared configuration management for the JWK Set resolution service.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JWKSConfig(BaseSettings):
    """Service configuration, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="JWKS_",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Remote JWK Sets, in lookup order
    jwks_urls: List[str] = Field(default_factory=list)
    prioritize_http: bool = Field(default=True)

    # Seconds between background refreshes of each remote JWK Set
    refresh_interval: float = Field(default=3600.0)
    http_timeout: float = Field(default=10.0)

    # Refresh-on-unknown-kid rate limiting
    refresh_unknown_kid: bool = Field(default=True)
    refresh_unknown_kid_interval: float = Field(default=300.0)
    refresh_unknown_kid_burst: int = Field(default=1)
    rate_limit_wait_max: float = Field(default=60.0)

    # HTTP server
    service_name: str = Field(default="jwks")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8020)


def get_config(**overrides) -> JWKSConfig:
    """Get configuration for the service."""
    return JWKSConfig(**overrides)
