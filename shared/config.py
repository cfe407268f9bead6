"""
Shared configuration management for the Logto Access Gateway.
"""

from datetime import timedelta
from typing import FrozenSet, List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError

DEFAULT_ALLOWED_ALGORITHMS = "RS256,ES384"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Listener
    host: str = "0.0.0.0"
    port: int = 8080


class GatewayConfig(BaseConfig):
    """Settings for the token-verifying gateway.

    Every field maps to the upper-cased environment variable of the same
    name (``ISSUER_URL``, ``AUDIENCE``, ``JWKS_URL``, ``PORT`` ...).
    """

    # Identity provider
    issuer_url: Optional[str] = None
    audience: Optional[str] = None
    jwks_url: Optional[str] = None

    # Token validation
    allowed_algorithms: str = Field(default=DEFAULT_ALLOWED_ALGORITHMS)
    clock_skew_leeway: float = Field(default=60.0, ge=0)
    jwks_refresh_interval: float = Field(default=300.0, ge=0)
    jwks_http_timeout: float = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def _derive_jwks_url(self) -> "GatewayConfig":
        if not self.jwks_url and self.issuer_url:
            self.jwks_url = derive_jwks_url(self.issuer_url)
        return self

    @property
    def algorithms(self) -> FrozenSet[str]:
        """Allowed signing algorithms as a set."""
        return frozenset(alg.strip() for alg in self.allowed_algorithms.split(",") if alg.strip())

    @property
    def leeway(self) -> timedelta:
        return timedelta(seconds=self.clock_skew_leeway)

    def missing_settings(self) -> List[str]:
        """Names of required settings that are unset or empty."""
        missing = []
        if not self.issuer_url:
            missing.append("ISSUER_URL")
        if not self.audience:
            missing.append("AUDIENCE")
        if not self.algorithms:
            missing.append("ALLOWED_ALGORITHMS")
        return missing


def derive_jwks_url(issuer_url: str) -> str:
    """Logto publishes its key set at ``<issuer>/jwks``."""
    if issuer_url.endswith("/"):
        return issuer_url + "jwks"
    return issuer_url + "/jwks"


def load_gateway_config(**overrides) -> GatewayConfig:
    """Load gateway settings from the environment and validate them.

    Raises:
        ConfigurationError: when a required setting is missing. The process
            entry point decides how to exit.
    """
    config = GatewayConfig(**overrides)
    missing = config.missing_settings()
    if missing:
        raise ConfigurationError(
            f"Missing required settings: {', '.join(missing)}",
            details={"missing": missing},
        )
    return config
