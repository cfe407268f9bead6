"""
Value types shared by the gateway authentication components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from shared.config import GatewayConfig


@dataclass(frozen=True)
class AuthConfig:
    """Read-only token validation settings."""

    issuer_url: str
    audience: str
    jwks_url: str
    allowed_algorithms: FrozenSet[str]
    clock_skew_leeway: timedelta = timedelta(minutes=1)

    @classmethod
    def from_gateway_config(cls, config: GatewayConfig) -> "AuthConfig":
        return cls(
            issuer_url=config.issuer_url,
            audience=config.audience,
            jwks_url=config.jwks_url,
            allowed_algorithms=config.algorithms,
            clock_skew_leeway=config.leeway,
        )


@dataclass(frozen=True)
class VerifiedClaims:
    """Claims of a token that passed signature and claim validation."""

    subject: str
    issuer: str
    audience: FrozenSet[str]
    expires_at: datetime
    not_before: Optional[datetime]
    scope: Tuple[str, ...]
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def scope_string(self) -> str:
        return " ".join(self.scope)


@dataclass(frozen=True)
class AuthContext:
    """Request-scoped authentication result handed to route handlers."""

    claims: VerifiedClaims
    granted_scopes: FrozenSet[str] = frozenset()

    @property
    def subject(self) -> str:
        return self.claims.subject
