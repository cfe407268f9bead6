"""
Authentication helpers for the Access Gateway service.
"""

from .jwks import KeyResolver, SigningKey, SigningKeySet
from .models import AuthConfig, AuthContext, VerifiedClaims
from .pipeline import AuthenticationPipeline, BEARER_PREFIX
from .scopes import authorize
from .verifier import TokenVerifier

__all__ = [
    "AuthConfig",
    "AuthContext",
    "AuthenticationPipeline",
    "BEARER_PREFIX",
    "KeyResolver",
    "SigningKey",
    "SigningKeySet",
    "TokenVerifier",
    "VerifiedClaims",
    "authorize",
]
