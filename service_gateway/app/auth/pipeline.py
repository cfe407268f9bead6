"""
Per-request authentication pipeline: Authorization header -> verified claims.
"""

from typing import Iterable, Optional

from shared.errors import MalformedCredentialError, MissingCredentialError
from .models import AuthContext, VerifiedClaims
from .scopes import authorize
from .verifier import TokenVerifier

BEARER_PREFIX = "Bearer "


class AuthenticationPipeline:
    """Stateless composition of header parsing, verification and scope checks."""

    def __init__(self, verifier: TokenVerifier):
        self.verifier = verifier

    async def authenticate(self, authorization: Optional[str]) -> VerifiedClaims:
        """Verify the bearer token carried by an Authorization header value."""
        if not authorization:
            raise MissingCredentialError()
        if not authorization.startswith(BEARER_PREFIX):
            raise MalformedCredentialError("Malformed Authorization header: missing 'Bearer ' prefix")

        token = authorization[len(BEARER_PREFIX):]
        if not token:
            raise MalformedCredentialError("Authorization header contained empty bearer token")

        return await self.verifier.verify(token)

    async def authorize(self, authorization: Optional[str], required_scopes: Iterable[str]) -> AuthContext:
        """Authenticate, then require any one of ``required_scopes``."""
        claims = await self.authenticate(authorization)
        granted = authorize(claims, required_scopes)
        return AuthContext(claims=claims, granted_scopes=granted)
