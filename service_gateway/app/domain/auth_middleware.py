"""
Authentication middleware for Gateway.

Translates pipeline errors into HTTP responses at the trust boundary:
every authentication failure becomes the same bare 401, and a scope
failure becomes a 403 naming only the scopes the route requires.
"""

from typing import Awaitable, Callable

from fastapi import HTTPException, Request

from shared.errors import AuthenticationError, InsufficientScopeError
from shared.logging import get_logger, set_subject_context
from shared.metrics import MetricsCollector
from ..auth import AuthContext, AuthenticationPipeline

UNAUTHORIZED_DETAIL = "Unauthorized"


class AuthMiddleware:
    """Authentication middleware for Gateway."""

    def __init__(self, pipeline: AuthenticationPipeline, metrics: MetricsCollector):
        self.pipeline = pipeline
        self.metrics = metrics
        self.logger = get_logger("gateway.auth_middleware")

    async def authenticate_request(self, request: Request) -> AuthContext:
        """Authenticate incoming request with its bearer token."""
        try:
            claims = await self.pipeline.authenticate(request.headers.get("Authorization"))
        except AuthenticationError as exc:
            self.metrics.record_token_validation(exc.code.lower())
            raise _unauthorized() from exc

        self.metrics.record_token_validation("valid")
        set_subject_context(claims.subject)
        context = AuthContext(claims=claims)
        request.state.auth_context = context
        return context

    async def authorize_request(self, request: Request, *required_scopes: str) -> AuthContext:
        """Authenticate, then require any one of ``required_scopes``."""
        try:
            context = await self.pipeline.authorize(request.headers.get("Authorization"), required_scopes)
        except AuthenticationError as exc:
            self.metrics.record_token_validation(exc.code.lower())
            raise _unauthorized() from exc
        except InsufficientScopeError as exc:
            self.metrics.record_token_validation("valid")
            self.metrics.record_authorization(allowed=False)
            raise HTTPException(status_code=403, detail=exc.message) from exc

        self.metrics.record_token_validation("valid")
        self.metrics.record_authorization(allowed=True)
        set_subject_context(context.subject)
        request.state.auth_context = context
        return context

    def require_scopes(self, *required_scopes: str) -> Callable[[Request], Awaitable[AuthContext]]:
        """FastAPI dependency factory guarding a route with scopes."""
        if not required_scopes:
            raise ValueError("require_scopes() needs at least one scope")

        async def dependency(request: Request) -> AuthContext:
            return await self.authorize_request(request, *required_scopes)

        return dependency


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=UNAUTHORIZED_DETAIL,
        headers={"WWW-Authenticate": "Bearer"},
    )
