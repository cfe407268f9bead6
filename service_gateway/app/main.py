"""
API Gateway service for the Logto Access Gateway.
"""

import sys
from typing import Dict, Optional

import httpx
from fastapi import Depends

from shared.base_service import BaseService
from shared.config import GatewayConfig, load_gateway_config
from shared.errors import ConfigurationError
from shared.logging import configure_logging, get_logger
from .auth import AuthConfig, AuthContext, AuthenticationPipeline, KeyResolver, TokenVerifier
from .domain import AuthMiddleware

DATA_SCOPE = "read:generic_data"


class GatewayService(BaseService):
    """API Gateway service implementation."""

    def __init__(self, config: Optional[GatewayConfig] = None, *, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__("gateway", config or load_gateway_config())
        self.auth_config = AuthConfig.from_gateway_config(self.config)

        self.key_resolver = KeyResolver(
            self.auth_config.jwks_url,
            refresh_interval=self.config.jwks_refresh_interval,
            http_timeout=self.config.jwks_http_timeout,
            client=http_client,
            metrics=self.metrics,
        )
        self.token_verifier = TokenVerifier(self.key_resolver, self.auth_config)
        self.pipeline = AuthenticationPipeline(self.token_verifier)
        self.auth_middleware = AuthMiddleware(self.pipeline, self.metrics)

        self.app.state.gateway_service = self
        self._setup_gateway_routes()

    async def startup(self) -> None:
        self.logger.info(
            "Gateway starting",
            issuer_url=self.auth_config.issuer_url,
            audience=self.auth_config.audience,
            jwks_url=self.auth_config.jwks_url,
            port=self.config.port,
        )
        await self.key_resolver.start()

    async def shutdown(self) -> None:
        await self.key_resolver.close()

    def _setup_gateway_routes(self):
        """Set up gateway-specific routes."""

        @self.app.get("/api/data")
        async def get_data(auth: AuthContext = Depends(self.auth_middleware.require_scopes(DATA_SCOPE))):
            """Protected sample resource."""
            claims = auth.claims
            return {
                "message": "You have access to generic data!",
                "subject": claims.subject,
                "scopes": claims.scope_string,
                "expiresAt": claims.expires_at.isoformat().replace("+00:00", "Z"),
            }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report whether a signing key set is loaded."""
        key_set = self.key_resolver.key_set
        return {"jwks": "ok" if key_set is not None and len(key_set) > 0 else "error"}


def create_app(config: Optional[GatewayConfig] = None):
    """Create FastAPI application."""
    service = GatewayService(config)
    return service.app


def main() -> int:
    """Process entry point: validate configuration, then serve."""
    try:
        service = GatewayService()
    except ConfigurationError as exc:
        configure_logging("gateway")
        get_logger("gateway").error("Invalid configuration", error=exc.message, **exc.details)
        return 1
    service.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
