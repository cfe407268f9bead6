"""
Mock Logto server providing JWKS, discovery and PAT token exchange endpoints.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Form, Header
from fastapi.responses import JSONResponse

from pat_cli.app.adapters.token_exchange_client import PAT_TOKEN_TYPE, TOKEN_EXCHANGE_GRANT_TYPE
from shared.logging import get_logger
from shared.test_helpers import MockTokenGenerator, SigningKeyPair, build_jwks, generate_rsa_key_pair

ACCESS_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:access_token"


class MockLogtoServer:
    """Mock Logto tenant implementation."""

    def __init__(
        self,
        port: int = 3001,
        *,
        client_id: str = "playground-cli",
        audience: str = "https://api.example.com",
        default_scope: str = "read:generic_data",
        token_lifetime: int = 3600,
    ):
        self.port = port
        self.logger = get_logger("mock.logto")
        self.app = FastAPI(title="Mock Logto", version="1.0.0")

        self.issuer = f"http://localhost:{port}/oidc"
        self.client_id = client_id
        self.audience = audience
        self.default_scope = default_scope
        self.token_lifetime = token_lifetime

        # PAT -> subject
        self.personal_access_tokens: Dict[str, str] = {
            "pat_test_token": "user-42",
        }

        self._rotations = 0
        self.signing_key = generate_rsa_key_pair(kid="logto-key-0")
        self.published_keys: List[SigningKeyPair] = [self.signing_key]

        self._setup_routes()

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}/jwks"

    @property
    def jwks(self) -> Dict[str, Any]:
        return build_jwks(self.published_keys)

    def add_personal_access_token(self, pat: str, subject: str) -> None:
        self.personal_access_tokens[pat] = subject

    def rotate_key(self, *, keep_previous: bool = False) -> SigningKeyPair:
        """Start signing with a new key and publish it."""
        self._rotations += 1
        new_key = generate_rsa_key_pair(kid=f"logto-key-{self._rotations}")
        self.published_keys = ([*self.published_keys] if keep_previous else []) + [new_key]
        self.signing_key = new_key
        self.logger.info("Rotated signing key", kid=new_key.kid, published=[k.kid for k in self.published_keys])
        return new_key

    def issue_token(self, subject: str, scope: Optional[str] = None, audience: Optional[str] = None) -> str:
        """Sign an access token with the current signing key."""
        generator = MockTokenGenerator(self.signing_key, issuer=self.issuer, audience=audience or self.audience)
        return generator.generate_access_token(
            subject=subject,
            scope=scope if scope is not None else self.default_scope,
            expires_in=self.token_lifetime,
            client_id=self.client_id,
        )

    def _setup_routes(self):
        """Set up mock Logto routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": "mock-logto",
                "message": "Mock Logto tenant for the Access Gateway",
                "version": "1.0.0",
                "issuer": self.issuer,
            }

        @self.app.get("/oidc/.well-known/openid-configuration")
        async def openid_configuration():
            """OpenID Connect discovery document."""
            return {
                "issuer": self.issuer,
                "jwks_uri": self.jwks_url,
                "token_endpoint": f"{self.issuer}/token",
                "grant_types_supported": [TOKEN_EXCHANGE_GRANT_TYPE, "client_credentials"],
                "token_endpoint_auth_methods_supported": ["none", "client_secret_basic", "client_secret_post"],
                "id_token_signing_alg_values_supported": sorted({k.algorithm for k in self.published_keys}),
            }

        @self.app.get("/oidc/jwks")
        async def jwks_endpoint():
            """JWKS endpoint."""
            return self.jwks

        @self.app.post("/oidc/token")
        async def token_endpoint(
            grant_type: str = Form(...),
            client_id: str = Form(...),
            subject_token: Optional[str] = Form(None),
            subject_token_type: Optional[str] = Form(None),
            scope: Optional[str] = Form(None),
            resource: Optional[str] = Form(None),
            authorization: Optional[str] = Header(None),
        ):
            """Token exchange endpoint for personal access tokens."""
            if grant_type != TOKEN_EXCHANGE_GRANT_TYPE:
                return _oauth_error(400, "unsupported_grant_type", "Only token exchange is supported")
            if client_id != self.client_id:
                return _oauth_error(401, "invalid_client", "Unknown client")
            if subject_token_type != PAT_TOKEN_TYPE:
                return _oauth_error(400, "invalid_request", "Unsupported subject_token_type")

            subject = self.personal_access_tokens.get(subject_token or "")
            if subject is None:
                self.logger.warning("Rejected unknown personal access token", client_id=client_id)
                return JSONResponse(status_code=400, content={"error": "invalid_grant"})

            granted_scope = scope or self.default_scope
            self.logger.info(
                "Issued access token",
                subject=subject,
                scope=granted_scope,
                client_authenticated=authorization is not None,
            )
            return {
                "access_token": self.issue_token(subject, granted_scope, resource),
                "issued_token_type": ACCESS_TOKEN_TYPE,
                "token_type": "Bearer",
                "expires_in": self.token_lifetime,
                "scope": granted_scope,
            }


def _oauth_error(status_code: int, error: str, description: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "error_description": description})


def create_app():
    """Create mock Logto application."""
    server = MockLogtoServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=3001)
