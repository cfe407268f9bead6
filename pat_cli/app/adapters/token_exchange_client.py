"""
OAuth 2.0 token exchange client for Logto personal access tokens.
"""

from enum import Enum
from typing import Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from shared.errors import ExchangeResponseError, ExchangeStatusError, ExchangeTransportError
from shared.logging import get_logger

TOKEN_EXCHANGE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:token-exchange"
PAT_TOKEN_TYPE = "urn:logto:token-type:personal_access_token"
TOKEN_ENDPOINT_PATH = "/oidc/token"


class ClientAuthMethod(str, Enum):
    """How the client secret, if any, is presented to the token endpoint."""

    NONE = "none"
    CLIENT_SECRET_BASIC = "client_secret_basic"
    CLIENT_SECRET_POST = "client_secret_post"


class ExchangeRequest(BaseModel):
    """Parameters of one PAT -> access token exchange."""

    model_config = ConfigDict(frozen=True)

    tenant_url: str
    client_id: str
    subject_token: str
    subject_token_type: str = PAT_TOKEN_TYPE
    grant_type: str = TOKEN_EXCHANGE_GRANT_TYPE
    scope: Optional[str] = None
    resource: Optional[str] = None
    client_secret: Optional[str] = None
    client_auth_method: Optional[ClientAuthMethod] = None

    @property
    def token_endpoint(self) -> str:
        return self.tenant_url.rstrip("/") + TOKEN_ENDPOINT_PATH

    @property
    def effective_auth_method(self) -> ClientAuthMethod:
        if not self.client_secret:
            return ClientAuthMethod.NONE
        return self.client_auth_method or ClientAuthMethod.CLIENT_SECRET_BASIC

    def form_data(self) -> Dict[str, str]:
        """Form fields for the token endpoint POST body."""
        data = {
            "grant_type": self.grant_type,
            "subject_token": self.subject_token,
            "subject_token_type": self.subject_token_type,
            "client_id": self.client_id,
        }
        if self.scope:
            data["scope"] = self.scope
        if self.resource:
            data["resource"] = self.resource
        if self.effective_auth_method is ClientAuthMethod.CLIENT_SECRET_POST:
            data["client_secret"] = self.client_secret
        return data


class ExchangeResponse(BaseModel):
    """Token endpoint response for a successful exchange."""

    access_token: str
    issued_token_type: str
    token_type: str
    expires_in: int
    scope: Optional[str] = None


class TokenExchangeClient:
    """Client for the identity provider's token endpoint.

    Each ``exchange`` call performs exactly one HTTP round trip: no retries,
    no caching of the issued token.
    """

    def __init__(self, *, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client
        self.logger = get_logger("cli.token_exchange")

    async def exchange(self, request: ExchangeRequest) -> ExchangeResponse:
        """Trade the request's personal access token for an access token.

        Raises:
            ExchangeStatusError: the endpoint answered with a non-2xx status.
            ExchangeResponseError: the 2xx body is not a token response.
            ExchangeTransportError: the endpoint could not be reached.
        """
        if self._client is not None:
            response = await self._post(self._client, request)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await self._post(client, request)

        body = response.text
        if not response.is_success:
            self.logger.warning(
                "Token exchange rejected",
                status_code=response.status_code,
                token_endpoint=request.token_endpoint,
            )
            raise ExchangeStatusError(response.status_code, body)

        try:
            token_response = ExchangeResponse.model_validate(response.json())
        except ValidationError as exc:
            raise ExchangeResponseError(body, str(exc)) from exc
        except ValueError as exc:
            raise ExchangeResponseError(body, "body is not valid JSON") from exc

        self.logger.info(
            "Token exchange succeeded",
            token_type=token_response.token_type,
            expires_in=token_response.expires_in,
        )
        return token_response

    async def _post(self, client: httpx.AsyncClient, request: ExchangeRequest) -> httpx.Response:
        auth = None
        if request.effective_auth_method is ClientAuthMethod.CLIENT_SECRET_BASIC:
            auth = httpx.BasicAuth(request.client_id, request.client_secret)

        try:
            return await client.post(
                request.token_endpoint,
                data=request.form_data(),
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                auth=auth,
            )
        except httpx.HTTPError as exc:
            self.logger.error("Token endpoint unreachable", token_endpoint=request.token_endpoint, error=str(exc))
            raise ExchangeTransportError(str(exc)) from exc
