"""
Unit tests for the token exchange client.
"""

import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from pat_cli.app.adapters import (
    ClientAuthMethod,
    ExchangeRequest,
    TokenExchangeClient,
)
from pat_cli.app.adapters.token_exchange_client import PAT_TOKEN_TYPE, TOKEN_EXCHANGE_GRANT_TYPE
from shared.errors import ExchangeResponseError, ExchangeStatusError, ExchangeTransportError

TOKEN_RESPONSE = {
    "access_token": "eyJhbGciOiJSUzI1NiJ9.payload.signature",
    "issued_token_type": "urn:ietf:params:oauth:token-type:access_token",
    "token_type": "Bearer",
    "expires_in": 3600,
    "scope": "read:generic_data",
}


class RecordingTokenEndpoint:
    """Mock token endpoint recording the requests it receives."""

    def __init__(self, status_code=200, content=None):
        self.status_code = status_code
        self.content = json.dumps(TOKEN_RESPONSE) if content is None else content
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.content)

    @property
    def form(self):
        body = parse_qs(self.requests[-1].content.decode("utf-8"))
        return {key: values[0] for key, values in body.items()}


class TestExchangeRequest:
    """Test cases for ExchangeRequest."""

    def test_token_endpoint_normalizes_trailing_slash(self):
        """Test a trailing slash on the tenant URL is dropped."""
        request = ExchangeRequest(tenant_url="https://tenant.logto.app/", client_id="cli", subject_token="pat")

        assert request.token_endpoint == "https://tenant.logto.app/oidc/token"

    def test_form_data_omits_empty_optional_fields(self):
        """Test scope and resource are only sent when set."""
        request = ExchangeRequest(
            tenant_url="https://tenant.logto.app",
            client_id="cli",
            subject_token="pat",
            scope="",
        )

        assert request.form_data() == {
            "grant_type": TOKEN_EXCHANGE_GRANT_TYPE,
            "subject_token": "pat",
            "subject_token_type": PAT_TOKEN_TYPE,
            "client_id": "cli",
        }

    def test_auth_method_defaults(self):
        """Test the secret selects basic auth unless configured otherwise."""
        public = ExchangeRequest(tenant_url="https://t", client_id="cli", subject_token="pat")
        confidential = ExchangeRequest(tenant_url="https://t", client_id="cli", subject_token="pat",
                                       client_secret="s3cret")

        assert public.effective_auth_method is ClientAuthMethod.NONE
        assert confidential.effective_auth_method is ClientAuthMethod.CLIENT_SECRET_BASIC


class TestTokenExchangeClient:
    """Test cases for TokenExchangeClient."""

    @pytest.fixture
    def exchange_request(self):
        """Exchange request for a public client."""
        return ExchangeRequest(
            tenant_url="https://tenant.logto.app/",
            client_id="playground-cli",
            subject_token="pat_abc123",
            scope="read:generic_data",
            resource="https://api.example.com",
        )

    def _client(self, endpoint):
        return TokenExchangeClient(client=httpx.AsyncClient(transport=httpx.MockTransport(endpoint)))

    @pytest.mark.asyncio
    async def test_exchange_success(self, exchange_request):
        """Test a successful exchange posts the expected form."""
        endpoint = RecordingTokenEndpoint()

        response = await self._client(endpoint).exchange(exchange_request)

        assert response.access_token == TOKEN_RESPONSE["access_token"]
        assert response.token_type == "Bearer"
        assert response.expires_in == 3600
        assert len(endpoint.requests) == 1
        sent = endpoint.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == "https://tenant.logto.app/oidc/token"
        assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert sent.headers["Accept"] == "application/json"
        assert "Authorization" not in sent.headers
        assert endpoint.form == {
            "grant_type": TOKEN_EXCHANGE_GRANT_TYPE,
            "subject_token": "pat_abc123",
            "subject_token_type": PAT_TOKEN_TYPE,
            "client_id": "playground-cli",
            "scope": "read:generic_data",
            "resource": "https://api.example.com",
        }

    @pytest.mark.asyncio
    async def test_exchange_rejected_preserves_body(self, exchange_request):
        """Test a 400 response surfaces its status and verbatim body."""
        endpoint = RecordingTokenEndpoint(status_code=400, content='{"error":"invalid_grant"}')

        with pytest.raises(ExchangeStatusError) as exc_info:
            await self._client(endpoint).exchange(exchange_request)

        assert exc_info.value.response_status == 400
        assert exc_info.value.body == '{"error":"invalid_grant"}'
        assert len(endpoint.requests) == 1

    @pytest.mark.asyncio
    async def test_exchange_server_error_not_retried(self, exchange_request):
        """Test a 5xx response fails after a single request."""
        endpoint = RecordingTokenEndpoint(status_code=503, content="upstream unavailable")

        with pytest.raises(ExchangeStatusError) as exc_info:
            await self._client(endpoint).exchange(exchange_request)

        assert exc_info.value.response_status == 503
        assert len(endpoint.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["not json", '{"access_token": "x"}', "[]"])
    async def test_exchange_malformed_success_body(self, exchange_request, content):
        """Test a 2xx body that is not a token response."""
        endpoint = RecordingTokenEndpoint(content=content)

        with pytest.raises(ExchangeResponseError) as exc_info:
            await self._client(endpoint).exchange(exchange_request)

        assert exc_info.value.body == content

    @pytest.mark.asyncio
    async def test_exchange_transport_error(self, exchange_request):
        """Test connection failures are reported as transport errors."""
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExchangeTransportError):
            await self._client(refuse).exchange(exchange_request)

    @pytest.mark.asyncio
    async def test_client_secret_basic(self, exchange_request):
        """Test client_secret_basic sends HTTP basic credentials."""
        endpoint = RecordingTokenEndpoint()
        request = exchange_request.model_copy(update={"client_secret": "s3cret"})

        await self._client(endpoint).exchange(request)

        expected = base64.b64encode(b"playground-cli:s3cret").decode("ascii")
        assert endpoint.requests[0].headers["Authorization"] == f"Basic {expected}"
        assert "client_secret" not in endpoint.form

    @pytest.mark.asyncio
    async def test_client_secret_post(self, exchange_request):
        """Test client_secret_post puts the secret in the form body."""
        endpoint = RecordingTokenEndpoint()
        request = exchange_request.model_copy(
            update={"client_secret": "s3cret", "client_auth_method": ClientAuthMethod.CLIENT_SECRET_POST}
        )

        await self._client(endpoint).exchange(request)

        assert "Authorization" not in endpoint.requests[0].headers
        assert endpoint.form["client_secret"] == "s3cret"
