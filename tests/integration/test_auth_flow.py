"""
Integration tests for the PAT exchange -> gateway authorization flow.
"""

import httpx
import pytest
import pytest_asyncio

from mocks.logto.server import MockLogtoServer
from pat_cli.app.adapters import ExchangeRequest, TokenExchangeClient
from service_gateway.app.main import GatewayService
from shared.config import load_gateway_config


class TestAuthFlow:
    """Integration tests for the complete auth flow against a mock Logto tenant."""

    @pytest.fixture
    def logto(self):
        """Mock Logto tenant."""
        return MockLogtoServer()

    @pytest.fixture
    def logto_transport(self, logto):
        """In-process transport to the mock tenant."""
        return httpx.ASGITransport(app=logto.app)

    @pytest_asyncio.fixture
    async def gateway(self, logto, logto_transport):
        """Started gateway trusting the mock tenant."""
        config = load_gateway_config(
            env="test",
            log_level="warning",
            issuer_url=logto.issuer,
            audience=logto.audience,
            jwks_url=logto.jwks_url,
            jwks_refresh_interval=0,
        )
        service = GatewayService(config, http_client=httpx.AsyncClient(transport=logto_transport))
        await service.startup()
        yield service
        await service.shutdown()

    @pytest_asyncio.fixture
    async def gateway_client(self, gateway):
        """HTTP client for the gateway app."""
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=gateway.app), base_url="http://gateway") as client:
            yield client

    async def _exchange(self, logto, logto_transport, scope=None, pat="pat_test_token"):
        client = TokenExchangeClient(client=httpx.AsyncClient(transport=logto_transport))
        request = ExchangeRequest(
            tenant_url=f"http://localhost:{logto.port}",
            client_id=logto.client_id,
            subject_token=pat,
            scope=scope,
            resource=logto.audience,
        )
        return await client.exchange(request)

    @pytest.mark.asyncio
    async def test_exchanged_token_reaches_protected_resource(self, logto, logto_transport, gateway_client):
        """Test a PAT-derived token with the data scope is accepted."""
        token = await self._exchange(logto, logto_transport)

        response = await gateway_client.get("/api/data", headers={"Authorization": f"Bearer {token.access_token}"})

        assert response.status_code == 200
        data = response.json()
        assert data["subject"] == "user-42"
        assert data["scopes"] == "read:generic_data"

    @pytest.mark.asyncio
    async def test_token_without_data_scope_is_forbidden(self, logto, logto_transport, gateway_client):
        """Test a valid token lacking read:generic_data gets 403."""
        token = await self._exchange(logto, logto_transport, scope="read:data")

        response = await gateway_client.get("/api/data", headers={"Authorization": f"Bearer {token.access_token}"})

        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden: insufficient scope. Requires 'read:generic_data'"}

    @pytest.mark.asyncio
    async def test_key_rotation_is_picked_up(self, logto, logto_transport, gateway, gateway_client):
        """Test tokens signed by a rotated key verify after one refresh."""
        old_token = await self._exchange(logto, logto_transport)
        logto.rotate_key()
        new_token = await self._exchange(logto, logto_transport)

        accepted = await gateway_client.get(
            "/api/data", headers={"Authorization": f"Bearer {new_token.access_token}"}
        )
        rejected = await gateway_client.get(
            "/api/data", headers={"Authorization": f"Bearer {old_token.access_token}"}
        )

        assert accepted.status_code == 200
        assert rejected.status_code == 401
        assert gateway.key_resolver.key_set.kids() == frozenset({logto.signing_key.kid})

    @pytest.mark.asyncio
    async def test_token_for_other_audience_rejected(self, logto, gateway_client):
        """Test a token minted for another API is unauthorized."""
        token = logto.issue_token("user-42", "read:generic_data", audience="https://other.example.com")

        response = await gateway_client.get("/api/data", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}
