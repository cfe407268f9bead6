"""
Integration tests for the CLI token exchange against a mock Logto tenant.
"""

import io
import json

import httpx
import pytest
import yaml

from mocks.logto.server import MockLogtoServer
from pat_cli.app.adapters import ExchangeRequest, TokenExchangeClient
from pat_cli.app.config_store import PAT_ENV_VAR
from pat_cli.app.main import deploy_test
from shared.errors import ExchangeStatusError


class TestExchangeFlow:
    """Integration tests for PAT exchange."""

    @pytest.fixture
    def logto(self):
        """Mock Logto tenant."""
        return MockLogtoServer()

    @pytest.fixture
    def exchange_client(self, logto):
        """Exchange client talking to the mock tenant in-process."""
        return TokenExchangeClient(client=httpx.AsyncClient(transport=httpx.ASGITransport(app=logto.app)))

    def _request(self, logto, pat):
        return ExchangeRequest(
            tenant_url=f"http://localhost:{logto.port}/",
            client_id=logto.client_id,
            subject_token=pat,
        )

    @pytest.mark.asyncio
    async def test_known_pat_is_exchanged(self, logto, exchange_client):
        """Test a registered PAT yields a bearer access token."""
        response = await exchange_client.exchange(self._request(logto, "pat_test_token"))

        assert response.token_type == "Bearer"
        assert response.expires_in == logto.token_lifetime
        assert response.scope == logto.default_scope
        assert response.access_token.count(".") == 2

    @pytest.mark.asyncio
    async def test_unknown_pat_is_rejected(self, logto, exchange_client):
        """Test the tenant's error body is surfaced verbatim."""
        with pytest.raises(ExchangeStatusError) as exc_info:
            await exchange_client.exchange(self._request(logto, "pat_revoked"))

        assert exc_info.value.response_status == 400
        assert exc_info.value.body == '{"error":"invalid_grant"}'

    @pytest.mark.asyncio
    async def test_unknown_client_is_rejected(self, logto, exchange_client):
        """Test a client id the tenant does not know."""
        request = self._request(logto, "pat_test_token").model_copy(update={"client_id": "someone-else"})

        with pytest.raises(ExchangeStatusError) as exc_info:
            await exchange_client.exchange(request)

        assert exc_info.value.response_status == 401
        assert json.loads(exc_info.value.body)["error"] == "invalid_client"

    def test_deploy_test_command(self, logto, exchange_client, tmp_path, monkeypatch):
        """Test the CLI command end to end with a config file."""
        monkeypatch.delenv(PAT_ENV_VAR, raising=False)
        logto.add_personal_access_token("pat_from_file", "user-7")
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({
            "pat": "pat_from_file",
            "logto": {"tenant_url": f"http://localhost:{logto.port}", "client_id": logto.client_id},
        }))
        out, err = io.StringIO(), io.StringIO()

        assert deploy_test(config_path, exchange_client, out=out, err=err) == 0

        token = json.loads(out.getvalue().split("\n", 1)[1])
        assert token["token_type"] == "Bearer"
