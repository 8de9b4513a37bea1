#!/usr/bin/env python3
"""Unit tests for the BPDM HTTP client.

Tests cover:
    - HTTP status to exception mapping
    - Retry behaviour for 401, 429, 5xx and network errors
    - POST is not resent after a 5xx or network error
    - Headers and context manager usage
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.bpdm.api.client import BPDMClient
from src.bpdm.api.exceptions import (
    APIError,
    ConfigurationError,
    ConnectionError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TokenExpiredError,
    ValidationError,
)


@pytest.fixture
def client():
    return BPDMClient("https://gate.example.com/", name="gate", max_retries=3)


# ============================================
# Construction
# ============================================

class TestClientInit:
    """Test client construction."""

    def test_trailing_slash_stripped(self, client):
        assert client.base_url == "https://gate.example.com"

    def test_missing_base_url_raises(self):
        with pytest.raises(ConfigurationError, match="pool"):
            BPDMClient("", name="pool")

    @pytest.mark.asyncio
    async def test_request_outside_context_manager(self, client):
        with pytest.raises(RuntimeError, match="async context manager"):
            await client._request("GET", "/members/changelog/search")


# ============================================
# Error Mapping
# ============================================

class TestCreateApiError:
    """Test mapping of HTTP status codes to exceptions."""

    def test_401(self, client):
        error = client._create_api_error(401, "GET", "/x", "")
        assert isinstance(error, TokenExpiredError)

    def test_404(self, client):
        error = client._create_api_error(404, "GET", "/x", "not here")
        assert isinstance(error, NotFoundError)
        assert error.status_code == 404

    def test_429_reads_retry_after(self, client):
        error = client._create_api_error(429, "POST", "/x", "", retry_after="7")
        assert isinstance(error, RateLimitError)
        assert error.retry_after == 7

    def test_429_defaults_to_sixty_seconds(self, client):
        error = client._create_api_error(429, "POST", "/x", "", retry_after=None)
        assert error.retry_after == 60

    @pytest.mark.parametrize("status", [400, 422])
    def test_validation(self, client, status):
        error = client._create_api_error(status, "PUT", "/x", "{}")
        assert isinstance(error, ValidationError)
        assert error.status_code == status

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_server_error(self, client, status):
        error = client._create_api_error(status, "GET", "/x", "")
        assert isinstance(error, ServerError)
        assert error.status_code == status

    def test_other_status_is_plain_api_error(self, client):
        error = client._create_api_error(409, "POST", "/x", "conflict")
        assert type(error) is APIError
        assert error.response_body == "conflict"


# ============================================
# Retry Logic
# ============================================

class TestRequestWithRetry:
    """Test _request_with_retry on top of a mocked _request."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, client):
        with patch.object(client, "_request", AsyncMock(return_value={"ok": True})) as mock_request:
            result = await client.get("/members/legal-entities/search", params=[("page", 0)])

        assert result == {"ok": True}
        mock_request.assert_awaited_once_with(
            "GET", "/members/legal-entities/search", [("page", 0)], None
        )

    @pytest.mark.asyncio
    async def test_server_error_backoff(self, client):
        side_effects = [ServerError(status_code=503), ServerError(status_code=502), {"ok": True}]

        with patch.object(client, "_request", AsyncMock(side_effect=side_effects)), \
                patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await client.put("/api/catena/sharing-state", json_body=[])

        assert result == {"ok": True}
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, client):
        mock_request = AsyncMock(side_effect=ServerError(status_code=500))

        with patch.object(client, "_request", mock_request), \
                patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ServerError):
                await client.get("/x")

        assert mock_request.await_count == 3

    @pytest.mark.asyncio
    async def test_network_error_retried(self, client):
        side_effects = [ConnectionError("refused", host="gate"), {"ok": True}]

        with patch.object(client, "_request", AsyncMock(side_effect=side_effects)), \
                patch("asyncio.sleep", new_callable=AsyncMock):
            assert await client.get("/x") == {"ok": True}

    @pytest.mark.asyncio
    async def test_post_server_error_sent_once(self, client):
        mock_request = AsyncMock(side_effect=[ServerError(status_code=503), {"ok": True}])

        with patch.object(client, "_request", mock_request), \
                patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ServerError):
                await client.post("/api/catena/legal-entities", json_body=[{"index": "le-1"}])

        assert mock_request.await_count == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_post_network_error_sent_once(self, client):
        mock_request = AsyncMock(side_effect=ConnectionError("reset", host="pool"))

        with patch.object(client, "_request", mock_request):
            with pytest.raises(ConnectionError):
                await client.post("/api/catena/sites", json_body=[])

        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_post_retried_after_token_refresh(self):
        token_manager = MagicMock()
        client = BPDMClient("https://pool.example.com", token_manager=token_manager, name="pool")
        mock_request = AsyncMock(side_effect=[TokenExpiredError(), {"ok": True}])

        with patch.object(client, "_request", mock_request):
            assert await client.post("/api/catena/addresses", json_body=[]) == {"ok": True}

        assert mock_request.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self, client):
        side_effects = [RateLimitError("slow down", retry_after=5), {"ok": True}]

        with patch.object(client, "_request", AsyncMock(side_effect=side_effects)), \
                patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await client.get("/x")

        mock_sleep.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self, client):
        mock_request = AsyncMock(side_effect=ValidationError("bad", status_code=400))

        with patch.object(client, "_request", mock_request):
            with pytest.raises(ValidationError):
                await client.put("/input/legal-entities", json_body=[])

        assert mock_request.await_count == 1

    @pytest.mark.asyncio
    async def test_401_invalidates_token(self):
        token_manager = MagicMock()
        client = BPDMClient("https://pool.example.com", token_manager=token_manager, name="pool")
        side_effects = [TokenExpiredError(), {"ok": True}]

        with patch.object(client, "_request", AsyncMock(side_effect=side_effects)):
            assert await client.get("/x") == {"ok": True}

        token_manager.invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_401_without_token_manager_raises(self, client):
        with patch.object(client, "_request", AsyncMock(side_effect=TokenExpiredError())):
            with pytest.raises(TokenExpiredError):
                await client.get("/x")


# ============================================
# Headers
# ============================================

class TestHeaders:
    """Test request headers."""

    @pytest.mark.asyncio
    async def test_no_authorization_without_token_manager(self, client):
        headers = await client._get_headers()
        assert "Authorization" not in headers
        assert headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_bearer_token(self):
        token_manager = MagicMock()
        token_manager.get_token = AsyncMock(return_value="abc")
        client = BPDMClient("https://pool.example.com", token_manager=token_manager)

        headers = await client._get_headers()

        assert headers["Authorization"] == "Bearer abc"
