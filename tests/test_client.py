"""Unit tests for discord_backup.backup.client."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from discord_backup.backup.client import (
    INITIAL_BACKOFF,
    MAX_BACKOFF,
    MAX_RATE_LIMIT_RETRIES,
    MAX_RETRIES,
    DiscordAPIError,
    DiscordClient,
)


def _make_response(
    status_code: int,
    json_data: dict | list | None = None,
    text: str = "",
    headers: dict | None = None,
) -> MagicMock:
    """Build a mock httpx.Response."""
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status_code
    resp.text = text
    resp.headers = headers or {}
    if json_data is not None:
        resp.json.return_value = json_data
    else:
        resp.json.side_effect = ValueError("No JSON")
    return resp


def _make_client() -> DiscordClient:
    """Create a DiscordClient with a mocked HTTP layer."""
    client = DiscordClient(token="Bot test-token", user_agent="test-agent")
    client._client = AsyncMock(spec=httpx.AsyncClient)
    return client


# ---------------------------------------------------------------------------
# TestRequest
# ---------------------------------------------------------------------------


class TestRequest:
    """Tests for DiscordClient._request."""

    @pytest.mark.asyncio
    async def test_200_returns_json(self):
        client = _make_client()
        client._client.request.return_value = _make_response(200, {"id": "1"})

        result = await client._request("GET", "/test")

        assert result == {"id": "1"}

    @pytest.mark.asyncio
    async def test_204_returns_none(self):
        client = _make_client()
        client._client.request.return_value = _make_response(204)

        assert await client._request("GET", "/test") is None

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_429_sleeps_retry_after_then_retries(self, mock_sleep):
        client = _make_client()
        client._client.request.side_effect = [
            _make_response(429, headers={"Retry-After": "2.5"}),
            _make_response(200, {"ok": True}),
        ]

        result = await client._request("GET", "/test")

        assert result == {"ok": True}
        mock_sleep.assert_awaited_once_with(2.5)

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_429_does_not_consume_retry_attempts(self, mock_sleep):
        client = _make_client()
        rate_resp = _make_response(429, headers={"Retry-After": "0.5"})
        client._client.request.side_effect = (
            [rate_resp] * (MAX_RETRIES + 5) + [_make_response(200, {"ok": True})]
        )

        result = await client._request("GET", "/test")

        assert result == {"ok": True}
        assert mock_sleep.await_count == MAX_RETRIES + 5

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_endless_429_gives_up(self, mock_sleep):
        client = _make_client()
        client._client.request.return_value = _make_response(
            429, headers={"Retry-After": "0.1"}
        )

        with pytest.raises(DiscordAPIError) as exc_info:
            await client._request("GET", "/test")

        assert exc_info.value.status_code == 429
        assert mock_sleep.await_count == MAX_RATE_LIMIT_RETRIES

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 404])
    async def test_client_errors_raise_immediately(self, status):
        client = _make_client()
        client._client.request.return_value = _make_response(status, text="nope")

        with pytest.raises(DiscordAPIError) as exc_info:
            await client._request("GET", "/test")

        assert exc_info.value.status_code == status
        assert client._client.request.await_count == 1

    @pytest.mark.asyncio
    async def test_error_uses_json_message(self):
        client = _make_client()
        client._client.request.return_value = _make_response(
            403, json_data={"message": "Missing Access"}, text="Forbidden"
        )

        with pytest.raises(DiscordAPIError) as exc_info:
            await client._request("GET", "/test")

        assert exc_info.value.message == "Missing Access"

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_5xx_retries_then_succeeds(self, mock_sleep):
        client = _make_client()
        client._client.request.side_effect = [
            _make_response(500, text="Internal Server Error"),
            _make_response(200, {"ok": True}),
        ]

        result = await client._request("GET", "/test")

        assert result == {"ok": True}
        mock_sleep.assert_awaited_once_with(INITIAL_BACKOFF)

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_5xx_exhausts_retries_raises(self, mock_sleep):
        client = _make_client()
        client._client.request.return_value = _make_response(502, text="Bad Gateway")

        with pytest.raises(DiscordAPIError) as exc_info:
            await client._request("GET", "/test")

        assert exc_info.value.status_code == 502
        assert client._client.request.await_count == MAX_RETRIES + 1

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_timeout_retries_then_succeeds(self, mock_sleep):
        client = _make_client()
        client._client.request.side_effect = [
            httpx.TimeoutException("timeout"),
            _make_response(200, {"ok": True}),
        ]

        result = await client._request("GET", "/test")

        assert result == {"ok": True}
        mock_sleep.assert_awaited_once_with(INITIAL_BACKOFF)

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_transport_error_exhausts_retries_raises(self, mock_sleep):
        client = _make_client()
        client._client.request.side_effect = httpx.TransportError("connection reset")

        with pytest.raises(httpx.TransportError):
            await client._request("GET", "/test")

        assert client._client.request.await_count == MAX_RETRIES + 1

    @pytest.mark.asyncio
    async def test_client_none_raises_runtime_error(self):
        client = DiscordClient(token="t", user_agent="u")

        with pytest.raises(RuntimeError, match="Client not initialized"):
            await client._request("GET", "/test")

    @pytest.mark.asyncio
    @patch("discord_backup.backup.client.asyncio.sleep", new_callable=AsyncMock)
    async def test_backoff_doubles_and_caps(self, mock_sleep):
        client = _make_client()
        client._client.request.side_effect = (
            [_make_response(500, text="error")] * MAX_RETRIES
            + [_make_response(200, {"ok": True})]
        )

        await client._request("GET", "/test")

        sleep_values = [call.args[0] for call in mock_sleep.await_args_list]
        expected = INITIAL_BACKOFF
        for val in sleep_values:
            assert val == expected
            expected = min(expected * 2, MAX_BACKOFF)


# ---------------------------------------------------------------------------
# TestGetMessages
# ---------------------------------------------------------------------------


class TestGetMessages:
    """Tests for DiscordClient.get_messages."""

    @pytest.mark.asyncio
    async def test_clamps_limit_to_100(self):
        client = _make_client()
        client._client.request.return_value = _make_response(200, [])

        await client.get_messages(channel_id=1, limit=200)

        _, kwargs = client._client.request.call_args
        assert kwargs["params"]["limit"] == 100

    @pytest.mark.asyncio
    async def test_passes_before_param(self):
        client = _make_client()
        client._client.request.return_value = _make_response(200, [])

        await client.get_messages(channel_id=1, before=999)

        args, kwargs = client._client.request.call_args
        assert args == ("GET", "/channels/1/messages")
        assert kwargs["params"]["before"] == 999

    @pytest.mark.asyncio
    async def test_omits_before_on_first_page(self):
        client = _make_client()
        client._client.request.return_value = _make_response(200, [])

        await client.get_messages(channel_id=1)

        _, kwargs = client._client.request.call_args
        assert "before" not in kwargs["params"]


# ---------------------------------------------------------------------------
# TestGuildEndpoints
# ---------------------------------------------------------------------------


class TestGuildEndpoints:
    """Tests for the guild discovery endpoints."""

    @pytest.mark.asyncio
    async def test_get_guild_path(self):
        client = _make_client()
        client._client.request.return_value = _make_response(
            200, {"id": "123", "name": "Test"}
        )

        result = await client.get_guild(123)

        assert result == {"id": "123", "name": "Test"}
        args, _ = client._client.request.call_args
        assert args == ("GET", "/guilds/123")

    @pytest.mark.asyncio
    async def test_get_active_threads_unwraps_list(self):
        client = _make_client()
        client._client.request.return_value = _make_response(
            200, {"threads": [{"id": "9"}], "members": []}
        )

        threads = await client.get_active_threads(123)

        assert threads == [{"id": "9"}]
        args, _ = client._client.request.call_args
        assert args == ("GET", "/guilds/123/threads/active")


# ---------------------------------------------------------------------------
# TestDiscordAPIError
# ---------------------------------------------------------------------------


class TestDiscordAPIError:
    def test_stores_fields(self):
        err = DiscordAPIError(404, "Not Found")
        assert err.status_code == 404
        assert err.message == "Not Found"
        assert "404" in str(err)
