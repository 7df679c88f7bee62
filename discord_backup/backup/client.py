"""Discord REST API client with rate limit handling.

This is the transport collaborator of the backup pipeline. Retry policy lives
here and only here:
- 429 responses wait for Retry-After (capped number of times)
- 5xx responses, timeouts and transport errors back off exponentially
- 401/403/404 fail immediately
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

from discord_backup.backup.logger import logger


BASE_URL = "https://discord.com/api/v10"

MAX_RETRIES = 5
MAX_RATE_LIMIT_RETRIES = 30
INITIAL_BACKOFF = 1.0  # seconds
MAX_BACKOFF = 64.0  # seconds

MESSAGES_PAGE_LIMIT = 100


class DiscordAPIError(Exception):
    """Raised when Discord API returns an error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Discord API error {status_code}: {message}")


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", response.text)
    except (ValueError, AttributeError):
        return response.text


@dataclass
class DiscordClient:
    """Async Discord REST API client.

    Usage:
        async with DiscordClient(token="Bot ...", user_agent="...") as client:
            guild = await client.get_guild(123)
    """

    token: str
    user_agent: str
    timeout: float = 30.0

    def __post_init__(self) -> None:
        self._client: httpx.AsyncClient | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": self.token,
            "User-Agent": self.user_agent,
            "Content-Type": "application/json",
        }

    async def __aenter__(self) -> "DiscordClient":
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            headers=self.headers,
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a request with rate limit and retry handling."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use async with.")

        backoff = INITIAL_BACKOFF
        rate_limit_retries = 0
        attempt = 0

        while True:
            try:
                response = await self._client.request(method, path, params=params)
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if attempt >= MAX_RETRIES:
                    raise
                attempt += 1
                reason = "timeout" if isinstance(e, httpx.TimeoutException) else str(e)
                logger.retry(attempt, MAX_RETRIES, backoff, reason)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)
                continue

            if response.status_code == 200:
                return response.json()

            if response.status_code == 204:
                return None

            # Rate limits don't count against the retry budget
            if response.status_code == 429:
                rate_limit_retries += 1
                if rate_limit_retries > MAX_RATE_LIMIT_RETRIES:
                    raise DiscordAPIError(429, "Max rate limit retries exceeded")
                retry_after = float(response.headers.get("Retry-After", 1.0))
                logger.rate_limit(retry_after)
                await asyncio.sleep(retry_after)
                continue

            if response.status_code >= 500 and attempt < MAX_RETRIES:
                attempt += 1
                logger.retry(
                    attempt, MAX_RETRIES, backoff, f"HTTP {response.status_code}"
                )
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)
                continue

            raise DiscordAPIError(response.status_code, _error_message(response))

    # -------------------------------------------------------------------------
    # Guild endpoints
    # -------------------------------------------------------------------------

    async def get_guild(self, guild_id: int) -> dict[str, Any]:
        """Fetch guild information."""
        return await self._request("GET", f"/guilds/{guild_id}")

    async def get_guild_channels(self, guild_id: int) -> list[dict[str, Any]]:
        """Fetch all channels in a guild (excludes threads)."""
        return await self._request("GET", f"/guilds/{guild_id}/channels")

    async def get_active_threads(self, guild_id: int) -> list[dict[str, Any]]:
        """Fetch the guild's active threads."""
        result = await self._request("GET", f"/guilds/{guild_id}/threads/active")
        return (result or {}).get("threads", [])

    # -------------------------------------------------------------------------
    # Channel endpoints
    # -------------------------------------------------------------------------

    async def get_channel(self, channel_id: int) -> dict[str, Any]:
        """Fetch a single channel (also used to resolve categories)."""
        return await self._request("GET", f"/channels/{channel_id}")

    async def get_messages(
        self,
        channel_id: int,
        limit: int = MESSAGES_PAGE_LIMIT,
        before: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch one page of messages, newest first.

        Args:
            channel_id: The channel to fetch from
            limit: Max messages to return (1-100)
            before: Only messages older than this message ID

        Returns:
            List of message objects, ordered by ID descending (newest first)
        """
        params: dict[str, Any] = {"limit": max(1, min(limit, MESSAGES_PAGE_LIMIT))}
        if before is not None:
            params["before"] = before
        return await self._request(
            "GET", f"/channels/{channel_id}/messages", params=params
        )
