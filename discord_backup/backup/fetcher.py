"""HTTP access to attachments and linked resources.

Unlike DiscordClient this talks to arbitrary hosts (the Discord CDN and
whatever users link to), sends no credentials, follows redirects and never
retries: a failed resource is simply skipped by the harvester.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from discord_backup.backup.errors import DownloadFailed

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; discord-backup/1.0)"
CHUNK_SIZE = 1 << 16

# Servers that refuse HEAD answer with one of these; fall back to GET
HEAD_UNSUPPORTED = (405, 501)


@dataclass(frozen=True)
class ResourceMetadata:
    """Response metadata of a resource, without its body."""

    final_url: str
    status_code: int
    content_type: str | None


class ResourceFetcher:
    """Async fetcher for resource metadata lookups and downloads."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "ResourceFetcher":
        self._client = httpx.AsyncClient(
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Fetcher not initialized. Use async with.")
        return self._client

    async def fetch_metadata(self, url: str) -> ResourceMetadata:
        """Fetch response headers of *url* with HEAD, or a body-less GET.

        Raises:
            httpx.HTTPError: On transport failures and non-success statuses
        """
        response = await self.client.head(url)
        if response.status_code in HEAD_UNSUPPORTED:
            async with self.client.stream("GET", url) as response:
                # Leaving the block without reading closes the connection
                response.raise_for_status()
                return _metadata(response)

        response.raise_for_status()
        return _metadata(response)

    async def download_to(
        self,
        url: str,
        path: Path,
        max_bytes: int | None = None,
    ) -> int:
        """Stream *url* into *path*.

        A partially written file is removed on failure.

        Returns:
            Number of bytes written

        Raises:
            DownloadFailed: On any HTTP, size-limit or filesystem failure
        """
        written = 0
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                with open(path, "wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        written += len(chunk)
                        if max_bytes is not None and written > max_bytes:
                            raise DownloadFailed(url, f"larger than {max_bytes:,} bytes")
                        f.write(chunk)
        except DownloadFailed:
            path.unlink(missing_ok=True)
            raise
        except (httpx.HTTPError, OSError) as e:
            path.unlink(missing_ok=True)
            raise DownloadFailed(url, e) from e
        return written


def _metadata(response: httpx.Response) -> ResourceMetadata:
    return ResourceMetadata(
        final_url=str(response.url),
        status_code=response.status_code,
        content_type=response.headers.get("Content-Type"),
    )
