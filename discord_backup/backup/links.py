"""Embedded link extraction and classification.

Only linked *documents* are archived. Whether a link is a document is decided
from the Content-Type the server declares, never from the URL's extension.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

import httpx

from discord_backup.backup.fetcher import ResourceFetcher
from discord_backup.backup.logger import logger

# Liberal URL matcher: scheme URLs, www-prefixed hosts and bare host/path forms
URL_PATTERN = re.compile(
    r"""(?i)\b((?:https?://|www\d{0,3}[.]|[a-z0-9.\-]+[.][a-z]{2,4}/)"""
    r"""(?:[^\s()<>]+|\(([^\s()<>]+|(\([^\s()<>]+\)))*\))+"""
    r"""(?:\(([^\s()<>]+|(\([^\s()<>]+\)))*\)|[^\s`!()\[\]{};:'".,<>?«»“”‘’]))"""
)
MEDIA_TYPE = re.compile(r"^[\w.+-]+/([\w.+-]+)$")


@dataclass(frozen=True)
class Accepted:
    """The link serves an archivable document."""

    final_url: str
    media_type: str


@dataclass(frozen=True)
class Rejected:
    """The link is not archived. This is an expected outcome, not an error."""

    url: str
    reason: str


Classification = Union[Accepted, Rejected]


def normalize_url(candidate: str) -> str | None:
    """Give scheme-less matches a scheme and validate the result.

    Returns:
        An absolute http(s) URL, or None if *candidate* isn't one
    """
    if not re.match(r"(?i)^https?://", candidate):
        candidate = f"http://{candidate}"
    try:
        url = httpx.URL(candidate)
        # Reading the host decodes IDNA, which rejects malformed punycode
        if url.scheme not in ("http", "https") or not url.host:
            return None
        return str(url)
    except (httpx.InvalidURL, ValueError):
        return None


def extract_urls(text: str) -> list[str]:
    """Find the URLs in a message body, in order of appearance, without repeats."""
    urls: list[str] = []
    for match in URL_PATTERN.finditer(text or ""):
        url = normalize_url(match.group(0))
        if url is None:
            logger.debug(f"Ignoring unparseable link {match.group(0)!r}")
            continue
        if url not in urls:
            urls.append(url)
    return urls


def parse_media_subtype(content_type: str | None) -> str | None:
    """Return the lowercase subtype of a Content-Type header value, or None."""
    if not content_type:
        return None
    essence = content_type.split(";", 1)[0].strip().lower()
    match = MEDIA_TYPE.match(essence)
    return match.group(1) if match else None


class LinkClassifier:
    """Decides which linked resources are documents worth archiving."""

    def __init__(
        self,
        fetcher: ResourceFetcher,
        ignored_domains: frozenset[str] = frozenset(),
        accepted_subtypes: frozenset[str] = frozenset({"pdf"}),
    ) -> None:
        self.fetcher = fetcher
        self.ignored_domains = frozenset(d.lower().lstrip(".") for d in ignored_domains)
        self.accepted_subtypes = frozenset(s.lower() for s in accepted_subtypes)

    def is_ignored(self, url: str) -> bool:
        """True if the URL's host is an ignored domain or one of its subdomains."""
        try:
            host = httpx.URL(url).host.lower()
        except (httpx.InvalidURL, ValueError):
            return True
        return any(
            host == domain or host.endswith(f".{domain}")
            for domain in self.ignored_domains
        )

    async def classify(self, url: str) -> Classification:
        """Look up *url* and accept it only if it serves an archived media subtype.

        Never raises: every lookup failure is a rejection.
        """
        if self.is_ignored(url):
            return Rejected(url, "ignored domain")

        try:
            metadata = await self.fetcher.fetch_metadata(url)
        except httpx.HTTPStatusError as e:
            return Rejected(url, f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return Rejected(url, f"metadata lookup failed: {e.__class__.__name__}")

        subtype = parse_media_subtype(metadata.content_type)
        if subtype is None:
            return Rejected(url, f"unusable content type {metadata.content_type!r}")
        if subtype not in self.accepted_subtypes:
            return Rejected(url, f"not a document ({subtype})")

        return Accepted(final_url=metadata.final_url, media_type=subtype)
