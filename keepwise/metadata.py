"""
Metadata Extractor - Best-effort title/description/author/image for a URL.

Used to prefill the save-link form. The page is fetched with a browser-like
User-Agent and parsed with BeautifulSoup. Nothing here may block saving:
every failure (network, HTTP status, parsing) comes back as the same result
shape with empty fields and success=False.
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup

from .config import DEFAULT_USER_AGENT
from .errors import UpstreamFetchError

logger = logging.getLogger(__name__)

# host suffix -> display name
SOCIAL_SOURCES = {
    "facebook.com": "Facebook",
    "twitter.com": "Twitter",
    "x.com": "Twitter",
    "instagram.com": "Instagram",
    "linkedin.com": "LinkedIn",
}

EMPTY_FIELDS = ("title", "description", "author", "image", "source")


def _host(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


def social_source(url: str) -> Optional[str]:
    """Platform name when the URL's host is (a subdomain of) a known social site."""
    host = _host(url)
    for domain, name in SOCIAL_SOURCES.items():
        if host == domain or host.endswith("." + domain):
            return name
    return None


def source_for(url: str, site_name: Optional[str] = None) -> str:
    """
    Human-readable source label.

    Known social platforms win over og:site_name; otherwise the site name,
    otherwise the hostname without a leading "www.".
    """
    platform = social_source(url)
    if platform:
        return platform
    if site_name:
        return site_name
    host = _host(url)
    return host[4:] if host.startswith("www.") else host


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
    tag = soup.find("meta", attrs={attr: re.compile(rf"^{re.escape(value)}$", re.I)})
    if tag is None:
        return None
    content = tag.get("content")
    if not content:
        return None
    content = content.strip()
    return content or None


def _title_element(soup: BeautifulSoup) -> Optional[str]:
    if soup.title is None:
        return None
    text = soup.title.get_text(strip=True)
    return text or None


def parse_metadata(url: str, html: str) -> Dict[str, Any]:
    """Extract metadata from already-fetched markup."""
    soup = BeautifulSoup(html, "html.parser")

    title = (
        _meta_content(soup, "name", "title")
        or _meta_content(soup, "property", "og:title")
        or _title_element(soup)
    )
    description = (
        _meta_content(soup, "name", "description")
        or _meta_content(soup, "property", "og:description")
    )
    author = _meta_content(soup, "name", "author")
    image = _meta_content(soup, "property", "og:image")
    site_name = _meta_content(soup, "property", "og:site_name")

    return {
        "title": title or "",
        "description": description or "",
        "author": author or "",
        "image": image or "",
        "source": source_for(url, site_name),
        "success": True,
    }


def failed_metadata(error: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {field: "" for field in EMPTY_FIELDS}
    result["success"] = False
    result["error"] = error
    return result


class MetadataExtractor:
    """
    Fetches a page and extracts its metadata.

    Usage:
        extractor = MetadataExtractor(timeout=10.0)
        meta = await extractor.extract("https://example.com/post")
        if meta["success"]:
            ...
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: Optional[str] = DEFAULT_USER_AGENT,
        max_bytes: int = 2_000_000,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_bytes = max_bytes
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "MetadataExtractor":
        return cls(
            timeout=settings.metadata_timeout,
            user_agent=settings.metadata_user_agent,
            max_bytes=settings.metadata_max_bytes,
            transport=transport,
        )

    async def _fetch(self, url: str) -> str:
        headers = {"User-Agent": self.user_agent} if self.user_agent else {}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=headers,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"Could not fetch page: {e}") from e

        if not response.is_success:
            raise UpstreamFetchError(
                f"Could not fetch page: {response.status_code} {response.reason_phrase}"
            )

        text = response.text
        if len(text) > self.max_bytes:
            logger.debug(f"Truncating {url} from {len(text)} to {self.max_bytes} characters")
            text = text[:self.max_bytes]
        return text

    async def extract(self, url: str) -> Dict[str, Any]:
        """Never raises; failures return empty fields with success=False."""
        try:
            html = await self._fetch(url)
            return parse_metadata(url, html)
        except UpstreamFetchError as e:
            logger.warning(f"Metadata extraction failed for {url}: {e}")
            return failed_metadata(str(e))
        except Exception as e:
            logger.warning(f"Metadata extraction failed for {url}: {e}", exc_info=True)
            return failed_metadata(f"Could not extract metadata: {e}")
