"""
Centralized HTTP service for page and media requests.

This module provides the HTTP client shared by the pipeline:
- One pooled ``httpx.AsyncClient`` per pipeline
- URL safety validation before any request
- A single fetch attempt per page (no retry against the source site)
- Status handling where only 200 counts as success
"""

import logging
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx

from .config import SaverConfig, get_config
from .data_structures import FetchedPage
from .errors import PageFetchError

logger = logging.getLogger(__name__)

# Security constants
MALICIOUS_SCHEMES = {'javascript', 'data', 'file', 'ftp'}


def validate_url_security(url: str) -> Tuple[bool, str]:
    """
    Validate URL for security threats.

    Args:
        url: URL to validate

    Returns:
        Tuple of (is_safe, reason_code)
    """
    try:
        parsed = urlparse(url)

        if parsed.scheme.lower() in MALICIOUS_SCHEMES:
            return False, "MALICIOUS_SCHEME"

        if parsed.scheme.lower() not in {'http', 'https'}:
            return False, "UNSAFE_SCHEME"

        if not parsed.netloc:
            return False, "MISSING_HOST"

        return True, "SAFE"

    except ValueError as e:
        logger.warning(f"URL validation error for {url}: {e}")
        return False, "VALIDATION_ERROR"


def create_http_client(config: SaverConfig) -> httpx.AsyncClient:
    """Create the pooled client used for page and media requests."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=10.0,
            read=config.http_timeout,
            write=10.0,
            pool=5.0
        ),
        limits=httpx.Limits(
            max_keepalive_connections=20,
            max_connections=50,
            keepalive_expiry=30.0
        ),
        headers={'User-Agent': config.user_agent},
        follow_redirects=True,
        http2=True
    )


class HTTPService:
    """
    HTTP service wrapping one pooled client.

    A client can be injected (tests pass one built on ``httpx.MockTransport``);
    otherwise one is created lazily and owned by the service.
    """

    def __init__(self, config: Optional[SaverConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or get_config()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None or self._client.is_closed:
            self._client = create_http_client(self.config)
            self._owns_client = True
            logger.info("HTTP service client initialized")
        return self._client

    @property
    def client(self) -> Optional[httpx.AsyncClient]:
        return self._client

    async def get_client(self) -> httpx.AsyncClient:
        return await self._ensure_client()

    async def close(self):
        """Close the HTTP client if this service created it."""
        if self._client and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP service client closed")

    async def fetch_page(self, url: str) -> FetchedPage:
        """
        Fetch a page with a single GET.

        Args:
            url: Page URL

        Returns:
            FetchedPage with the response body as text

        Raises:
            PageFetchError: on unsafe URLs, transport errors or any status other than 200
        """
        is_safe, reason = validate_url_security(url)
        if not is_safe:
            raise PageFetchError(f"Refusing to fetch {url}: {reason}", {"url": url, "reason": reason})

        client = await self._ensure_client()
        logger.info(f"Fetching page {url}")
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise PageFetchError(f"Request for {url} failed: {e}", {"url": url}) from e

        if response.status_code != 200:
            raise PageFetchError(
                f"Fetching {url} returned HTTP {response.status_code}",
                {"url": url, "status_code": response.status_code}
            )

        return FetchedPage(
            url=url,
            html=response.text,
            final_url=str(response.url),
            status_code=response.status_code
        )
