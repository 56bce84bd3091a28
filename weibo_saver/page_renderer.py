"""
Page Rendering for Embedded Post Data

The Weibo mobile page injects its post data into ``window.$render_data`` as a
side effect of its own scripts. Rendering is isolated behind ``PageRenderer``:

- PlaywrightPageRenderer runs the page in a sandboxed headless Chromium and
  reads the injected object after scripts have executed
- StaticPageRenderer fetches plain HTML and reads the object literal out of the
  inline script without executing anything
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Browser, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import SaverConfig, get_config
from .data_structures import FetchedPage
from .errors import PageFetchError
from .http_service import HTTPService, validate_url_security

logger = logging.getLogger(__name__)

RENDER_DATA_GLOBAL = '$render_data'
_RENDER_DATA_RE = re.compile(r'\$render_data\s*=\s*(\[.*?\])\s*\[0\]', re.DOTALL)


def extract_render_data(html: str) -> Optional[Dict[str, Any]]:
    """
    Read the ``$render_data`` literal from inline scripts.

    Returns:
        The first element of the assigned array, or None when absent or malformed
    """
    soup = BeautifulSoup(html, 'html.parser')
    for script in soup.find_all('script', src=False):
        body = script.string or script.get_text()
        if not body or RENDER_DATA_GLOBAL not in body:
            continue
        match = _RENDER_DATA_RE.search(body)
        if not match:
            continue
        try:
            payload = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            logger.debug(f"Inline $render_data is not valid JSON: {e}")
            continue
        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            return payload[0]
    return None


class PageRenderer(ABC):
    """Capability that turns a post URL into a FetchedPage with its embedded data."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @abstractmethod
    async def render(self, url: str) -> FetchedPage:
        """Fetch and render a page. Raises PageFetchError on failure."""

    async def close(self):
        pass


class StaticPageRenderer(PageRenderer):
    """Script-free renderer: plain GET plus inline object-literal parsing."""

    def __init__(self, http_service: HTTPService):
        self.http_service = http_service

    async def render(self, url: str) -> FetchedPage:
        page = await self.http_service.fetch_page(url)
        page.render_data = extract_render_data(page.html)
        if page.render_data is None:
            logger.debug(f"No inline $render_data found for {url}")
        return page


class PlaywrightPageRenderer(PageRenderer):
    """
    Headless Chromium renderer.

    The browser is launched lazily with its sandbox left on and shared across
    renders; each render gets a fresh context that is always closed.
    """

    def __init__(self, config: Optional[SaverConfig] = None):
        self.config = config or get_config()
        self._playwright = None
        self._browser: Optional[Browser] = None

    async def _ensure_browser(self) -> Browser:
        """Ensure browser is launched."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()
            logger.info("Playwright initialized for page rendering")

        if self._browser is None or not self._browser.is_connected():
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.js_headless,
                args=['--disable-dev-shm-usage']
            )
            logger.info("Browser launched for page rendering")
        return self._browser

    async def render(self, url: str) -> FetchedPage:
        """
        Render a page with JavaScript execution and read the injected data.

        Args:
            url: Post URL

        Returns:
            FetchedPage whose ``render_data`` is the injected object (or None)

        Raises:
            PageFetchError: navigation failed or the status was not 200
        """
        is_safe, reason = validate_url_security(url)
        if not is_safe:
            raise PageFetchError(f"Refusing to render {url}: {reason}", {"url": url, "reason": reason})

        try:
            browser = await self._ensure_browser()
            context = await browser.new_context(
                java_script_enabled=True,
                user_agent=self.config.user_agent
            )
        except PlaywrightError as e:
            raise PageFetchError(f"Browser unavailable for {url}: {e}", {"url": url}) from e

        try:
            page = await context.new_page()
            page.set_default_timeout(self.config.js_render_timeout * 1000)

            logger.info(f"Rendering {url}")
            response = await page.goto(url, wait_until='domcontentloaded')
            if response is None or response.status != 200:
                status = response.status if response else 'NO_RESPONSE'
                raise PageFetchError(f"Rendering {url} returned HTTP {status}", {"url": url, "status_code": status})

            # The data object is assigned by page scripts, possibly after DOMContentLoaded
            try:
                await page.wait_for_function(
                    f"() => window.{RENDER_DATA_GLOBAL} !== undefined",
                    timeout=self.config.js_wait_time * 1000
                )
            except PlaywrightTimeoutError:
                logger.warning(f"{RENDER_DATA_GLOBAL} did not appear within {self.config.js_wait_time}s for {url}")

            render_data = await page.evaluate(f"() => window.{RENDER_DATA_GLOBAL} || null")
            html = await page.content()

            return FetchedPage(
                url=url,
                html=html,
                final_url=page.url,
                status_code=response.status,
                render_data=render_data if isinstance(render_data, dict) else None
            )
        except PlaywrightError as e:
            raise PageFetchError(f"Rendering {url} failed: {e}", {"url": url}) from e
        finally:
            await context.close()

    async def close(self):
        """Close the browser and stop Playwright."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
            logger.info("Page renderer closed")


def create_page_renderer(config: SaverConfig, http_service: HTTPService) -> PageRenderer:
    """Build the renderer selected by ``config.page_renderer``."""
    if config.page_renderer == 'static':
        return StaticPageRenderer(http_service)
    return PlaywrightPageRenderer(config)
