"""
Tab lifecycle over a persistent browser context.

Source tabs are reused when one is already open at the source's URL, so a
user who just logged in keeps that tab (and its session).
"""

from typing import Optional

from playwright.async_api import BrowserContext, Page

from .logging_utils import get_logger, log_error


NETWORK_ERROR_MARKERS = ['ERR_NAME_NOT_RESOLVED', 'ERR_CONNECTION', 'ERR_TUNNEL_CONNECTION_FAILED', 'net::']


class TabManager:
    """
    Finds, opens and focuses source tabs in a browser context.
    """

    def __init__(self, context: BrowserContext, navigation_timeout_ms: int = 30000):
        """
        Initialize the tab manager.

        Args:
            context: Browser context holding the tabs
            navigation_timeout_ms: Timeout for opening a new tab's URL
        """
        self.context = context
        self.navigation_timeout_ms = navigation_timeout_ms
        self.logger = get_logger()

    def find_tab(self, url_prefix: str) -> Optional[Page]:
        """Return the first open tab whose URL starts with ``url_prefix``."""
        for page in self.context.pages:
            if not page.is_closed() and page.url.startswith(url_prefix):
                return page
        return None

    async def ensure_tab(self, url_prefix: str, fallback_url: str) -> Page:
        """
        Reuse an open tab matching ``url_prefix``, or open ``fallback_url`` in a new one.

        Raises:
            Exception: If the new tab cannot load the URL
        """
        page = self.find_tab(url_prefix)
        if page is not None:
            self.logger.debug(f"Reusing tab {page.url[:80]}")
            return page

        self.logger.debug(f"Opening {fallback_url}")
        page = await self.context.new_page()
        try:
            await page.goto(fallback_url, timeout=self.navigation_timeout_ms, wait_until='domcontentloaded')
        except Exception as e:
            if any(marker in str(e) for marker in NETWORK_ERROR_MARKERS):
                log_error(
                    f"Network error opening {fallback_url}: {e}. "
                    f"Check that your VPN/proxy is connected and the URL is reachable.",
                    self.logger,
                )
            raise
        return page

    async def focus_tab(self, page: Page):
        """Bring a tab to the front so the user can act on it (e.g. log in)."""
        await page.bring_to_front()
