"""Headless browser lifecycle for sessions run without a caller-supplied page."""

from typing import Any

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from web_access_advisor.config import BrowserConfig

logger = structlog.get_logger(__name__)


class ReplayBrowser:
    """Launches Chromium and hands out a single page for replay.

    Usage:
        async with ReplayBrowser(config.browser) as browser:
            outcome = await engine.replay(browser.page, actions)
    """

    def __init__(self, config: BrowserConfig | None = None):
        """Initialize ReplayBrowser.

        Args:
            config: Browser launch configuration
        """
        self.config = config or BrowserConfig()

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        """Get the current page."""
        if not self._page:
            raise RuntimeError("Browser not started. Call start() first.")
        return self._page

    async def start(self) -> "ReplayBrowser":
        """Launch the browser and open a page.

        Returns:
            Self for chaining
        """
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=list(self.config.extra_args),
        )

        context_options: dict[str, Any] = {
            "viewport": {
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
        }
        if self.config.user_agent:
            context_options["user_agent"] = self.config.user_agent
        if self.config.storage_state:
            context_options["storage_state"] = self.config.storage_state

        self._context = await self._browser.new_context(**context_options)
        self._page = await self._context.new_page()
        logger.info("browser started", headless=self.config.headless)
        return self

    async def stop(self) -> None:
        """Close the page, context and browser."""
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        logger.info("browser stopped")

    async def __aenter__(self) -> "ReplayBrowser":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
