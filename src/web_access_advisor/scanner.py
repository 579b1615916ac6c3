"""axe-core accessibility scanner driven through Playwright."""

from typing import TYPE_CHECKING, Any, Protocol

import structlog

from web_access_advisor.config import CaptureConfig

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger(__name__)

AXE_RUN_SCRIPT = """async () => {
    const results = await window.axe.run(document);
    return {
        violations: results.violations,
        passes: results.passes,
        incomplete: results.incomplete,
        url: results.url,
        timestamp: results.timestamp
    };
}"""


class AccessibilityScanner(Protocol):
    """Anything that can scan a page and return axe-style results."""

    async def analyze(self, page: "Page") -> dict[str, Any]: ...


class AxeScanner:
    """Injects axe-core into the page and runs it against the document."""

    def __init__(self, config: CaptureConfig | None = None):
        self.config = config or CaptureConfig()

    async def _inject(self, page: "Page") -> None:
        if await page.evaluate("() => typeof window.axe !== 'undefined'"):
            return
        if self.config.axe_script_path:
            await page.add_script_tag(path=str(self.config.axe_script_path))
        else:
            await page.add_script_tag(url=self.config.axe_script_url)
        if not await page.evaluate("() => typeof window.axe !== 'undefined'"):
            raise RuntimeError("axe-core was injected but window.axe is not defined")

    async def analyze(self, page: "Page") -> dict[str, Any]:
        """Run axe-core against the current page.

        Returns:
            Dict with ``violations``, ``passes`` and ``incomplete`` lists
        """
        await self._inject(page)
        results = await page.evaluate(AXE_RUN_SCRIPT)
        logger.debug("axe scan complete", violations=len(results.get("violations", [])))
        return results
