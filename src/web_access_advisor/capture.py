"""Reliable snapshot capture with retries and fallback values.

A capture never raises. Every stage retries a bounded number of times and
then degrades to a fallback value, so one bad step cannot abort a replay:

- readiness: proceed anyway once retries are exhausted
- HTML: a fixed placeholder document
- scan: zero violations
- context: a context flagged ``capture_failed`` carrying the last known URL
- screenshot: skipped
"""

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from web_access_advisor.config import CaptureConfig
from web_access_advisor.models.actions import Action
from web_access_advisor.models.snapshot import AxeContext, ChangeRecord, Snapshot, SnapshotFiles
from web_access_advisor.scanner import AccessibilityScanner
from web_access_advisor.storage import SessionStore

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger(__name__)

PLACEHOLDER_HTML = (
    "<html><head><title>HTML Capture Failed</title></head>"
    "<body><p>Failed to capture HTML content</p></body></html>"
)
FAILED_CONTEXT_TITLE = "Context Capture Failed"

READINESS_SCRIPT = """() => ({
    readyState: document.readyState,
    url: window.location.href,
    hasBody: !!document.body,
    bodyChildren: document.body ? document.body.children.length : 0
})"""

CONTEXT_SCRIPT = """() => {
    const active = document.activeElement;
    let activeElement = null;
    if (active && active !== document.body && active !== document.documentElement) {
        activeElement = active.tagName.toLowerCase()
            + (active.id ? '#' + active.id : '')
            + (active.getAttribute('name') ? '[name="' + active.getAttribute('name') + '"]' : '');
    }
    return {
        include: [['html']],
        exclude: [],
        element_count: document.querySelectorAll('*').length,
        title: document.title || 'Untitled',
        url: window.location.href,
        active_element: activeElement
    };
}"""

BLANK_URLS = {"", "about:blank", "unknown"}


class CaptureEngine:
    """Captures HTML, scan results and page context for one step."""

    def __init__(
        self,
        store: SessionStore,
        scanner: AccessibilityScanner,
        config: CaptureConfig | None = None,
    ):
        self.store = store
        self.scanner = scanner
        self.config = config or CaptureConfig()

    async def _sleep(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

    async def wait_until_ready(self, page: "Page") -> bool:
        """Poll until the document is complete and has rendered content.

        Returns:
            True if the page became ready, False if retries ran out
        """
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                readiness = await page.evaluate(READINESS_SCRIPT)
                if readiness.get("readyState") == "complete" and readiness.get("hasBody") and readiness.get("bodyChildren", 0) > 0:
                    return True
                logger.debug("page not ready", attempt=attempt, readiness=readiness)
            except Exception as e:
                logger.warning("readiness check failed", attempt=attempt, error=str(e))
            if attempt < self.config.max_attempts:
                await self._sleep(self.config.readiness_delay_ms)

        logger.warning("page readiness not confirmed, capturing anyway", attempts=self.config.max_attempts)
        return False

    async def capture_html(self, page: "Page") -> str:
        """Capture page HTML, falling back to a placeholder document."""
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                html = await page.content()
                if html and len(html) > self.config.min_html_length and "<body" in html:
                    return html
                logger.warning("invalid html captured", attempt=attempt, length=len(html or ""))
            except Exception as e:
                logger.warning("html capture failed", attempt=attempt, error=str(e))
            if attempt < self.config.max_attempts:
                await self._sleep(self.config.retry_delay_ms)

        return PLACEHOLDER_HTML

    async def run_scan(self, page: "Page") -> dict[str, Any]:
        """Run the accessibility scanner; a failure yields zero violations."""
        try:
            results = await self.scanner.analyze(page)
            return {
                "violations": list(results.get("violations") or []),
                "passes": list(results.get("passes") or []),
                "incomplete": list(results.get("incomplete") or []),
            }
        except Exception as e:
            logger.warning("accessibility scan failed", error=str(e))
            return {"violations": [], "passes": [], "incomplete": [], "error": str(e)}

    async def capture_context(self, page: "Page", action: Action) -> AxeContext:
        """Capture the scan context, falling back to a flagged context."""
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                data = await page.evaluate(CONTEXT_SCRIPT)
                context = AxeContext(**data)
                if context.url not in BLANK_URLS and context.element_count > 0:
                    return context
                logger.warning(
                    "invalid context captured",
                    attempt=attempt,
                    url=context.url,
                    element_count=context.element_count,
                )
            except Exception as e:
                logger.warning("context capture failed", attempt=attempt, error=str(e))
            if attempt < self.config.max_attempts:
                await self._sleep(self.config.retry_delay_ms)

        return AxeContext(
            title=FAILED_CONTEXT_TITLE,
            url=self._last_known_url(page, action),
            capture_failed=True,
        )

    def _last_known_url(self, page: "Page", action: Action) -> str:
        try:
            url = page.url
        except Exception:
            url = ""
        if url and url not in BLANK_URLS:
            return url
        return action.url or ""

    async def _persist(self, write, *args) -> str:
        try:
            path = await write(*args)
            return str(path)
        except OSError as e:
            logger.warning("failed to persist artifact", error=str(e))
            return ""

    async def capture(self, page: "Page", step: int, action: Action, change: ChangeRecord) -> Snapshot:
        """Capture and persist the current page state for a step.

        Args:
            page: Playwright page to read
            step: 1-indexed step number
            action: Action that produced this state
            change: Change record that triggered the capture

        Returns:
            The captured Snapshot
        """
        await self.wait_until_ready(page)

        html = await self.capture_html(page)
        files = SnapshotFiles(html=await self._persist(self.store.save_html, step, html))

        scan = await self.run_scan(page)
        files.axe_results = await self._persist(self.store.save_axe_results, step, scan)

        context = await self.capture_context(page, action)
        files.axe_context = await self._persist(self.store.save_axe_context, step, context.model_dump())

        if self.config.capture_screenshots:
            try:
                screenshot_path = self.store.screenshot_path(step)
                await page.screenshot(path=str(screenshot_path), full_page=True)
                files.screenshot = str(screenshot_path)
            except Exception as e:
                logger.warning("screenshot failed", step=step, error=str(e))

        logger.info(
            "snapshot captured",
            step=step,
            url=context.url,
            violations=len(scan["violations"]),
            change=change.type,
        )
        return Snapshot(
            step=step,
            action=action.type,
            html=html,
            axe_context=context,
            axe_results=scan["violations"],
            change=change,
            files=files,
        )
