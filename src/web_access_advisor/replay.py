"""Deterministic replay of recorded actions with snapshot capture."""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import structlog
from playwright.async_api import Error as PlaywrightError

from web_access_advisor.action_log import ActionLogger
from web_access_advisor.capture import CaptureEngine
from web_access_advisor.changes import detect_change, read_page_state
from web_access_advisor.config import ReplayConfig
from web_access_advisor.errors import PageUnavailableError
from web_access_advisor.models.actions import Action
from web_access_advisor.models.snapshot import PageState, Snapshot
from web_access_advisor.policy import should_capture
from web_access_advisor.progress import Phase, ProgressChannel
from web_access_advisor.storage import SessionStore

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger(__name__)

SCROLL_SCRIPT = "() => window.scrollBy(0, 300)"


@dataclass
class ReplayOutcome:
    """Result of replaying one action sequence."""

    status: Literal["completed", "failed"]
    snapshots: list[Snapshot] = field(default_factory=list)
    error: str | None = None
    actions_replayed: int = 0


class ReplayEngine:
    """Drives actions against a page and collects snapshots.

    Per action: execute, settle, optionally stabilize, read page state,
    classify the change, ask the snapshot policy, and capture if needed.
    Action failures are logged and skipped; only an unreadable page ends
    the replay early.
    """

    def __init__(
        self,
        capture: CaptureEngine,
        config: ReplayConfig | None = None,
        store: SessionStore | None = None,
        progress: ProgressChannel | None = None,
    ):
        self.capture = capture
        self.config = config or ReplayConfig()
        self.store = store
        self.progress = progress

    def _publish(self, phase: Phase, message: str, **kwargs) -> None:
        if self.progress:
            self.progress.publish(phase, message, **kwargs)

    async def replay(self, page: "Page", actions: list[Action]) -> ReplayOutcome:
        """Replay all actions in order.

        Args:
            page: Playwright page the actions are applied to
            actions: Recorded actions

        Returns:
            ReplayOutcome with status ``completed`` or ``failed``
        """
        snapshots: list[Snapshot] = []
        previous: PageState | None = None
        total = len(actions)
        index = 0

        try:
            for index, action in enumerate(actions):
                step = index + 1
                if action.step != step:
                    action = action.model_copy(update={"step": step})

                self._publish(
                    Phase.REPLAYING,
                    f"Replaying step {step}: {action.type}",
                    step=step,
                    total=total,
                    snapshot_count=len(snapshots),
                )

                await self.execute(page, action)
                await self.settle(page, action)
                if self.config.wait_for_stability:
                    await self.stabilize(page)

                current = await self.read_state(page)
                change, previous = detect_change(previous, current)
                logger.info("dom change", step=step, change=change.type, significant=change.significant)

                if not should_capture(action, change, index, actions):
                    logger.debug("skipping snapshot", step=step)
                    continue

                self._publish(
                    Phase.CAPTURING,
                    f"Capturing snapshot {len(snapshots) + 1}",
                    step=step,
                    total=total,
                    snapshot_count=len(snapshots),
                )
                snapshots.append(await self.capture.capture(page, step, action, change))

        except Exception as e:
            logger.error("replay aborted", step=index + 1, error=str(e))
            return ReplayOutcome(status="failed", snapshots=snapshots, error=str(e), actions_replayed=index)

        return ReplayOutcome(status="completed", snapshots=snapshots, actions_replayed=total)

    async def execute(self, page: "Page", action: Action) -> None:
        """Execute one action, logging and swallowing interaction failures."""
        try:
            async with ActionLogger(self.store, action) as entry:
                await self._dispatch(page, action, entry)
        except (PlaywrightError, asyncio.TimeoutError):
            # Already recorded by ActionLogger; the step continues without this action's effect
            pass

    async def _dispatch(self, page: "Page", action: Action, entry: ActionLogger) -> None:
        timeout = self.config.action_timeout_ms

        if action.type == "navigate":
            if action.url:
                await page.goto(action.url, timeout=self.config.navigation_timeout_ms)
        elif action.type == "click":
            if action.selector:
                if await page.locator(action.selector).count() == 0:
                    entry.skip(f"Element not found: {action.selector}")
                    return
                await page.wait_for_selector(action.selector, timeout=timeout)
                await page.click(action.selector, timeout=timeout)
        elif action.type == "fill":
            if action.selector and action.value is not None:
                await page.wait_for_selector(action.selector, timeout=timeout)
                await page.fill(action.selector, action.value, timeout=timeout)
        elif action.type == "select":
            if action.selector and action.value is not None:
                await page.wait_for_selector(action.selector, timeout=timeout)
                await page.select_option(action.selector, action.value, timeout=timeout)
        elif action.type == "scroll":
            await page.evaluate(SCROLL_SCRIPT)
        elif action.type == "hover":
            if action.selector:
                await page.wait_for_selector(action.selector, timeout=timeout)
                await page.hover(action.selector, timeout=timeout)
        elif action.type == "key":
            if action.value:
                await page.keyboard.press(action.value)

    def settle_delay_ms(self, action: Action) -> int:
        """Fixed post-action delay for an action type."""
        if action.type == "navigate":
            return self.config.settle_navigate_ms
        if action.type == "click":
            return self.config.settle_click_ms
        if action.type in ("fill", "select"):
            return self.config.settle_form_input_ms
        return self.config.settle_default_ms

    async def settle(self, page: "Page", action: Action) -> None:
        """Wait for the action's effects to land; timeouts are not fatal."""
        delay = self.settle_delay_ms(action)
        if delay > 0:
            await asyncio.sleep(delay / 1000)

        try:
            if action.type == "navigate":
                await page.wait_for_load_state("domcontentloaded", timeout=self.config.action_timeout_ms)
            await page.wait_for_load_state("networkidle", timeout=self.config.network_idle_timeout_ms)
        except PlaywrightError:
            logger.debug("network idle timeout", action=action.type, step=action.step)

    async def stabilize(self, page: "Page") -> None:
        """Longer best-effort wait for network quiescence."""
        try:
            await page.wait_for_load_state("networkidle", timeout=self.config.stability_timeout_ms)
        except PlaywrightError as e:
            logger.warning("page stability timeout, continuing", error=str(e))

    async def read_state(self, page: "Page") -> PageState:
        """Read page state with bounded retries.

        Raises:
            PageUnavailableError: If the page cannot be read at all
        """
        last_error: Exception | None = None
        for attempt in range(1, self.config.state_read_attempts + 1):
            try:
                return await read_page_state(page)
            except PlaywrightError as e:
                last_error = e
                logger.warning("page state read failed", attempt=attempt, error=str(e))
                if attempt < self.config.state_read_attempts and self.config.settle_default_ms > 0:
                    await asyncio.sleep(self.config.settle_default_ms / 1000)

        raise PageUnavailableError(f"Page state could not be read: {last_error}")
