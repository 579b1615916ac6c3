"""Shared fixtures: a scriptable fake page, scanner and analysis service."""

import asyncio
from pathlib import Path
from typing import Any, Callable

import pytest
from playwright.async_api import Error as PlaywrightError

from web_access_advisor.capture import CONTEXT_SCRIPT, READINESS_SCRIPT
from web_access_advisor.changes import PAGE_STATE_SCRIPT
from web_access_advisor.config import AnalysisConfig, CaptureConfig, Config, ReplayConfig, StorageConfig
from web_access_advisor.errors import AnalysisServiceError, FailureReason
from web_access_advisor.models.snapshot import AxeContext, ChangeRecord, Snapshot
from web_access_advisor.replay import SCROLL_SCRIPT

DEFAULT_BODY = (
    "<header><nav><a href='/'>Home</a></nav></header>"
    "<main><h1>Welcome</h1><form><input id='email' name='email'><button id='submit'>Go</button></form></main>"
)


class FakeLocator:
    def __init__(self, count: int):
        self._count = count

    async def count(self) -> int:
        return self._count


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self.page = page

    async def press(self, key: str) -> None:
        self.page.calls.append(("press", key))


class FakePage:
    """Minimal stand-in for a Playwright page.

    ``effects`` maps a selector to a callable run after it is clicked or
    filled, so tests can script how the DOM reacts.
    """

    def __init__(self, url: str = "about:blank", body: str = DEFAULT_BODY, title: str = "Example"):
        self.url = url
        self.body = body
        self.title = title
        self.element_count = 40
        self.violations: list[dict[str, Any]] = []
        self.calls: list[tuple] = []
        self.effects: dict[str, Callable[["FakePage"], None]] = {}
        self.missing_selectors: set[str] = set()
        self.failing_selectors: set[str] = set()
        self.state_error: Exception | None = None
        self.closed = False
        self.keyboard = FakeKeyboard(self)

    def html(self) -> str:
        return f"<html><head><title>{self.title}</title></head><body>{self.body}</body></html>"

    def _apply(self, selector: str) -> None:
        effect = self.effects.get(selector)
        if effect:
            effect(self)

    async def goto(self, url: str, timeout: int | None = None) -> None:
        self.calls.append(("goto", url))
        self.url = url

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(0 if selector in self.missing_selectors else 1)

    async def wait_for_selector(self, selector: str, timeout: int | None = None) -> None:
        if selector in self.failing_selectors:
            raise PlaywrightError(f"Timeout waiting for {selector}")

    async def click(self, selector: str, timeout: int | None = None) -> None:
        self.calls.append(("click", selector))
        self._apply(selector)

    async def fill(self, selector: str, value: str, timeout: int | None = None) -> None:
        self.calls.append(("fill", selector, value))
        self._apply(selector)

    async def select_option(self, selector: str, value: str, timeout: int | None = None) -> None:
        self.calls.append(("select", selector, value))
        self._apply(selector)

    async def hover(self, selector: str, timeout: int | None = None) -> None:
        self.calls.append(("hover", selector))

    async def wait_for_load_state(self, state: str = "load", timeout: int | None = None) -> None:
        return None

    async def evaluate(self, script: str) -> Any:
        if script == PAGE_STATE_SCRIPT:
            if self.state_error:
                raise self.state_error
            return {"url": self.url, "title": self.title, "element_count": self.element_count, "body_html": self.body}
        if script == READINESS_SCRIPT:
            return {"readyState": "complete", "url": self.url, "hasBody": True, "bodyChildren": 2}
        if script == CONTEXT_SCRIPT:
            return {
                "include": [["html"]],
                "exclude": [],
                "element_count": self.element_count,
                "title": self.title,
                "url": self.url,
                "active_element": None,
            }
        if script == SCROLL_SCRIPT:
            self.calls.append(("scroll",))
        return None

    async def content(self) -> str:
        return self.html()

    async def screenshot(self, path: str, full_page: bool = False) -> bytes:
        Path(path).write_bytes(b"\x89PNG")
        return b"\x89PNG"

    def is_closed(self) -> bool:
        return self.closed


class FakeScanner:
    """Returns whatever violations the page currently carries."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = 0

    async def analyze(self, page: FakePage) -> dict[str, Any]:
        self.calls += 1
        if self.error:
            raise self.error
        return {"violations": list(page.violations), "passes": [], "incomplete": []}


class FakeService:
    """Replays canned responses; an exception in the list is raised instead."""

    def __init__(self, responses: list[str | Exception] | None = None, default: str = "{}"):
        self.responses = list(responses or [])
        self.default = default
        self.prompts: list[tuple[str, str]] = []

    async def complete(self, prompt: str, *, operation: str) -> str:
        self.prompts.append((operation, prompt))
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


class HangingService(FakeService):
    """Never answers the first call; later calls get the canned responses."""

    def __init__(self, after: list[str | Exception] | None = None):
        super().__init__(after)
        self.hung = False

    async def complete(self, prompt: str, *, operation: str) -> str:
        if not self.hung:
            self.hung = True
            self.prompts.append((operation, prompt))
            await asyncio.sleep(3600)
        return await super().complete(prompt, operation=operation)


def make_snapshot(
    step: int,
    html: str | None = None,
    url: str = "https://example.com/",
    violations: list[dict[str, Any]] | None = None,
    action: str = "click",
    change_type: str = "content",
    significant: bool = True,
) -> Snapshot:
    return Snapshot(
        step=step,
        action=action,
        html=html if html is not None else f"<html><body><main><p>Step {step}</p></main></body></html>",
        axe_context=AxeContext(url=url, title="Example", element_count=10),
        axe_results=violations or [],
        change=ChangeRecord(type=change_type, significant=significant, description=f"{change_type} change"),
    )


def violation(rule_id: str, impact: str | None, *targets: str) -> dict[str, Any]:
    return {
        "id": rule_id,
        "impact": impact,
        "description": f"{rule_id} description",
        "help": f"{rule_id} help",
        "helpUrl": f"https://dequeuniversity.com/rules/axe/4.10/{rule_id}",
        "nodes": [{"target": [t], "html": f"<div id='{t}'></div>"} for t in targets],
    }


@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture
def fake_scanner():
    return FakeScanner()


@pytest.fixture
def fast_config(tmp_path):
    """Config with all waits disabled and artifacts under tmp_path."""
    return Config(
        replay=ReplayConfig(
            wait_for_stability=False,
            settle_navigate_ms=0,
            settle_click_ms=0,
            settle_form_input_ms=0,
            settle_default_ms=0,
        ),
        capture=CaptureConfig(capture_screenshots=False, readiness_delay_ms=0, retry_delay_ms=0),
        storage=StorageConfig(output_dir=tmp_path / "snapshots"),
        analysis=AnalysisConfig(enabled=False),
    )


def service_error(operation: str = "batch", reason: FailureReason = FailureReason.QUOTA) -> AnalysisServiceError:
    return AnalysisServiceError(operation, reason, "rate limited")
