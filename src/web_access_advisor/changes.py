"""DOM change classification between successive page observations."""

from typing import TYPE_CHECKING

from web_access_advisor.models.snapshot import ChangeRecord, PageState

if TYPE_CHECKING:
    from playwright.async_api import Page

# Element-count deltas used to grade a change
CONTENT_CHANGE_THRESHOLD = 10
INTERACTION_SIGNIFICANCE_THRESHOLD = 2

PAGE_STATE_SCRIPT = """() => ({
    url: window.location.href,
    title: document.title,
    element_count: document.querySelectorAll('*').length,
    body_html: document.body ? document.body.innerHTML : ''
})"""


async def read_page_state(page: "Page") -> PageState:
    """Read the comparison state of the current page."""
    data = await page.evaluate(PAGE_STATE_SCRIPT)
    return PageState(**data)


def _signed(delta: int) -> str:
    return f"+{delta}" if delta > 0 else str(delta)


def detect_change(previous: PageState | None, current: PageState) -> tuple[ChangeRecord, PageState]:
    """Classify the change from ``previous`` to ``current``.

    Pure function: the returned state is the new "previous" for the next
    call, so the caller owns the comparison slot. Pass ``None`` as the
    previous state at the start of a session.

    Returns:
        Tuple of (change record, state to thread into the next call)
    """
    if previous is None:
        return (
            ChangeRecord(
                type="navigation",
                significant=True,
                elements_added=current.element_count,
                description="Initial page load",
            ),
            current,
        )

    url_changed = previous.url != current.url
    title_changed = previous.title != current.title
    delta = current.element_count - previous.element_count
    body_changed = previous.body_html != current.body_html

    if url_changed:
        change_type, significant = "navigation", True
        description = "Navigation to new page"
    elif not body_changed:
        change_type, significant = "none", False
        description = "No DOM changes detected"
    elif abs(delta) > CONTENT_CHANGE_THRESHOLD or title_changed:
        change_type, significant = "content", True
        description = f"Significant content change ({_signed(delta)} elements)"
    elif abs(delta) > 0:
        change_type, significant = "interaction", delta > INTERACTION_SIGNIFICANCE_THRESHOLD
        description = f"Interactive change ({_signed(delta)} elements)"
    else:
        change_type, significant = "layout", False
        description = "Layout or style changes only"

    record = ChangeRecord(
        type=change_type,
        significant=significant,
        elements_added=max(0, delta),
        elements_removed=max(0, -delta),
        elements_modified=1 if body_changed else 0,
        url_changed=url_changed,
        title_changed=title_changed,
        description=description,
    )
    return record, current
