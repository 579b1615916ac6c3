"""Replay log of executed actions, one JSON line per action."""

from datetime import datetime

import structlog

from web_access_advisor.models.actions import Action, ActionEntry
from web_access_advisor.storage import SessionStore

logger = structlog.get_logger(__name__)


class ActionLogger:
    """Async context manager that times an action and logs its outcome.

    Exceptions raised inside the block are recorded and re-raised; the
    caller decides whether they are fatal.

    Usage:
        async with ActionLogger(store, action) as entry:
            await page.click(action.selector)
    """

    def __init__(self, store: SessionStore | None, action: Action):
        self.store = store
        self.action = action
        self._start_time: datetime | None = None
        self._skipped = False
        self._error: str | None = None

    async def __aenter__(self) -> "ActionLogger":
        self._start_time = datetime.utcnow()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        duration_ms = None
        if self._start_time:
            duration_ms = (datetime.utcnow() - self._start_time).total_seconds() * 1000

        if exc_val:
            self._error = str(exc_val)

        entry = ActionEntry(
            step=self.action.step,
            action=self.action.type,
            selector=self.action.selector,
            value=self.action.value,
            url=self.action.url,
            duration_ms=duration_ms,
            success=self._error is None,
            skipped=self._skipped,
            error=self._error,
        )

        if entry.success:
            logger.debug("action executed", step=entry.step, action=entry.action, skipped=entry.skipped)
        else:
            logger.warning("action failed", step=entry.step, action=entry.action, error=entry.error)

        if self.store:
            try:
                await self.store.append_log_line(entry.model_dump_json())
            except OSError as e:
                logger.warning("replay log write failed", step=entry.step, error=str(e))

    def skip(self, reason: str) -> None:
        """Mark this action as skipped without raising."""
        self._skipped = True
        self._error = reason
