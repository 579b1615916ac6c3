"""Pydantic models for page state, change classification and snapshots."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ChangeType = Literal["navigation", "content", "interaction", "layout", "none"]


class PageState(BaseModel):
    """Comparison state read from the page after each action."""

    url: str = ""
    title: str = ""
    element_count: int = 0
    body_html: str = ""


class ChangeRecord(BaseModel):
    """How the page changed since the previous observation."""

    type: ChangeType
    significant: bool
    elements_added: int = 0
    elements_removed: int = 0
    elements_modified: int = 0
    url_changed: bool = False
    title_changed: bool = False
    description: str = ""


class AxeContext(BaseModel):
    """Page context recorded alongside each scan."""

    include: list[list[str]] = Field(default_factory=lambda: [["html"]])
    exclude: list[list[str]] = Field(default_factory=list)
    element_count: int = 0
    title: str = ""
    url: str = ""
    active_element: str | None = None
    capture_failed: bool = False


class SnapshotFiles(BaseModel):
    """Paths of the artifacts persisted for one step."""

    html: str = ""
    axe_context: str = ""
    axe_results: str = ""
    screenshot: str | None = None


class Snapshot(BaseModel):
    """Captured state for one replayed step."""

    step: int
    action: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    html: str
    axe_context: AxeContext
    axe_results: list[dict[str, Any]] = Field(default_factory=list)
    change: ChangeRecord
    files: SnapshotFiles = Field(default_factory=SnapshotFiles)

    @property
    def url(self) -> str:
        return self.axe_context.url
