"""Pydantic models for recorded actions and their replay log."""

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

ActionType = Literal["navigate", "click", "fill", "select", "scroll", "hover", "key"]


class Action(BaseModel):
    """One recorded user interaction, replayed in order."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: ActionType = Field(validation_alias=AliasChoices("type", "kind"))
    selector: str | None = None
    value: str | None = None
    url: str | None = None
    step: int = 0
    timestamp: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ActionEntry(BaseModel):
    """Single replayed action as written to the replay log."""

    timestamp: datetime = Field(default_factory=datetime.utcnow)
    step: int
    action: str
    selector: str | None = None
    value: str | None = None
    url: str | None = None
    duration_ms: float | None = None
    success: bool = True
    skipped: bool = False
    error: str | None = None
