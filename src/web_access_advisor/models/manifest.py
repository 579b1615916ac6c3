"""Pydantic models for the persisted session manifest."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from web_access_advisor.models.snapshot import ChangeType
from web_access_advisor.rules import FlowType

ActionCategory = Literal["navigation", "interaction", "form_input", "other"]


class AccessibilityContext(BaseModel):
    """Heuristic view of focus, modal and live-region state at a step."""

    focused_element: str | None = None
    modal_open: bool = False
    live_regions: int = 0


class StepDetail(BaseModel):
    """Manifest entry describing one captured step."""

    step: int
    parent_step: int | None = None
    action: str
    action_type: ActionCategory
    interaction_target: str | None = None
    url: str
    timestamp: datetime
    flow_type: FlowType
    excluded: bool = False
    exclusion_reason: str | None = None
    html_file: str = ""
    axe_file: str = ""
    axe_results_file: str = ""
    screenshot_file: str | None = None
    dom_change_type: ChangeType
    dom_changes: str = ""
    significant_change: bool = False
    aria_changes: list[str] = Field(default_factory=list)
    accessibility_context: AccessibilityContext = Field(default_factory=AccessibilityContext)
    token_estimate: int = 0


class ActionGroup(BaseModel):
    """Contiguous run of steps that share a flow type."""

    group_id: int
    flow_type: FlowType
    start_step: int
    end_step: int
    steps: list[int]
    token_estimate: int
    relevant: bool


class FlowStatistics(BaseModel):
    """Session-wide counts per flow type and change kind."""

    total_steps: int = 0
    flow_counts: dict[str, int] = Field(default_factory=dict)
    significant_dom_changes: int = 0
    accessibility_event_steps: int = 0


class LLMOptimization(BaseModel):
    """Counters describing how much of the session is sent for analysis."""

    total_steps: int = 0
    excluded_steps: int = 0
    excluded_by_reason: dict[str, int] = Field(default_factory=dict)
    total_tokens: int = 0
    analyzed_tokens: int = 0


class SessionManifest(BaseModel):
    """Session-level aggregate written to manifest.json."""

    session_id: str
    url: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    total_steps: int = 0
    step_details: list[StepDetail] = Field(default_factory=list)
    action_groups: list[ActionGroup] = Field(default_factory=list)
    flow_statistics: FlowStatistics = Field(default_factory=FlowStatistics)
    llm_optimization: LLMOptimization = Field(default_factory=LLMOptimization)

    def detail_for(self, step: int) -> StepDetail | None:
        """Return the step detail for a step number, if present."""
        for detail in self.step_details:
            if detail.step == step:
                return detail
        return None
