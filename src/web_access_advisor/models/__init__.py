"""Data models for Web Access Advisor."""

from web_access_advisor.models.actions import Action, ActionEntry
from web_access_advisor.models.analysis import (
    AnalysisBatch,
    AnalysisResult,
    BatchResult,
    ComponentIssue,
    ProgressiveContext,
    SessionResult,
    Violation,
)
from web_access_advisor.models.manifest import (
    AccessibilityContext,
    ActionGroup,
    FlowStatistics,
    LLMOptimization,
    SessionManifest,
    StepDetail,
)
from web_access_advisor.models.snapshot import AxeContext, ChangeRecord, PageState, Snapshot, SnapshotFiles

__all__ = [
    "Action",
    "ActionEntry",
    "AnalysisBatch",
    "AnalysisResult",
    "BatchResult",
    "ComponentIssue",
    "ProgressiveContext",
    "SessionResult",
    "Violation",
    "AccessibilityContext",
    "ActionGroup",
    "FlowStatistics",
    "LLMOptimization",
    "SessionManifest",
    "StepDetail",
    "AxeContext",
    "ChangeRecord",
    "PageState",
    "Snapshot",
    "SnapshotFiles",
]
