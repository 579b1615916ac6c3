"""Pydantic models for batch analysis, findings and the session result."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from web_access_advisor.models.manifest import SessionManifest
from web_access_advisor.models.snapshot import Snapshot

Impact = Literal["critical", "serious", "moderate", "minor"]
IMPACT_LEVELS: tuple[str, ...] = ("critical", "serious", "moderate", "minor")


class ComponentIssue(BaseModel):
    """One component-level accessibility finding."""

    component_name: str
    issue: str
    explanation: str = ""
    relevant_html: str = ""
    corrected_code: str = ""
    code_change_summary: str = ""
    impact: Impact = "moderate"
    wcag_rule: str = "unknown"
    selector: str | None = None
    step: int | None = None
    url: str | None = None

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.component_name.strip().lower(), self.issue.strip().lower())

    @property
    def completeness(self) -> int:
        return len(self.explanation.strip()) + len(self.corrected_code.strip()) + len(self.code_change_summary.strip())


class AnalysisBatch(BaseModel):
    """Token-bounded slice of snapshots sharing a flow type."""

    batch_id: str
    index: int
    total: int
    flow_type: str
    snapshots: list[Snapshot]
    token_estimate: int

    @property
    def steps(self) -> list[int]:
        return [s.step for s in self.snapshots]


class ProgressiveContext(BaseModel):
    """Findings carried forward from earlier batches into later requests."""

    critical_issues: list[str] = Field(default_factory=list)
    key_findings: list[str] = Field(default_factory=list)
    flow_hints: list[str] = Field(default_factory=list)
    summary: str = ""

    def append_summary(self, text: str, cap: int) -> None:
        """Append to the running summary, dropping the oldest text past ``cap``."""
        text = text.strip()
        if not text:
            return
        combined = f"{self.summary}\n{text}" if self.summary else text
        self.summary = combined[-cap:] if len(combined) > cap else combined

    @property
    def is_empty(self) -> bool:
        return not (self.critical_issues or self.key_findings or self.flow_hints or self.summary)


class BatchResult(BaseModel):
    """Parsed output of one analysis request."""

    batch_id: str
    index: int = 0
    flow_type: str = ""
    steps: list[int] = Field(default_factory=list)
    summary: str = ""
    components: list[ComponentIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    score: int = 0


class AnalysisResult(BaseModel):
    """Consolidated analysis across all batches."""

    summary: str = ""
    components: list[ComponentIssue] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    score: int = 0
    batches_total: int = 0
    batches_succeeded: int = 0
    failed_batches: list[str] = Field(default_factory=list)
    static_sections_analyzed: int = 0
    consolidation_fallback: bool = False


class Violation(BaseModel):
    """Scan violation de-duplicated across snapshots."""

    id: str
    impact: str | None = None
    description: str = ""
    help: str = ""
    help_url: str = ""
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    first_step: int
    url: str | None = None
    step_occurrences: list[int] = Field(default_factory=list)
    explanation: str | None = None
    recommendation: str | None = None
    generated: bool = False


class SessionResult(BaseModel):
    """Top-level result of one replay-and-analysis run."""

    success: bool
    session_id: str
    snapshots: list[Snapshot] = Field(default_factory=list)
    manifest: SessionManifest | None = None
    analysis: AnalysisResult | None = None
    violations: list[Violation] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def snapshot_count(self) -> int:
        return len(self.snapshots)
