"""Token-bounded batch analysis with progressive context.

Snapshots are grouped by flow type, packed into batches under a token
budget and analyzed strictly in order. Each request carries a compact
summary of everything found so far, so later batches can build on earlier
ones without resending their content.
"""

import asyncio
import hashlib
import re
from typing import Any, Callable, TypeVar

import structlog

from web_access_advisor.config import AnalysisConfig
from web_access_advisor.errors import AnalysisServiceError, BatchAnalysisError, FailureReason
from web_access_advisor.llm import TextAnalysisService, parse_json_response, request_text
from web_access_advisor.manifest import estimate_tokens
from web_access_advisor.models.analysis import (
    IMPACT_LEVELS,
    AnalysisBatch,
    AnalysisResult,
    BatchResult,
    ComponentIssue,
    ProgressiveContext,
)
from web_access_advisor.models.manifest import SessionManifest
from web_access_advisor.models.snapshot import Snapshot
from web_access_advisor.progress import Phase, ProgressChannel
from web_access_advisor.prompts import build_batch_prompt, build_static_section_prompt

logger = structlog.get_logger(__name__)

T = TypeVar("T")

STATIC_SECTION_PATTERN = re.compile(r"<(header|nav|footer|aside)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
PLACEHOLDER_NAMES = {"unknown component", "unknown", "n/a", "none", "no issue description provided"}
MAX_KEY_FINDINGS = 20
MAX_CRITICAL_ISSUES = 30


def split_into_batches(items: list[T], budget: int, estimate: Callable[[T], int]) -> list[list[T]]:
    """Greedily pack items, in order, into batches whose estimate sum stays within ``budget``.

    An item larger than the budget on its own becomes a single-item batch.
    """
    batches: list[list[T]] = []
    current: list[T] = []
    current_tokens = 0

    for item in items:
        tokens = estimate(item)
        if current and current_tokens + tokens > budget:
            batches.append(current)
            current, current_tokens = [], 0
        current.append(item)
        current_tokens += tokens

    if current:
        batches.append(current)
    return batches


def _text(item: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def normalize_components(raw: Any) -> list[ComponentIssue]:
    """Turn model output into ComponentIssues, dropping placeholder entries.

    Accepts snake_case or camelCase keys. Entries without a real component
    name or issue are dropped; an unknown impact becomes ``moderate``.
    """
    if not isinstance(raw, list):
        return []

    components = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = _text(item, "component_name", "componentName")
        issue = _text(item, "issue")
        if not name or not issue or name.lower() in PLACEHOLDER_NAMES or issue.lower() in PLACEHOLDER_NAMES:
            logger.debug("dropping incomplete component", component=name, issue=issue)
            continue

        impact = _text(item, "impact").lower()
        components.append(
            ComponentIssue(
                component_name=name,
                issue=issue,
                explanation=_text(item, "explanation"),
                relevant_html=_text(item, "relevant_html", "relevantHtml"),
                corrected_code=_text(item, "corrected_code", "correctedCode"),
                code_change_summary=_text(item, "code_change_summary", "codeChangeSummary"),
                impact=impact if impact in IMPACT_LEVELS else "moderate",
                wcag_rule=_text(item, "wcag_rule", "wcagRule") or "unknown",
                selector=_text(item, "selector") or None,
            )
        )
    return components


def _score(value: Any) -> int:
    try:
        return max(0, min(100, int(value)))
    except (TypeError, ValueError):
        return 0


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    result = []
    for item in items:
        key = item.strip().lower()
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def consolidate(results: list[BatchResult]) -> AnalysisResult:
    """Merge batch results into one analysis.

    Components are de-duplicated by (component name, issue); on collision
    the more complete entry wins. Scores are averaged.
    """
    merged: dict[tuple[str, str], ComponentIssue] = {}
    for result in results:
        for component in result.components:
            existing = merged.get(component.dedup_key)
            if existing is None or component.completeness > existing.completeness:
                merged[component.dedup_key] = component

    summaries = [r.summary.strip() for r in results if r.summary.strip()]
    recommendations = _dedupe([rec for r in results for rec in r.recommendations])
    score = round(sum(r.score for r in results) / len(results)) if results else 0

    return AnalysisResult(
        summary="\n\n".join(summaries),
        components=list(merged.values()),
        recommendations=recommendations,
        score=score,
    )


def concatenate(results: list[BatchResult]) -> AnalysisResult:
    """Uncombined batch output, used when consolidation fails."""
    return AnalysisResult(
        summary="\n\n".join(r.summary for r in results if r.summary),
        components=[c for r in results for c in r.components],
        recommendations=[rec for r in results for rec in r.recommendations],
        score=min((r.score for r in results), default=0),
        consolidation_fallback=True,
    )


def _selector_in_html(selector: str, html: str) -> bool:
    selector = selector.strip()
    if re.fullmatch(r"#[\w-]+", selector):
        return re.search(rf'\bid=["\']{re.escape(selector[1:])}["\']', html) is not None
    if re.fullmatch(r"\.[\w-]+", selector):
        return re.search(rf'\bclass=["\'][^"\']*\b{re.escape(selector[1:])}\b', html) is not None
    return selector in html


def assign_component_steps(components: list[ComponentIssue], snapshots: list[Snapshot]) -> list[ComponentIssue]:
    """Associate each component with the step and URL it most likely came from.

    The newest snapshot whose HTML contains the component's selector wins;
    otherwise a snapshot with the component's URL; otherwise the first one.
    """
    if not snapshots:
        return components

    assigned = []
    for component in components:
        if component.step is not None:
            assigned.append(component)
            continue

        match = None
        if component.selector:
            match = next((s for s in reversed(snapshots) if _selector_in_html(component.selector, s.html)), None)
        if match is None and component.url:
            match = next((s for s in snapshots if s.url == component.url), None)
        if match is None:
            match = snapshots[0]

        assigned.append(component.model_copy(update={"step": match.step, "url": component.url or match.url}))
    return assigned


class HierarchicalBatchAnalyzer:
    """Fans snapshots out into bounded requests and merges the results."""

    def __init__(
        self,
        service: TextAnalysisService,
        config: AnalysisConfig | None = None,
        progress: ProgressChannel | None = None,
    ):
        self.service = service
        self.config = config or AnalysisConfig()
        self.progress = progress

    async def _request(self, prompt: str, operation: str) -> str:
        return await request_text(self.service, prompt, operation=operation, timeout=self.config.request_timeout_s)

    def group_by_flow(self, snapshots: list[Snapshot], manifest: SessionManifest | None) -> dict[str, list[Snapshot]]:
        """Group non-excluded snapshots by flow type, main_app first then alphabetical."""
        groups: dict[str, list[Snapshot]] = {}
        for snapshot in snapshots:
            detail = manifest.detail_for(snapshot.step) if manifest else None
            if detail and detail.excluded:
                continue
            flow_type = detail.flow_type if detail else "main_app"
            groups.setdefault(flow_type, []).append(snapshot)

        order = sorted(groups, key=lambda flow: (flow != "main_app", flow))
        return {flow: groups[flow] for flow in order}

    def _tokens(self, snapshot: Snapshot, manifest: SessionManifest | None) -> int:
        detail = manifest.detail_for(snapshot.step) if manifest else None
        return detail.token_estimate if detail and detail.token_estimate else estimate_tokens(snapshot)

    def build_batches(self, snapshots: list[Snapshot], manifest: SessionManifest | None) -> list[AnalysisBatch]:
        """Split each flow group into budget-bounded batches."""
        planned: list[tuple[str, int, list[Snapshot]]] = []
        for flow_type, group in self.group_by_flow(snapshots, manifest).items():
            chunks = split_into_batches(group, self.config.batch_token_budget, lambda s: self._tokens(s, manifest))
            for number, chunk in enumerate(chunks, start=1):
                planned.append((flow_type, number, chunk))

        return [
            AnalysisBatch(
                batch_id=f"{flow_type}-{number}",
                index=index + 1,
                total=len(planned),
                flow_type=flow_type,
                snapshots=chunk,
                token_estimate=sum(self._tokens(s, manifest) for s in chunk),
            )
            for index, (flow_type, number, chunk) in enumerate(planned)
        ]

    async def analyze(self, snapshots: list[Snapshot], manifest: SessionManifest | None = None) -> AnalysisResult:
        """Analyze all relevant snapshots.

        Args:
            snapshots: Captured snapshots
            manifest: Session manifest used for exclusion, flow and step context

        Returns:
            Consolidated AnalysisResult

        Raises:
            BatchAnalysisError: If consolidation fails and no batch produced results
        """
        batches = self.build_batches(snapshots, manifest)
        if not batches:
            logger.info("no snapshots to analyze")
            return AnalysisResult()

        static_results: list[BatchResult] = []
        if self.config.static_sections:
            static_results, analyzed_hashes = await self.analyze_static_sections(snapshots, manifest)
            if analyzed_hashes:
                batches = [self._strip_static_sections(b, analyzed_hashes) for b in batches]

        progressive = ProgressiveContext()
        results: list[BatchResult] = []
        failed: list[str] = []

        for batch in batches:
            if self.progress:
                self.progress.publish(
                    Phase.ANALYZING,
                    f"Analyzing batch {batch.index} of {batch.total} ({batch.flow_type})",
                    step=batch.index,
                    total=batch.total,
                    snapshot_count=len(snapshots),
                )
            try:
                result, data = await self.analyze_batch(batch, manifest, progressive)
            except Exception as e:
                reason = e.reason if isinstance(e, AnalysisServiceError) else FailureReason.UNKNOWN
                logger.warning(
                    "batch analysis failed, skipping",
                    batch_id=batch.batch_id,
                    reason=reason.value,
                    error=str(e),
                )
                failed.append(batch.batch_id)
                continue

            results.append(result)
            self._advance(progressive, batch, result, data)

        all_results = static_results + results
        try:
            analysis = consolidate(all_results)
        except Exception as e:
            if not all_results:
                raise BatchAnalysisError(f"Consolidation failed with no batch results: {e}") from e
            logger.error("consolidation failed, using raw batch results", error=str(e))
            analysis = concatenate(all_results)

        analysis.components = assign_component_steps(analysis.components, snapshots)
        analysis.batches_total = len(batches)
        analysis.batches_succeeded = len(results)
        analysis.failed_batches = failed
        analysis.static_sections_analyzed = len(static_results)

        logger.info(
            "analysis complete",
            batches=len(batches),
            failed=len(failed),
            components=len(analysis.components),
            score=analysis.score,
        )
        return analysis

    async def analyze_batch(
        self,
        batch: AnalysisBatch,
        manifest: SessionManifest | None,
        progressive: ProgressiveContext,
    ) -> tuple[BatchResult, dict[str, Any]]:
        """Run one batch request.

        Returns:
            Tuple of (parsed result, raw response object for progressive hints)
        """
        prompt = build_batch_prompt(
            batch.snapshots,
            manifest,
            progressive,
            batch_label=f"{batch.index}/{batch.total}",
            flow_type=batch.flow_type,
            max_html_chars=self.config.max_html_chars,
        )
        operation = f"batch {batch.batch_id}"
        text = await self._request(prompt, operation)
        data = parse_json_response(text)
        if not isinstance(data, dict):
            raise AnalysisServiceError(operation, FailureReason.INVALID_RESPONSE, "response was not a JSON object")

        return BatchResult(
            batch_id=batch.batch_id,
            index=batch.index,
            flow_type=batch.flow_type,
            steps=batch.steps,
            summary=str(data.get("summary") or ""),
            components=normalize_components(data.get("components")),
            recommendations=_string_list(data.get("recommendations")),
            score=_score(data.get("score")),
        ), data

    def _advance(
        self,
        progressive: ProgressiveContext,
        batch: AnalysisBatch,
        result: BatchResult,
        data: dict[str, Any],
    ) -> None:
        critical = [f"{c.component_name}: {c.issue}" for c in result.components if c.impact == "critical"]
        critical += _string_list(data.get("critical_issues"))
        progressive.critical_issues = _dedupe(progressive.critical_issues + critical)[-MAX_CRITICAL_ISSUES:]

        if result.summary:
            finding = f"Batch {batch.index} ({batch.flow_type}, steps {batch.steps[0]}-{batch.steps[-1]}): {result.summary[:200]}"
            progressive.key_findings = (progressive.key_findings + [finding])[-MAX_KEY_FINDINGS:]
        progressive.key_findings = (progressive.key_findings + _string_list(data.get("key_findings")))[-MAX_KEY_FINDINGS:]

        hints = _string_list(data.get("flow_hints"))
        if hints:
            progressive.flow_hints = hints

        progressive.append_summary(f"[Batch {batch.index}] {result.summary}", self.config.summary_char_cap)

    def _sections(self, html: str) -> list[tuple[str, str, str]]:
        return [
            (match.group(1).lower(), match.group(0), hashlib.sha256(match.group(0).encode("utf-8")).hexdigest())
            for match in STATIC_SECTION_PATTERN.finditer(html)
        ]

    async def analyze_static_sections(
        self,
        snapshots: list[Snapshot],
        manifest: SessionManifest | None,
    ) -> tuple[list[BatchResult], set[str]]:
        """Analyze each distinct recurring section once.

        Every Nth snapshot is sampled; header, nav, footer and aside blocks
        are hashed and each distinct hash is analyzed concurrently.

        Returns:
            Tuple of (results, hashes that were analyzed successfully)
        """
        interval = max(1, self.config.static_sample_interval)
        relevant = [s for g in self.group_by_flow(snapshots, manifest).values() for s in g]

        distinct: dict[str, tuple[str, str, Snapshot]] = {}
        for snapshot in relevant[::interval]:
            for name, html, digest in self._sections(snapshot.html):
                distinct.setdefault(digest, (name, html, snapshot))

        if not distinct:
            return [], set()

        logger.info("analyzing static sections", sections=len(distinct), sampled=len(relevant[::interval]))
        digests = list(distinct)
        outcomes = await asyncio.gather(
            *(self._analyze_section(digest, *distinct[digest]) for digest in digests),
            return_exceptions=True,
        )

        results = []
        analyzed = set()
        for digest, outcome in zip(digests, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("static section analysis failed", section=digest[:12], error=str(outcome))
                continue
            results.append(outcome)
            analyzed.add(digest)
        return results, analyzed

    async def _analyze_section(self, digest: str, name: str, html: str, snapshot: Snapshot) -> BatchResult:
        operation = f"static {name} {digest[:12]}"
        prompt = build_static_section_prompt(name, html, snapshot.url, self.config.max_html_chars)
        data = parse_json_response(await self._request(prompt, operation))
        if not isinstance(data, dict):
            raise AnalysisServiceError(operation, FailureReason.INVALID_RESPONSE, "response was not a JSON object")

        components = [
            c.model_copy(update={"step": c.step or snapshot.step, "url": snapshot.url})
            for c in normalize_components(data.get("components"))
        ]
        return BatchResult(
            batch_id=f"static-{name}-{digest[:12]}",
            flow_type="static",
            steps=[snapshot.step],
            summary=str(data.get("summary") or ""),
            components=components,
            recommendations=_string_list(data.get("recommendations")),
            score=_score(data.get("score")),
        )

    def _strip_static_sections(self, batch: AnalysisBatch, hashes: set[str]) -> AnalysisBatch:
        stripped = []
        for snapshot in batch.snapshots:
            html = snapshot.html
            for name, section, digest in self._sections(html):
                if digest in hashes:
                    html = html.replace(section, f'<{name} data-analyzed-section="{digest[:12]}"></{name}>')
            stripped.append(snapshot.model_copy(update={"html": html}) if html != snapshot.html else snapshot)
        return batch.model_copy(update={"snapshots": stripped})
