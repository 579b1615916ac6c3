"""De-duplication and explanation of scan violations across snapshots."""

from typing import Any

import structlog

from web_access_advisor.errors import AnalysisServiceError
from web_access_advisor.llm import TextAnalysisService, parse_json_response, request_text
from web_access_advisor.models.analysis import Violation
from web_access_advisor.models.snapshot import Snapshot
from web_access_advisor.prompts import build_violation_prompt

logger = structlog.get_logger(__name__)

SEVERITY_ORDER = {"critical": 0, "serious": 1, "moderate": 2, "minor": 3}

# (rule id substrings, explanation, recommendation); first match wins
FALLBACK_GUIDANCE: list[tuple[tuple[str, ...], str, str]] = [
    (
        ("heading", "h1"),
        "Screen reader users navigate by headings; a missing or misordered heading structure hides the page outline.",
        "Provide one <h1> for the main content and keep heading levels sequential.",
    ),
    (
        ("contrast",),
        "Low contrast text is hard or impossible to read for users with low vision or colour deficiencies.",
        "Increase the contrast ratio between text and background to at least 4.5:1 (3:1 for large text).",
    ),
    (
        ("alt", "image"),
        "Images without a text alternative are announced as a file name or skipped by screen readers.",
        "Add descriptive alt text, or alt=\"\" for purely decorative images.",
    ),
    (
        ("label", "form"),
        "Form fields without an accessible label are announced without a purpose.",
        "Associate each input with a <label for> element or an aria-label/aria-labelledby attribute.",
    ),
    (
        ("aria",),
        "Invalid or misused ARIA attributes give assistive technology wrong information about a control.",
        "Use valid ARIA roles, states and properties and keep them in sync with the visual state.",
    ),
    (
        ("landmark", "region"),
        "Content outside landmarks cannot be reached with landmark navigation.",
        "Wrap page content in landmark elements such as <main>, <nav>, <header> and <footer>.",
    ),
    (
        ("focus", "keyboard", "tabindex"),
        "Keyboard users cannot operate or track elements that are unreachable or lack a visible focus indicator.",
        "Make interactive elements keyboard reachable and give them a visible focus style.",
    ),
]


def severity_rank(impact: str | None) -> int:
    return SEVERITY_ORDER.get((impact or "").lower(), len(SEVERITY_ORDER))


def fallback_guidance(violation: Violation) -> tuple[str, str]:
    """Deterministic explanation and recommendation for a rule id."""
    rule_id = violation.id.lower()
    for keywords, explanation, recommendation in FALLBACK_GUIDANCE:
        if any(k in rule_id for k in keywords):
            return explanation, recommendation

    explanation = violation.description or f"The page fails the '{violation.id}' accessibility rule."
    recommendation = violation.help or "Review the affected elements against the rule's documentation."
    return explanation, recommendation


def violation_key(raw: dict[str, Any]) -> str:
    """Rule id plus the joined target selectors of every affected node."""
    targets = []
    for node in raw.get("nodes") or []:
        target = node.get("target") or []
        targets.append(" ".join(str(t) for t in target) if isinstance(target, list) else str(target))
    return f"{raw.get('id', 'unknown')}::{'|'.join(targets)}"


class ViolationConsolidator:
    """Collapses per-snapshot scan violations into one ordered list."""

    def __init__(self, service: TextAnalysisService | None = None, timeout: float = 120.0):
        self.service = service
        self.timeout = timeout

    def collect(self, snapshots: list[Snapshot]) -> list[Violation]:
        """De-duplicate violations, recording every step each one appears at."""
        seen: dict[str, Violation] = {}
        for snapshot in snapshots:
            for raw in snapshot.axe_results:
                key = violation_key(raw)
                existing = seen.get(key)
                if existing:
                    if snapshot.step not in existing.step_occurrences:
                        existing.step_occurrences.append(snapshot.step)
                    continue
                seen[key] = Violation(
                    id=str(raw.get("id", "unknown")),
                    impact=raw.get("impact"),
                    description=raw.get("description") or "",
                    help=raw.get("help") or "",
                    help_url=raw.get("helpUrl") or raw.get("help_url") or "",
                    nodes=list(raw.get("nodes") or []),
                    first_step=snapshot.step,
                    url=snapshot.url,
                    step_occurrences=[snapshot.step],
                )
        return list(seen.values())

    async def explain(self, violations: list[Violation]) -> dict[str, dict[str, str]]:
        """Ask the analysis service for explanations of all distinct rule ids in one request."""
        if not self.service or not violations:
            return {}

        distinct: dict[str, dict[str, Any]] = {}
        for v in violations:
            distinct.setdefault(v.id, {"id": v.id, "impact": v.impact, "description": v.description, "help": v.help})

        prompt = build_violation_prompt(list(distinct.values()))
        try:
            text = await request_text(self.service, prompt, operation="explain violations", timeout=self.timeout)
        except AnalysisServiceError as e:
            logger.warning("violation explanation failed", reason=e.reason.value, error=e.message)
            return {}

        data = parse_json_response(text, {})
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, dict)}

    async def consolidate(self, snapshots: list[Snapshot]) -> list[Violation]:
        """Build the ordered, explained violation list for a session.

        Args:
            snapshots: Captured snapshots with their scan results

        Returns:
            Violations sorted critical, serious, moderate, minor, then unknown
        """
        violations = self.collect(snapshots)
        explanations = await self.explain(violations)

        for violation in violations:
            generated = explanations.get(violation.id) or {}
            explanation = generated.get("explanation")
            recommendation = generated.get("recommendation")
            if isinstance(explanation, str) and explanation.strip():
                violation.explanation = explanation.strip()
                violation.recommendation = (recommendation or "").strip() or fallback_guidance(violation)[1]
                violation.generated = True
            else:
                violation.explanation, violation.recommendation = fallback_guidance(violation)

        violations.sort(key=lambda v: severity_rank(v.impact))
        logger.info("violations consolidated", distinct=len(violations), explained=len(explanations))
        return violations
