"""Prompt builders for the text-analysis service."""

import json

from web_access_advisor.models.analysis import ProgressiveContext
from web_access_advisor.models.manifest import SessionManifest
from web_access_advisor.models.snapshot import Snapshot

COMPONENT_SCHEMA = """{
  "summary": "Brief overview of accessibility status across these steps",
  "components": [
    {
      "component_name": "Component type, e.g. Dropdown Menu",
      "issue": "The problem, stated plainly",
      "explanation": "The accessibility rule violated",
      "relevant_html": "HTML snippet showing the issue",
      "corrected_code": "HTML that resolves the issue",
      "code_change_summary": "Brief description of the fix",
      "impact": "critical|serious|moderate|minor",
      "wcag_rule": "WCAG success criterion, e.g. 4.1.2",
      "selector": "CSS selector of the affected element, if known"
    }
  ],
  "recommendations": ["Actionable recommendation"],
  "score": 0,
  "critical_issues": ["One line per critical issue"],
  "key_findings": ["One line per notable finding"],
  "flow_hints": ["State the next batch should know about, e.g. 'menu left open'"]
}"""

COMPONENT_CHECKLIST = (
    "expandable content, dropdown menus, tab panels, modal dialogs, autocomplete lists, "
    "error handling and validation messages, live regions, carousels, tree views, data tables, "
    "tooltips, context menus and keyboard focus indicators"
)


def truncate_html(html: str, max_chars: int) -> str:
    """Trim HTML to ``max_chars``, cutting at a tag boundary when one is close."""
    if len(html) <= max_chars:
        return html
    truncated = html[:max_chars]
    last_tag = truncated.rfind("<")
    if last_tag > max_chars - 1000:
        return truncated[:last_tag]
    return truncated


def _progressive_block(context: ProgressiveContext) -> str:
    if context.is_empty:
        return "This is the first batch; no earlier findings."

    lines = []
    if context.summary:
        lines.append(f"Summary so far:\n{context.summary}")
    if context.critical_issues:
        lines.append("Critical issues already reported:\n" + "\n".join(f"- {i}" for i in context.critical_issues))
    if context.key_findings:
        lines.append("Key findings from earlier batches:\n" + "\n".join(f"- {f}" for f in context.key_findings))
    if context.flow_hints:
        lines.append("Page state carried over:\n" + "\n".join(f"- {h}" for h in context.flow_hints))
    return "\n\n".join(lines)


def _snapshot_block(snapshot: Snapshot, manifest: SessionManifest | None, max_html_chars: int) -> str:
    detail = manifest.detail_for(snapshot.step) if manifest else None
    header = [
        f"### Step {snapshot.step}: {snapshot.action}",
        f"URL: {snapshot.url}",
        f"DOM change: {snapshot.change.type} ({snapshot.change.description})",
    ]
    if detail:
        if detail.interaction_target:
            header.append(f"Target: {detail.interaction_target}")
        if detail.aria_changes:
            header.append("ARIA changes: " + "; ".join(detail.aria_changes))
        ctx = detail.accessibility_context
        header.append(
            f"Focus: {ctx.focused_element or 'none'} | modal open: {ctx.modal_open} | live regions: {ctx.live_regions}"
        )

    violations = [
        {"id": v.get("id"), "impact": v.get("impact"), "help": v.get("help"), "nodes": len(v.get("nodes") or [])}
        for v in snapshot.axe_results
    ]
    return "\n".join(
        header
        + [
            "Axe violations:",
            json.dumps(violations, indent=2),
            "HTML:",
            truncate_html(snapshot.html, max_html_chars),
        ]
    )


def build_batch_prompt(
    snapshots: list[Snapshot],
    manifest: SessionManifest | None,
    progressive: ProgressiveContext,
    *,
    batch_label: str,
    flow_type: str,
    max_html_chars: int,
) -> str:
    """Build the analysis prompt for one batch of snapshots."""
    session_lines = []
    if manifest:
        session_lines = [
            f"Session: {manifest.session_id}",
            f"Site: {manifest.url}",
            f"Captured steps: {manifest.total_steps}",
        ]
    per_snapshot_chars = max(1000, max_html_chars // max(1, len(snapshots)))
    snapshot_text = "\n\n".join(_snapshot_block(s, manifest, per_snapshot_chars) for s in snapshots)

    return f"""Analyze batch {batch_label} of a recorded user session ({flow_type} flow) for accessibility issues
in interactive components, focusing on screen reader and keyboard users.

## Session
{chr(10).join(session_lines) or "No session metadata."}

## Earlier batches
{_progressive_block(progressive)}

## Captured steps
{snapshot_text}

## Instructions
1. Locate interactive components: {COMPONENT_CHECKLIST}.
2. Check roles, states and properties (aria-expanded, aria-controls, aria-selected, aria-hidden,
   aria-live, aria-invalid, aria-describedby, aria-labelledby) and how they change between steps.
3. Use the axe violations as evidence but report component-level problems.
4. Do not repeat issues already listed under earlier batches unless they got worse.
5. Report only components that have an issue.

Respond with a single JSON object:
{COMPONENT_SCHEMA}
"""


def build_static_section_prompt(section_name: str, html: str, url: str, max_html_chars: int) -> str:
    """Build the prompt for one recurring page section (header, nav, footer, aside)."""
    return f"""The following <{section_name}> section repeats unchanged across many pages of {url}.
Analyze it once for accessibility issues: landmarks, link and button names, keyboard access,
skip links, menus and their ARIA state.

HTML:
{truncate_html(html, max_html_chars)}

Respond with a single JSON object:
{COMPONENT_SCHEMA}
"""


def build_violation_prompt(violations: list[dict]) -> str:
    """Build the single request asking for explanations of distinct scan violations."""
    return f"""For each axe-core violation below, write a short explanation of how it affects users of
assistive technology and a concrete recommendation to fix it.

Violations:
{json.dumps(violations, indent=2)}

Respond with a single JSON object keyed by violation id:
{{
  "<violation id>": {{"explanation": "...", "recommendation": "..."}}
}}
"""
