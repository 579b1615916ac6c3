"""Builds the session manifest from captured snapshots."""

import json
import math
import re
from pathlib import Path

from web_access_advisor.config import RulesConfig
from web_access_advisor.models.actions import Action
from web_access_advisor.models.manifest import (
    AccessibilityContext,
    ActionCategory,
    ActionGroup,
    FlowStatistics,
    LLMOptimization,
    SessionManifest,
    StepDetail,
)
from web_access_advisor.models.snapshot import Snapshot
from web_access_advisor.rules import classify_flow, diff_aria_patterns

ACTION_CATEGORIES: dict[str, ActionCategory] = {
    "navigate": "navigation",
    "scroll": "navigation",
    "click": "interaction",
    "hover": "interaction",
    "key": "interaction",
    "fill": "form_input",
    "select": "form_input",
}

EXCLUSION_REASONS = {
    "auth_flow": "Authentication flow",
    "error_flow": "Error page",
}

_AUTOFOCUS = re.compile(r"<(\w+)[^>]*\bautofocus\b[^>]*>", re.IGNORECASE)
_AUTOFOCUS_ID = re.compile(r'\bid="([^"]+)"', re.IGNORECASE)
_MODAL = re.compile(r'aria-modal="true"|role="(dialog|alertdialog)"|<dialog\b[^>]*\bopen\b', re.IGNORECASE)
_LIVE_REGION = re.compile(r'aria-live="(polite|assertive)"|role="(alert|status|log)"', re.IGNORECASE)


def estimate_tokens(snapshot: Snapshot) -> int:
    """Rough token estimate: one token per four characters of each payload."""
    context_json = snapshot.axe_context.model_dump_json()
    violations_json = json.dumps(snapshot.axe_results, default=str)
    return (
        math.ceil(len(snapshot.html) / 4)
        + math.ceil(len(context_json) / 4)
        + math.ceil(len(violations_json) / 4)
    )


def accessibility_context(snapshot: Snapshot) -> AccessibilityContext:
    """Summarise focus, modal and live-region state from a snapshot."""
    focused = snapshot.axe_context.active_element
    if not focused:
        match = _AUTOFOCUS.search(snapshot.html)
        if match:
            id_match = _AUTOFOCUS_ID.search(match.group(0))
            focused = match.group(1).lower() + (f"#{id_match.group(1)}" if id_match else "")

    return AccessibilityContext(
        focused_element=focused,
        modal_open=bool(_MODAL.search(snapshot.html)),
        live_regions=len(_LIVE_REGION.findall(snapshot.html)),
    )


def target_url_for(actions: list[Action]) -> str:
    """The session's main site: the first navigation target."""
    for action in actions:
        if action.type == "navigate" and action.url:
            return action.url
    return "unknown"


def _basename(path: str | None) -> str:
    return Path(path).name if path else ""


def _action_for_step(actions: list[Action], step: int) -> Action | None:
    if 1 <= step <= len(actions):
        return actions[step - 1]
    return None


def build_step_details(
    actions: list[Action],
    snapshots: list[Snapshot],
    target_url: str,
    rules: RulesConfig | None = None,
) -> list[StepDetail]:
    rules = rules or RulesConfig()
    details = []
    previous: Snapshot | None = None

    for snapshot in snapshots:
        action = _action_for_step(actions, snapshot.step)
        flow_type = classify_flow(snapshot.url, target_url, rules.flow_rules)
        reason = EXCLUSION_REASONS.get(flow_type)

        details.append(
            StepDetail(
                step=snapshot.step,
                parent_step=previous.step if previous else None,
                action=snapshot.action,
                action_type=ACTION_CATEGORIES.get(snapshot.action, "other"),
                interaction_target=(action.selector or action.url) if action else None,
                url=snapshot.url,
                timestamp=snapshot.timestamp,
                flow_type=flow_type,
                excluded=reason is not None,
                exclusion_reason=reason,
                html_file=_basename(snapshot.files.html),
                axe_file=_basename(snapshot.files.axe_context),
                axe_results_file=_basename(snapshot.files.axe_results),
                screenshot_file=_basename(snapshot.files.screenshot) or None,
                dom_change_type=snapshot.change.type,
                dom_changes=snapshot.change.description,
                significant_change=snapshot.change.significant,
                aria_changes=diff_aria_patterns(previous.html if previous else None, snapshot.html, rules.aria_patterns),
                accessibility_context=accessibility_context(snapshot),
                token_estimate=estimate_tokens(snapshot),
            )
        )
        previous = snapshot

    return details


def group_actions(details: list[StepDetail]) -> list[ActionGroup]:
    """Run-length group consecutive steps that share a flow type."""
    groups: list[ActionGroup] = []
    for detail in details:
        last = groups[-1] if groups else None
        if last and last.flow_type == detail.flow_type:
            last.steps.append(detail.step)
            last.end_step = detail.step
            last.token_estimate += detail.token_estimate
            continue
        groups.append(
            ActionGroup(
                group_id=len(groups) + 1,
                flow_type=detail.flow_type,
                start_step=detail.step,
                end_step=detail.step,
                steps=[detail.step],
                token_estimate=detail.token_estimate,
                relevant=detail.flow_type == "main_app",
            )
        )
    return groups


def flow_statistics(details: list[StepDetail]) -> FlowStatistics:
    counts: dict[str, int] = {}
    for detail in details:
        counts[detail.flow_type] = counts.get(detail.flow_type, 0) + 1
    return FlowStatistics(
        total_steps=len(details),
        flow_counts=counts,
        significant_dom_changes=sum(1 for d in details if d.significant_change),
        accessibility_event_steps=sum(1 for d in details if d.aria_changes),
    )


def llm_optimization(details: list[StepDetail]) -> LLMOptimization:
    excluded_by_reason: dict[str, int] = {}
    for detail in details:
        if detail.excluded and detail.exclusion_reason:
            excluded_by_reason[detail.exclusion_reason] = excluded_by_reason.get(detail.exclusion_reason, 0) + 1
    return LLMOptimization(
        total_steps=len(details),
        excluded_steps=sum(1 for d in details if d.excluded),
        excluded_by_reason=excluded_by_reason,
        total_tokens=sum(d.token_estimate for d in details),
        analyzed_tokens=sum(d.token_estimate for d in details if not d.excluded),
    )


def build_manifest(
    session_id: str,
    target_url: str | None,
    actions: list[Action],
    snapshots: list[Snapshot],
    rules: RulesConfig | None = None,
) -> SessionManifest:
    """Aggregate captured snapshots into a SessionManifest.

    Args:
        session_id: Session identifier
        target_url: Main site URL; None uses the first navigation target
        actions: Replayed actions, in order
        snapshots: Captured snapshots, in step order
        rules: Flow and ARIA rule tables (defaults when omitted)

    Returns:
        SessionManifest ready to persist
    """
    url = target_url or target_url_for(actions)
    details = build_step_details(actions, snapshots, url, rules)
    return SessionManifest(
        session_id=session_id,
        url=url,
        total_steps=len(details),
        step_details=details,
        action_groups=group_actions(details),
        flow_statistics=flow_statistics(details),
        llm_optimization=llm_optimization(details),
    )
