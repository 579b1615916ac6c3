"""Tests for the manifest builder."""

import json
import math

from conftest import make_snapshot, violation

from web_access_advisor.config import RulesConfig
from web_access_advisor.manifest import (
    accessibility_context,
    build_manifest,
    estimate_tokens,
    target_url_for,
)
from web_access_advisor.models import Action, AxeContext
from web_access_advisor.rules import FlowRule

ACTIONS = [
    Action(type="navigate", url="https://example.com/"),
    Action(type="click", selector="#menu"),
    Action(type="fill", selector="#email", value="a@b.c"),
    Action(type="navigate", url="https://login.example.com/"),
    Action(type="navigate", url="https://example.com/dashboard"),
]


def session_snapshots():
    return [
        make_snapshot(1, action="navigate", change_type="navigation"),
        make_snapshot(2, html='<html><body><button aria-expanded="true">Menu</button></body></html>'),
        make_snapshot(3, action="fill", change_type="interaction", significant=False),
        make_snapshot(4, action="navigate", url="https://login.example.com/", change_type="navigation"),
        make_snapshot(5, action="navigate", url="https://example.com/dashboard", change_type="navigation"),
    ]


class TestTargetUrl:
    def test_first_navigation(self):
        assert target_url_for(ACTIONS) == "https://example.com/"

    def test_unknown(self):
        assert target_url_for([Action(type="click", selector="#x")]) == "unknown"


class TestEstimateTokens:
    def test_sums_each_payload(self):
        snapshot = make_snapshot(1, html="x" * 401, violations=[violation("region", "moderate", "div")])
        expected = (
            math.ceil(401 / 4)
            + math.ceil(len(snapshot.axe_context.model_dump_json()) / 4)
            + math.ceil(len(json.dumps(snapshot.axe_results)) / 4)
        )
        assert estimate_tokens(snapshot) == expected


class TestAccessibilityContext:
    def test_active_element_preferred(self):
        snapshot = make_snapshot(1, html='<input id="q" autofocus>')
        snapshot.axe_context = AxeContext(url="https://example.com/", active_element="button#save")
        assert accessibility_context(snapshot).focused_element == "button#save"

    def test_autofocus_fallback(self):
        snapshot = make_snapshot(1, html='<form><input type="search" id="q" autofocus></form>')
        assert accessibility_context(snapshot).focused_element == "input#q"

    def test_modal_and_live_regions(self):
        html = '<div role="dialog" aria-modal="true"></div><p role="status"></p><div aria-live="polite"></div>'
        ctx = accessibility_context(make_snapshot(1, html=html))
        assert ctx.modal_open is True
        assert ctx.live_regions == 2

    def test_plain_page(self):
        ctx = accessibility_context(make_snapshot(1))
        assert ctx.focused_element is None
        assert ctx.modal_open is False
        assert ctx.live_regions == 0


class TestBuildManifest:
    def test_step_details(self):
        manifest = build_manifest("s1", None, ACTIONS, session_snapshots())

        assert manifest.url == "https://example.com/"
        assert manifest.total_steps == 5
        first, second, third, auth, last = manifest.step_details

        assert first.parent_step is None
        assert second.parent_step == 1
        assert first.action_type == "navigation"
        assert second.action_type == "interaction"
        assert third.action_type == "form_input"
        assert second.interaction_target == "#menu"
        assert first.interaction_target == "https://example.com/"

        assert "aria-expanded=true: 0 -> 1" in second.aria_changes
        assert "aria-expanded=true: 1 -> 0" in third.aria_changes

        assert auth.flow_type == "auth_flow"
        assert auth.excluded is True
        assert auth.exclusion_reason == "Authentication flow"
        assert last.flow_type == "main_app"
        assert not last.excluded

        assert third.dom_change_type == "interaction"
        assert third.significant_change is False
        assert first.token_estimate > 0

    def test_file_names_are_basenames(self):
        snapshot = make_snapshot(1)
        snapshot.files.html = "/tmp/s/step_001/snapshot.html"
        snapshot.files.axe_context = "/tmp/s/step_001/axe_context.json"
        manifest = build_manifest("s1", "https://example.com/", ACTIONS[:1], [snapshot])
        detail = manifest.step_details[0]
        assert detail.html_file == "snapshot.html"
        assert detail.axe_file == "axe_context.json"
        assert detail.screenshot_file is None

    def test_action_groups(self):
        manifest = build_manifest("s1", None, ACTIONS, session_snapshots())

        groups = [(g.flow_type, g.steps, g.relevant) for g in manifest.action_groups]
        assert groups == [
            ("main_app", [1, 2, 3], True),
            ("auth_flow", [4], False),
            ("main_app", [5], True),
        ]
        details = {d.step: d for d in manifest.step_details}
        assert manifest.action_groups[0].token_estimate == sum(details[s].token_estimate for s in (1, 2, 3))

    def test_statistics_and_optimization(self):
        manifest = build_manifest("s1", None, ACTIONS, session_snapshots())

        stats = manifest.flow_statistics
        assert stats.total_steps == 5
        assert stats.flow_counts == {"main_app": 4, "auth_flow": 1}
        assert stats.significant_dom_changes == 4

        opt = manifest.llm_optimization
        assert opt.excluded_steps == 1
        assert opt.excluded_by_reason == {"Authentication flow": 1}
        auth_tokens = manifest.step_details[3].token_estimate
        assert opt.analyzed_tokens == opt.total_tokens - auth_tokens

    def test_custom_rules(self):
        rules = RulesConfig(flow_rules=[FlowRule(flow_type="error_flow", target="path", pattern=r"^/dashboard")])
        manifest = build_manifest("s1", None, ACTIONS, session_snapshots(), rules)
        last = manifest.step_details[-1]
        assert last.flow_type == "error_flow"
        assert last.exclusion_reason == "Error page"
        # login host no longer matches any rule and is a subdomain of the target
        assert manifest.step_details[3].flow_type == "main_app"

    def test_empty(self):
        manifest = build_manifest("s1", None, [], [])
        assert manifest.url == "unknown"
        assert manifest.total_steps == 0
        assert manifest.step_details == []
        assert manifest.action_groups == []
