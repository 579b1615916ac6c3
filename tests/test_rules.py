"""Tests for flow classification and ARIA pattern tables."""

import pytest

from web_access_advisor.rules import (
    AriaPattern,
    FlowRule,
    classify_flow,
    count_aria_patterns,
    diff_aria_patterns,
)

TARGET = "https://www.example.com/"


class TestClassifyFlow:
    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/login",
            "https://example.com/account/signin?next=/",
            "https://login.microsoftonline.com/common/oauth2/authorize",
            "https://auth.example.com/",
            "https://example.com/cb?client_id=abc&response_type=code",
        ],
    )
    def test_auth_flow(self, url):
        assert classify_flow(url, TARGET) == "auth_flow"

    @pytest.mark.parametrize("url", ["https://example.com/404", "https://example.com/error?code=1", "https://example.com/?error=denied"])
    def test_error_flow(self, url):
        assert classify_flow(url, TARGET) == "error_flow"

    def test_error_wins_over_auth(self):
        assert classify_flow("https://example.com/login?error=expired", TARGET) == "error_flow"

    def test_main_app_ignores_www_and_subdomains(self):
        assert classify_flow("https://example.com/products", TARGET) == "main_app"
        assert classify_flow("https://shop.example.com/cart", TARGET) == "main_app"

    def test_external(self):
        assert classify_flow("https://other.org/page", TARGET) == "external_redirect"

    def test_unknown_target(self):
        assert classify_flow("https://example.com/", None) == "external_redirect"

    def test_custom_rules(self):
        rules = [FlowRule(flow_type="auth_flow", target="path", pattern=r"^/gate")]
        assert classify_flow("https://example.com/gate", TARGET, rules) == "auth_flow"
        # Default rules are not consulted
        assert classify_flow("https://example.com/login", TARGET, rules) == "main_app"


class TestAriaPatterns:
    def test_count(self):
        html = '<button aria-expanded="true"></button><div role="dialog" aria-modal="true"></div>'
        counts = count_aria_patterns(html)
        assert counts["aria-expanded=true"] == 1
        assert counts["role=dialog"] == 1
        assert counts["aria-modal=true"] == 1
        assert counts["role=alert"] == 0

    def test_diff(self):
        before = '<button aria-expanded="false"></button>'
        after = '<button aria-expanded="true"></button><div role="alert"></div>'
        changes = diff_aria_patterns(before, after)
        assert "aria-expanded=true: 0 -> 1" in changes
        assert "aria-expanded=false: 1 -> 0" in changes
        assert "role=alert: 0 -> 1" in changes

    def test_diff_without_previous(self):
        changes = diff_aria_patterns(None, '<div aria-live="polite"></div>')
        assert changes == ["aria-live: 0 -> 1"]

    def test_no_changes(self):
        html = '<div aria-hidden="true"></div>'
        assert diff_aria_patterns(html, html) == []

    def test_custom_patterns(self):
        patterns = [AriaPattern(name="tooltip", pattern=r'role="tooltip"')]
        assert count_aria_patterns('<span role="tooltip"></span>', patterns) == {"tooltip": 1}
