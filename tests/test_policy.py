"""Tests for the snapshot policy."""

from web_access_advisor.models import Action, ChangeRecord
from web_access_advisor.policy import should_capture

QUIET = ChangeRecord(type="interaction", significant=False)
LOUD = ChangeRecord(type="content", significant=True)
NAV = ChangeRecord(type="navigation", significant=True)


def fill(selector, value):
    return Action(type="fill", selector=selector, value=value)


class TestShouldCapture:
    def test_first_action_always_captured(self):
        actions = [fill("#a", "x"), fill("#a", "y")]
        assert should_capture(actions[0], QUIET, 0, actions) is True

    def test_navigation_captured(self):
        actions = [Action(type="navigate", url="https://example.com"), Action(type="click", selector="#b")]
        assert should_capture(actions[1], NAV, 1, actions) is True

    def test_significant_change_captured(self):
        actions = [Action(type="navigate", url="https://example.com"), Action(type="click", selector="#b")]
        assert should_capture(actions[1], LOUD, 1, actions) is True

    def test_quiet_click_skipped(self):
        actions = [Action(type="navigate", url="https://example.com"), Action(type="click", selector="#b")]
        assert should_capture(actions[1], QUIET, 1, actions) is False

    def test_fill_debounce(self):
        actions = [
            Action(type="navigate", url="https://example.com"),
            fill("#a", "x"),
            fill("#a", "y"),
            Action(type="click", selector="#submit"),
        ]
        captured = [should_capture(a, QUIET, i, actions) for i, a in enumerate(actions)]
        # Only the last edit of #a among the fills
        assert captured[1:3] == [False, True]

    def test_fill_followed_by_other_field_captured(self):
        actions = [Action(type="navigate", url="https://example.com"), fill("#a", "x"), fill("#b", "y")]
        assert should_capture(actions[1], QUIET, 1, actions) is True

    def test_last_action_fill_captured(self):
        actions = [Action(type="navigate", url="https://example.com"), fill("#a", "x")]
        assert should_capture(actions[1], QUIET, 1, actions) is True

    def test_lookahead_is_one_action_only(self):
        actions = [
            Action(type="navigate", url="https://example.com"),
            fill("#a", "x"),
            Action(type="click", selector="#toggle"),
            fill("#a", "y"),
        ]
        assert should_capture(actions[1], QUIET, 1, actions) is True
