"""Pattern tables for flow classification and ARIA change detection.

Both tables are ordered data rather than branching code, so they can be
overridden from the YAML configuration and tested in isolation.
"""

import re
from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel

FlowType = Literal["main_app", "auth_flow", "error_flow", "external_redirect"]


class FlowRule(BaseModel):
    """Maps a regex over one part of a URL to a flow type."""

    flow_type: FlowType
    pattern: str
    target: Literal["url", "host", "path", "query"] = "url"


class AriaPattern(BaseModel):
    """A named accessibility attribute pattern counted in snapshot HTML."""

    name: str
    pattern: str


DEFAULT_FLOW_RULES: list[FlowRule] = [
    # Error pages
    FlowRule(
        flow_type="error_flow",
        target="path",
        pattern=r"/(404|500|502|503|error|errors|not[-_]?found|unavailable|oops)(/|$|\.)",
    ),
    FlowRule(flow_type="error_flow", target="query", pattern=r"(^|&)error(_description)?="),
    # Identity providers and login hosts
    FlowRule(
        flow_type="auth_flow",
        target="host",
        pattern=r"^(auth|login|signin|signup|sso|oauth|identity|accounts|adfs|okta|saml|openid|sts|federation|idp)\.",
    ),
    FlowRule(
        flow_type="auth_flow",
        target="host",
        pattern=r"(b2clogin\.com|microsoftonline\.com|okta\.com|auth0\.com|onelogin\.com|accounts\.google\.com)$",
    ),
    # Login, signup, consent and recovery paths
    FlowRule(
        flow_type="auth_flow",
        target="path",
        pattern=(
            r"/(auth|login|logout|signin|sign-in|sign_in|signup|sign-up|register|oauth2?|sso|saml|openid"
            r"|authorize|authenticate|mfa|2fa|verify|verification|forgot|reset-password|consent)(/|$|\.)"
        ),
    ),
    FlowRule(flow_type="auth_flow", target="path", pattern=r"/(account/(login|signin|register)|users/sign_(in|up)|session/new)"),
    FlowRule(flow_type="auth_flow", target="query", pattern=r"(^|&)(client_id|response_type|redirect_uri|code_challenge)="),
]

DEFAULT_ARIA_PATTERNS: list[AriaPattern] = [
    AriaPattern(name="aria-expanded=true", pattern=r'aria-expanded="true"'),
    AriaPattern(name="aria-expanded=false", pattern=r'aria-expanded="false"'),
    AriaPattern(name="aria-hidden=true", pattern=r'aria-hidden="true"'),
    AriaPattern(name="aria-selected=true", pattern=r'aria-selected="true"'),
    AriaPattern(name="aria-checked=true", pattern=r'aria-checked="true"'),
    AriaPattern(name="aria-pressed=true", pattern=r'aria-pressed="true"'),
    AriaPattern(name="aria-invalid=true", pattern=r'aria-invalid="true"'),
    AriaPattern(name="aria-busy=true", pattern=r'aria-busy="true"'),
    AriaPattern(name="aria-modal=true", pattern=r'aria-modal="true"'),
    AriaPattern(name="aria-live", pattern=r"aria-live=\"(polite|assertive)\""),
    AriaPattern(name="aria-describedby", pattern=r"aria-describedby="),
    AriaPattern(name="aria-activedescendant", pattern=r"aria-activedescendant="),
    AriaPattern(name="role=dialog", pattern=r"role=\"(dialog|alertdialog)\""),
    AriaPattern(name="role=alert", pattern=r'role="alert"'),
    AriaPattern(name="role=status", pattern=r'role="status"'),
    AriaPattern(name="dialog open", pattern=r"<dialog\b[^>]*\bopen\b"),
]


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


def _normalize_host(host: str) -> str:
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def classify_flow(url: str, target_url: str | None, rules: list[FlowRule] | None = None) -> FlowType:
    """Classify a step URL into a flow type.

    Rules are tried in order and the first match wins. When no rule matches,
    a URL on the session's own host (or a subdomain of it) is ``main_app``;
    anything else is ``external_redirect``.
    """
    rules = DEFAULT_FLOW_RULES if rules is None else rules
    parsed = urlparse(url or "")
    parts = {
        "url": (url or "").lower(),
        "host": (parsed.hostname or "").lower(),
        "path": parsed.path.lower(),
        "query": parsed.query.lower(),
    }

    for rule in rules:
        if _compile(rule.pattern).search(parts[rule.target]):
            return rule.flow_type

    if target_url and parts["host"]:
        main_host = _normalize_host(urlparse(target_url).hostname or "")
        host = _normalize_host(parts["host"])
        if main_host and (host == main_host or host.endswith("." + main_host)):
            return "main_app"

    return "external_redirect"


def count_aria_patterns(html: str, patterns: list[AriaPattern] | None = None) -> dict[str, int]:
    """Count occurrences of each ARIA pattern in an HTML string."""
    patterns = DEFAULT_ARIA_PATTERNS if patterns is None else patterns
    return {p.name: len(_compile(p.pattern).findall(html or "")) for p in patterns}


def diff_aria_patterns(
    previous_html: str | None,
    current_html: str,
    patterns: list[AriaPattern] | None = None,
) -> list[str]:
    """Describe how ARIA pattern counts changed between two HTML snapshots.

    Returns one entry per pattern whose count differs, e.g.
    ``"aria-expanded=true: 0 -> 1"``. With no previous HTML every pattern
    present in the current HTML is reported as appearing.
    """
    current = count_aria_patterns(current_html, patterns)
    previous = count_aria_patterns(previous_html or "", patterns)
    return [
        f"{name}: {previous[name]} -> {count}"
        for name, count in current.items()
        if count != previous[name]
    ]
