"""Configuration management via environment variables and YAML."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from web_access_advisor.rules import DEFAULT_ARIA_PATTERNS, DEFAULT_FLOW_RULES, AriaPattern, FlowRule


class BrowserConfig(BaseModel):
    """Browser launch configuration used when no page is supplied."""

    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str | None = None
    extra_args: list[str] = Field(default_factory=list)
    # Playwright storage-state JSON (cookies, localStorage) loaded into the replay context
    storage_state: str | None = None


class ReplayConfig(BaseModel):
    """Timing and tolerance for action replay."""

    wait_for_stability: bool = True
    stability_timeout_ms: int = 15000
    navigation_timeout_ms: int = 30000
    action_timeout_ms: int = 10000
    network_idle_timeout_ms: int = 3000
    settle_navigate_ms: int = 1500
    settle_click_ms: int = 1000
    settle_form_input_ms: int = 750
    settle_default_ms: int = 500
    state_read_attempts: int = 3


class CaptureConfig(BaseModel):
    """Snapshot capture configuration."""

    capture_screenshots: bool = True
    max_attempts: int = 3
    readiness_delay_ms: int = 1000
    retry_delay_ms: int = 500
    min_html_length: int = 100
    axe_script_path: Path | None = None
    axe_script_url: str = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"


class StorageConfig(BaseModel):
    """Where session artifacts are written."""

    output_dir: Path = Path("snapshots")


class AnalysisConfig(BaseModel):
    """Text-analysis service and batching configuration."""

    enabled: bool = True
    model: str = "claude-sonnet-4-5"
    api_key: str | None = None
    max_output_tokens: int = 8192
    request_timeout_s: float = 120.0
    batch_token_budget: int = 120000
    summary_char_cap: int = 4000
    max_html_chars: int = 50000
    static_sections: bool = False
    static_sample_interval: int = 5


class RulesConfig(BaseModel):
    """Ordered pattern tables for flow classification and ARIA diffs."""

    flow_rules: list[FlowRule] = Field(default_factory=lambda: list(DEFAULT_FLOW_RULES))
    aria_patterns: list[AriaPattern] = Field(default_factory=lambda: list(DEFAULT_ARIA_PATTERNS))


class LoggingConfig(BaseModel):
    """Logging output configuration."""

    level: str = "INFO"
    json_format: bool = False


class Config(BaseModel):
    """Main configuration class."""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    replay: ReplayConfig = Field(default_factory=ReplayConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    rules: RulesConfig = Field(default_factory=RulesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        axe_path = os.getenv("AXE_SCRIPT_PATH")
        return cls(
            browser=BrowserConfig(
                headless=os.getenv("HEADLESS", "true").lower() == "true",
                viewport_width=int(os.getenv("VIEWPORT_WIDTH", "1280")),
                viewport_height=int(os.getenv("VIEWPORT_HEIGHT", "800")),
                user_agent=os.getenv("USER_AGENT"),
                storage_state=os.getenv("STORAGE_STATE"),
            ),
            replay=ReplayConfig(
                wait_for_stability=os.getenv("WAIT_FOR_STABILITY", "true").lower() == "true",
                stability_timeout_ms=int(os.getenv("STABILITY_TIMEOUT_MS", "15000")),
                navigation_timeout_ms=int(os.getenv("NAVIGATION_TIMEOUT_MS", "30000")),
                action_timeout_ms=int(os.getenv("ACTION_TIMEOUT_MS", "10000")),
            ),
            capture=CaptureConfig(
                capture_screenshots=os.getenv("CAPTURE_SCREENSHOTS", "true").lower() == "true",
                axe_script_path=Path(axe_path) if axe_path else None,
            ),
            storage=StorageConfig(
                output_dir=Path(os.getenv("OUTPUT_DIR", "snapshots")),
            ),
            analysis=AnalysisConfig(
                enabled=os.getenv("ANALYZE_WITH_LLM", "true").lower() == "true",
                model=os.getenv("ANALYSIS_MODEL", "claude-sonnet-4-5"),
                api_key=os.getenv("ANTHROPIC_API_KEY"),
                request_timeout_s=float(os.getenv("ANALYSIS_TIMEOUT_S", "120")),
                batch_token_budget=int(os.getenv("BATCH_TOKEN_BUDGET", "120000")),
                static_sections=os.getenv("STATIC_SECTIONS", "false").lower() == "true",
            ),
            logging=LoggingConfig(
                level=os.getenv("LOG_LEVEL", "INFO"),
                json_format=os.getenv("LOG_JSON", "false").lower() == "true",
            ),
        )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file (if exists) merged with env vars.

        Environment variables take precedence over YAML values.
        """
        base_config: dict[str, Any] = {}

        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    base_config = yaml.safe_load(f) or {}

        default_path = Path("advisor.yml")
        if not config_path and default_path.exists():
            with open(default_path) as f:
                base_config = yaml.safe_load(f) or {}

        config = cls(**base_config) if base_config else cls()

        env_config = cls.from_env()

        # Only explicitly set env vars override YAML
        if os.getenv("HEADLESS"):
            config.browser.headless = env_config.browser.headless
        if os.getenv("VIEWPORT_WIDTH"):
            config.browser.viewport_width = env_config.browser.viewport_width
        if os.getenv("VIEWPORT_HEIGHT"):
            config.browser.viewport_height = env_config.browser.viewport_height
        if os.getenv("USER_AGENT"):
            config.browser.user_agent = env_config.browser.user_agent
        if os.getenv("STORAGE_STATE"):
            config.browser.storage_state = env_config.browser.storage_state
        if os.getenv("WAIT_FOR_STABILITY"):
            config.replay.wait_for_stability = env_config.replay.wait_for_stability
        if os.getenv("STABILITY_TIMEOUT_MS"):
            config.replay.stability_timeout_ms = env_config.replay.stability_timeout_ms
        if os.getenv("NAVIGATION_TIMEOUT_MS"):
            config.replay.navigation_timeout_ms = env_config.replay.navigation_timeout_ms
        if os.getenv("ACTION_TIMEOUT_MS"):
            config.replay.action_timeout_ms = env_config.replay.action_timeout_ms
        if os.getenv("CAPTURE_SCREENSHOTS"):
            config.capture.capture_screenshots = env_config.capture.capture_screenshots
        if os.getenv("AXE_SCRIPT_PATH"):
            config.capture.axe_script_path = env_config.capture.axe_script_path
        if os.getenv("OUTPUT_DIR"):
            config.storage.output_dir = env_config.storage.output_dir
        if os.getenv("ANALYZE_WITH_LLM"):
            config.analysis.enabled = env_config.analysis.enabled
        if os.getenv("ANALYSIS_MODEL"):
            config.analysis.model = env_config.analysis.model
        if os.getenv("ANTHROPIC_API_KEY"):
            config.analysis.api_key = env_config.analysis.api_key
        if os.getenv("ANALYSIS_TIMEOUT_S"):
            config.analysis.request_timeout_s = env_config.analysis.request_timeout_s
        if os.getenv("BATCH_TOKEN_BUDGET"):
            config.analysis.batch_token_budget = env_config.analysis.batch_token_budget
        if os.getenv("STATIC_SECTIONS"):
            config.analysis.static_sections = env_config.analysis.static_sections
        if os.getenv("LOG_LEVEL"):
            config.logging.level = env_config.logging.level
        if os.getenv("LOG_JSON"):
            config.logging.json_format = env_config.logging.json_format

        return config

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to a YAML file (the API key is never written)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json", exclude={"analysis": {"api_key"}})
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)
