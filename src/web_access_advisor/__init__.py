"""Web Access Advisor - Replay recorded browser sessions and report accessibility issues."""

from web_access_advisor.batching import HierarchicalBatchAnalyzer
from web_access_advisor.browser import ReplayBrowser
from web_access_advisor.capture import CaptureEngine
from web_access_advisor.changes import detect_change
from web_access_advisor.config import Config
from web_access_advisor.errors import (
    AdvisorError,
    AnalysisServiceError,
    AnalysisTimeoutError,
    BatchAnalysisError,
    FailureReason,
    PageUnavailableError,
    PipelineNotInitializedError,
)
from web_access_advisor.llm import AnthropicTextService, TextAnalysisService
from web_access_advisor.logs import configure_logging
from web_access_advisor.manifest import build_manifest
from web_access_advisor.pipeline import run_session
from web_access_advisor.policy import should_capture
from web_access_advisor.progress import Phase, ProgressChannel, ProgressEvent
from web_access_advisor.replay import ReplayEngine, ReplayOutcome
from web_access_advisor.scanner import AccessibilityScanner, AxeScanner
from web_access_advisor.storage import SessionStore
from web_access_advisor.violations import ViolationConsolidator

__version__ = "0.1.0"

__all__ = [
    "run_session",
    "Config",
    "configure_logging",
    "ReplayBrowser",
    "ReplayEngine",
    "ReplayOutcome",
    "CaptureEngine",
    "AccessibilityScanner",
    "AxeScanner",
    "detect_change",
    "should_capture",
    "build_manifest",
    "HierarchicalBatchAnalyzer",
    "ViolationConsolidator",
    "TextAnalysisService",
    "AnthropicTextService",
    "SessionStore",
    "Phase",
    "ProgressChannel",
    "ProgressEvent",
    "AdvisorError",
    "AnalysisServiceError",
    "AnalysisTimeoutError",
    "BatchAnalysisError",
    "FailureReason",
    "PageUnavailableError",
    "PipelineNotInitializedError",
]
