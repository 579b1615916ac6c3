"""Exception types shared across the replay and analysis pipeline."""

from enum import Enum


class AdvisorError(Exception):
    """Base class for all pipeline errors."""


class PipelineNotInitializedError(AdvisorError):
    """Raised when a session is started without a usable page."""


class PageUnavailableError(AdvisorError):
    """Raised when the page handle can no longer be read."""


class FailureReason(str, Enum):
    """Why a text-analysis request failed."""

    TIMEOUT = "timeout"
    QUOTA = "quota"
    CONTENT_FILTER = "content_filter"
    INVALID_RESPONSE = "invalid_response"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class AnalysisServiceError(AdvisorError):
    """A text-analysis request failed for a known reason."""

    def __init__(self, operation: str, reason: FailureReason, message: str = ""):
        self.operation = operation
        self.reason = reason
        self.message = message
        super().__init__(f"{operation} failed ({reason.value}){': ' + message if message else ''}")


class AnalysisTimeoutError(AnalysisServiceError):
    """A text-analysis request did not finish before its deadline."""

    def __init__(self, operation: str, timeout: float):
        self.timeout = timeout
        super().__init__(operation, FailureReason.TIMEOUT, f"no response within {timeout:g}s")


class BatchAnalysisError(AdvisorError):
    """Consolidation failed and no batch produced any results."""
