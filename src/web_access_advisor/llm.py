"""Text-analysis service used for batch analysis and violation explanations."""

import asyncio
import json
import re
from typing import Any, Protocol

import anthropic
import structlog

from web_access_advisor.config import AnalysisConfig
from web_access_advisor.errors import AnalysisServiceError, AnalysisTimeoutError, FailureReason

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a web accessibility expert reviewing captured page states against WCAG 2.2. "
    "Respond with JSON only, following the schema given in each request."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class TextAnalysisService(Protocol):
    """Anything that turns a prompt into response text."""

    async def complete(self, prompt: str, *, operation: str) -> str: ...


class AnthropicTextService:
    """TextAnalysisService backed by the Anthropic Messages API.

    Every call is bounded by ``request_timeout_s``; failures are raised as
    AnalysisServiceError with a FailureReason so callers can log and move on.
    """

    def __init__(self, config: AnalysisConfig | None = None, client: anthropic.AsyncAnthropic | None = None):
        self.config = config or AnalysisConfig()
        self.client = client or anthropic.AsyncAnthropic(api_key=self.config.api_key)

    async def complete(self, prompt: str, *, operation: str) -> str:
        """Send a single-turn prompt and return the text of the reply.

        Args:
            prompt: User prompt
            operation: Name of the calling operation, carried on errors

        Returns:
            Concatenated text blocks of the response

        Raises:
            AnalysisTimeoutError: If no response arrives in time
            AnalysisServiceError: For quota, refusal, empty or transport failures
        """
        timeout = self.config.request_timeout_s
        try:
            response = await asyncio.wait_for(
                self.client.messages.create(
                    model=self.config.model,
                    max_tokens=self.config.max_output_tokens,
                    system=SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError(operation, timeout) from e
        except anthropic.RateLimitError as e:
            raise AnalysisServiceError(operation, FailureReason.QUOTA, str(e)) from e
        except anthropic.APIStatusError as e:
            reason = FailureReason.UNAVAILABLE if e.status_code >= 500 else FailureReason.UNKNOWN
            raise AnalysisServiceError(operation, reason, str(e)) from e
        except anthropic.APIConnectionError as e:
            raise AnalysisServiceError(operation, FailureReason.UNAVAILABLE, str(e)) from e
        except anthropic.APIError as e:
            raise AnalysisServiceError(operation, FailureReason.UNKNOWN, str(e)) from e

        if getattr(response, "stop_reason", None) == "refusal":
            raise AnalysisServiceError(operation, FailureReason.CONTENT_FILTER, "response refused")

        text = extract_text(response)
        if not text.strip():
            raise AnalysisServiceError(operation, FailureReason.INVALID_RESPONSE, "empty response")

        usage = getattr(response, "usage", None)
        logger.debug(
            "analysis call succeeded",
            operation=operation,
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
        )
        return text


async def request_text(service: TextAnalysisService, prompt: str, *, operation: str, timeout: float) -> str:
    """Call ``service.complete`` under a deadline.

    Works with any TextAnalysisService, not only AnthropicTextService.

    Args:
        service: Service to call
        prompt: User prompt
        operation: Name of the calling operation, carried on errors
        timeout: Seconds before the call is abandoned

    Returns:
        Response text

    Raises:
        AnalysisTimeoutError: If the deadline passes
        AnalysisServiceError: For any other failure; unrecognised errors get reason UNKNOWN
    """
    try:
        return await asyncio.wait_for(service.complete(prompt, operation=operation), timeout=timeout)
    except AnalysisServiceError:
        raise
    except asyncio.TimeoutError as e:
        raise AnalysisTimeoutError(operation, timeout) from e
    except Exception as e:
        raise AnalysisServiceError(operation, FailureReason.UNKNOWN, f"{type(e).__name__}: {e}") from e


def extract_text(response: Any) -> str:
    """Join the text content blocks of a Messages API response."""
    parts = []
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            parts.append(block.text)
    return "".join(parts)


def parse_json_response(content: str, fallback: Any | None = None) -> Any:
    """Parse JSON from model output, handling code fences and stray prose.

    Args:
        content: Response text
        fallback: Value returned when nothing parses

    Returns:
        Parsed JSON or ``fallback``
    """
    if not content:
        return fallback

    text = content
    if "```json" in text:
        text = text.split("```json", 1)[1].split("```", 1)[0]
    elif "```" in text:
        parts = text.split("```")
        if len(parts) >= 3:
            text = parts[1]

    try:
        return json.loads(text.strip())
    except json.JSONDecodeError:
        pass

    match = _JSON_OBJECT.search(content)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    logger.warning("failed to parse json response", content_preview=content[:200])
    return fallback
