"""Tests for the Anthropic-backed text-analysis service."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from web_access_advisor.config import AnalysisConfig
from web_access_advisor.errors import AnalysisServiceError, AnalysisTimeoutError, FailureReason
from web_access_advisor.llm import AnthropicTextService, extract_text, parse_json_response, request_text

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def message(text="{}", stop_reason="end_turn"):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


def service_with(create, **config):
    client = MagicMock()
    client.messages.create = create
    return AnthropicTextService(AnalysisConfig(**config), client=client), client


class TestAnthropicTextService:
    async def test_returns_text(self):
        service, client = service_with(AsyncMock(return_value=message('{"summary": "ok"}')), model="claude-test")

        text = await service.complete("analyze this", operation="batch main_app-1")

        assert text == '{"summary": "ok"}'
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["messages"] == [{"role": "user", "content": "analyze this"}]

    async def test_timeout(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return message()

        service, _ = service_with(AsyncMock(side_effect=slow), request_timeout_s=0.01)

        with pytest.raises(AnalysisTimeoutError) as exc_info:
            await service.complete("p", operation="batch main_app-1")
        assert exc_info.value.reason is FailureReason.TIMEOUT
        assert exc_info.value.operation == "batch main_app-1"
        assert exc_info.value.timeout == 0.01

    async def test_rate_limit_is_quota(self):
        error = anthropic.RateLimitError("rate limited", response=httpx.Response(429, request=REQUEST), body=None)
        service, _ = service_with(AsyncMock(side_effect=error))

        with pytest.raises(AnalysisServiceError) as exc_info:
            await service.complete("p", operation="explain violations")
        assert exc_info.value.reason is FailureReason.QUOTA

    async def test_server_error_is_unavailable(self):
        error = anthropic.InternalServerError("boom", response=httpx.Response(500, request=REQUEST), body=None)
        service, _ = service_with(AsyncMock(side_effect=error))

        with pytest.raises(AnalysisServiceError) as exc_info:
            await service.complete("p", operation="op")
        assert exc_info.value.reason is FailureReason.UNAVAILABLE

    async def test_connection_error_is_unavailable(self):
        service, _ = service_with(AsyncMock(side_effect=anthropic.APIConnectionError(request=REQUEST)))

        with pytest.raises(AnalysisServiceError) as exc_info:
            await service.complete("p", operation="op")
        assert exc_info.value.reason is FailureReason.UNAVAILABLE

    async def test_refusal_is_content_filter(self):
        service, _ = service_with(AsyncMock(return_value=message("", stop_reason="refusal")))

        with pytest.raises(AnalysisServiceError) as exc_info:
            await service.complete("p", operation="op")
        assert exc_info.value.reason is FailureReason.CONTENT_FILTER

    async def test_empty_response_is_invalid(self):
        service, _ = service_with(AsyncMock(return_value=message("   ")))

        with pytest.raises(AnalysisServiceError) as exc_info:
            await service.complete("p", operation="op")
        assert exc_info.value.reason is FailureReason.INVALID_RESPONSE


class TestRequestText:
    async def test_returns_text(self):
        service = MagicMock()
        service.complete = AsyncMock(return_value="{}")
        assert await request_text(service, "p", operation="op", timeout=1) == "{}"
        service.complete.assert_awaited_once_with("p", operation="op")

    async def test_deadline(self):
        async def hang(prompt, *, operation):
            await asyncio.sleep(3600)

        service = MagicMock()
        service.complete = hang

        with pytest.raises(AnalysisTimeoutError) as exc_info:
            await request_text(service, "p", operation="explain violations", timeout=0.01)
        assert exc_info.value.operation == "explain violations"

    async def test_unrecognised_error_is_unknown(self):
        service = MagicMock()
        service.complete = AsyncMock(side_effect=ConnectionResetError("socket closed"))

        with pytest.raises(AnalysisServiceError) as exc_info:
            await request_text(service, "p", operation="batch main_app-2", timeout=1)
        assert exc_info.value.reason is FailureReason.UNKNOWN
        assert "socket closed" in exc_info.value.message

    async def test_service_errors_pass_through(self):
        service = MagicMock()
        service.complete = AsyncMock(side_effect=AnalysisServiceError("op", FailureReason.QUOTA, "limit"))

        with pytest.raises(AnalysisServiceError) as exc_info:
            await request_text(service, "p", operation="op", timeout=1)
        assert exc_info.value.reason is FailureReason.QUOTA


class TestExtractText:
    def test_joins_text_blocks(self):
        response = SimpleNamespace(content=[
            SimpleNamespace(type="text", text="{\"a\": "),
            SimpleNamespace(type="tool_use", text="ignored"),
            SimpleNamespace(type="text", text="1}"),
        ])
        assert extract_text(response) == '{"a": 1}'


class TestParseJsonResponse:
    def test_bare(self):
        assert parse_json_response('{"score": 80}') == {"score": 80}

    def test_fenced_json(self):
        assert parse_json_response('Here:\n```json\n{"score": 80}\n```\nDone') == {"score": 80}

    def test_plain_fence(self):
        assert parse_json_response('```\n{"score": 70}\n```') == {"score": 70}

    def test_embedded_object(self):
        assert parse_json_response('Result follows {"summary": "x"} end') == {"summary": "x"}

    def test_fallback(self):
        assert parse_json_response("no json here", fallback={}) == {}
        assert parse_json_response("") is None
