"""Unit tests for the Claude client.

Tests cover:
- API key validation and masking
- Successful completion parsing
- Retry on 5xx, no retry on auth errors
- Rate limits honour retry-after only when short
- Prompt construction for document analysis and insight refinement

Uses httpx.MockTransport in place of the Anthropic API.
"""

import json
from collections.abc import Callable

import httpx
import pytest

from insight_studio.integrations.claude import (
    ANTHROPIC_API_URL,
    REFINE_MAX_TOKENS,
    REFINE_SYSTEM_PROMPT,
    REFINE_TEMPERATURE,
    ClaudeClient,
    validate_api_key,
)

VALID_KEY = "sk-ant-api03-" + "x" * 40


def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> ClaudeClient:
    client = ClaudeClient(api_key=VALID_KEY, retry_delay=0, **kwargs)
    client._client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=ANTHROPIC_API_URL
    )
    return client


def message_response(text: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={
            "content": [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 10, "output_tokens": 20},
        },
        headers={"request-id": "req_123"},
    )


# ---------------------------------------------------------------------------
# API key validation
# ---------------------------------------------------------------------------


class TestApiKeyValidation:
    """Tests for validate_api_key and availability."""

    def test_missing_key(self) -> None:
        assert validate_api_key(None, 40) == "missing"

    def test_wrong_prefix(self) -> None:
        assert validate_api_key("sk-" + "x" * 50, 40) == "missing sk-ant- prefix"

    def test_too_short(self) -> None:
        assert validate_api_key("sk-ant-short", 40) == "shorter than 40 characters"

    def test_valid_key(self) -> None:
        assert validate_api_key(VALID_KEY, 40) is None

    def test_client_without_key_unavailable(self) -> None:
        client = ClaudeClient(api_key=None)

        assert client.available is False
        assert client.key_problem == "missing"
        assert client.api_key_hint == ""

    def test_key_hint_is_masked(self) -> None:
        client = ClaudeClient(api_key=VALID_KEY)

        assert client.available is True
        assert client.api_key_hint == f"sk-ant-...{VALID_KEY[-4:]}"
        assert VALID_KEY not in client.api_key_hint

    async def test_unavailable_client_never_calls_api(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return message_response("{}")

        client = ClaudeClient(api_key="bad-key")
        client._client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url=ANTHROPIC_API_URL
        )

        result = await client.complete("hello")

        assert result.success is False
        assert result.retriable is False
        assert calls == []


# ---------------------------------------------------------------------------
# complete()
# ---------------------------------------------------------------------------


class TestComplete:
    """Tests for ClaudeClient.complete."""

    async def test_success(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/messages"
            assert request.headers["x-api-key"] == VALID_KEY
            body = json.loads(request.content)
            assert body["system"] == "be brief"
            return message_response('{"insights": []}')

        client = make_client(handler)

        result = await client.complete("hello", system_prompt="be brief")

        assert result.success is True
        assert result.text == '{"insights": []}'
        assert result.input_tokens == 10
        assert result.request_id == "req_123"
        await client.close()

    async def test_server_error_retried(self) -> None:
        responses = iter([httpx.Response(500), message_response("ok")])

        client = make_client(lambda request: next(responses), max_retries=2)

        result = await client.complete("hello")

        assert result.success is True
        assert result.text == "ok"

    async def test_server_error_exhausts_retries(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        client = make_client(handler, max_retries=3)

        result = await client.complete("hello")

        assert result.success is False
        assert result.status_code == 503
        assert result.retriable is True
        assert calls == 3

    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_error_not_retried(self, status_code: int) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(status_code)

        client = make_client(handler, max_retries=3)

        result = await client.complete("hello")

        assert calls == 1
        assert result.success is False
        assert result.retriable is False

    async def test_client_error_message_surfaced(self) -> None:
        client = make_client(
            lambda request: httpx.Response(
                400, json={"error": {"message": "prompt is too long"}}
            )
        )

        result = await client.complete("hello")

        assert result.success is False
        assert "prompt is too long" in (result.error or "")

    async def test_rate_limit_with_short_retry_after_retried(self) -> None:
        responses = iter(
            [httpx.Response(429, headers={"retry-after": "0.01"}), message_response("ok")]
        )
        client = make_client(lambda request: next(responses), max_retries=2)

        result = await client.complete("hello")

        assert result.success is True
        assert result.text == "ok"

    async def test_rate_limit_with_long_retry_after_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(429, headers={"retry-after": "120"})

        client = make_client(handler, max_retries=3)

        result = await client.complete("hello")

        assert calls == 1
        assert result.status_code == 429

    async def test_transport_error_reported(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        client = make_client(handler, max_retries=2)

        result = await client.complete("hello")

        assert result.success is False
        assert "refused" in (result.error or "")


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


class TestAnalysisPrompts:
    """Tests for analyze_documents / analyze_website prompt construction."""

    async def test_document_prompt_contains_documents_and_context(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return message_response("[]")

        client = make_client(handler)

        await client.analyze_documents(
            [{"name": "brief.pdf", "priority": 4, "content": "Quarterly numbers"}],
            client_industry="retail",
            project_title="Launch",
            client_website="https://acme.com",
            processing_mode="quick",
        )

        prompt = captured["messages"][0]["content"]
        assert "DOCUMENT 1: brief.pdf (priority 4)" in prompt
        assert "Quarterly numbers" in prompt
        assert "retail" in prompt
        assert "https://acme.com" in prompt
        assert "system" in captured

    async def test_empty_document_marked(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return message_response("[]")

        client = make_client(handler)

        await client.analyze_documents([{"name": "scan.pdf", "content": ""}], client_industry="x")

        assert "[no extractable text]" in captured["messages"][0]["content"]

    async def test_website_prompt(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return message_response("[]")

        client = make_client(handler)

        await client.analyze_website(
            "Page text", website_url="https://acme.com", client_name="Acme", client_industry="retail"
        )

        prompt = captured["messages"][0]["content"]
        assert "Acme" in prompt
        assert "Page text" in prompt

    async def test_refine_prompt_without_conversation(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return message_response("Sounds good")

        client = make_client(handler)

        result = await client.refine_insight(
            "Loyalty gap",
            {"title": "Loyalty gap", "summary": "Churn is high", "details": None},
            "Make it sharper",
        )

        prompt = captured["messages"][0]["content"]
        assert result.success is True
        assert prompt.startswith('I need to refine the following insight about "Loyalty gap"')
        assert "Summary: Churn is high\nDetails: \n" in prompt
        assert "USER REQUEST:\nMake it sharper" in prompt
        assert captured["temperature"] == REFINE_TEMPERATURE
        assert captured["max_tokens"] == REFINE_MAX_TOKENS
        assert captured["system"] == REFINE_SYSTEM_PROMPT

    async def test_refine_prompt_with_conversation(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return message_response("Sure")

        client = make_client(handler)

        await client.refine_insight(
            "Loyalty gap",
            {"title": "Loyalty gap"},
            "Shorter please",
            conversation_context="User: Add numbers\nAssistant: Added two",
        )

        prompt = captured["messages"][0]["content"]
        assert prompt.startswith("Here's our conversation so far")
        assert "User: Add numbers\nAssistant: Added two" in prompt
        assert "USER'S LATEST QUESTION/REQUEST:\nShorter please" in prompt
