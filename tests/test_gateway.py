"""Tests for the LLM gateway against a mocked HTTP transport."""

from __future__ import annotations

import json

import httpx
import pytest

from prompt_studio.config import Settings
from prompt_studio.core.errors import ConfigurationError, TransportError
from prompt_studio.core.gateway import (
    NO_RESPONSE,
    ChatMessage,
    LLMGateway,
    LLMRequest,
    Provider,
    provider_for_model,
)


def _gateway(handler) -> tuple[LLMGateway, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    settings = Settings(openai_api_key="", anthropic_api_key="")
    return LLMGateway(settings, transport=httpx.MockTransport(_record)), seen


def _request(provider: Provider, **overrides) -> LLMRequest:
    data = {
        "provider": provider,
        "model": "gpt-4o" if provider is Provider.OPENAI else "claude-3-5-sonnet-20241022",
        "messages": [
            ChatMessage(role="system", content="Be terse."),
            ChatMessage(role="user", content="Hello"),
        ],
        "temperature": 0.3,
        "max_tokens": 500,
        "top_p": 0.9,
        "api_key": "sk-test",
    }
    data.update(overrides)
    return LLMRequest(**data)


class TestProviderForModel:
    def test_gpt_models_use_openai(self):
        assert provider_for_model("gpt-4o") is Provider.OPENAI
        assert provider_for_model("gpt-3.5-turbo") is Provider.OPENAI

    def test_everything_else_uses_anthropic(self):
        assert provider_for_model("claude-3-opus") is Provider.ANTHROPIC
        assert provider_for_model("o1-preview") is Provider.ANTHROPIC


class TestOpenAI:
    @pytest.mark.asyncio
    async def test_request_shape_and_text(self):
        gateway, seen = _gateway(
            lambda r: httpx.Response(200, json={"choices": [{"message": {"content": "Hi!"}}]})
        )
        text = await gateway.complete(_request(Provider.OPENAI))
        assert text == "Hi!"

        sent = seen[0]
        assert sent.url == "https://api.openai.com/v1/chat/completions"
        assert sent.headers["authorization"] == "Bearer sk-test"
        body = json.loads(sent.content)
        assert body["model"] == "gpt-4o"
        assert body["messages"][0] == {"role": "system", "content": "Be terse."}
        assert body["temperature"] == 0.3
        assert body["max_tokens"] == 500
        assert body["top_p"] == 0.9

    @pytest.mark.asyncio
    async def test_empty_choice_returns_placeholder(self):
        gateway, _ = _gateway(lambda r: httpx.Response(200, json={"choices": []}))
        assert await gateway.complete(_request(Provider.OPENAI)) == NO_RESPONSE

    @pytest.mark.asyncio
    async def test_error_message_from_body(self):
        gateway, _ = _gateway(
            lambda r: httpx.Response(401, json={"error": {"message": "Invalid API key"}})
        )
        with pytest.raises(TransportError) as exc:
            await gateway.complete(_request(Provider.OPENAI))
        assert exc.value.status_code == 401
        assert exc.value.message == "Invalid API key"

    @pytest.mark.asyncio
    async def test_error_without_body(self):
        gateway, _ = _gateway(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(TransportError) as exc:
            await gateway.complete(_request(Provider.OPENAI))
        assert exc.value.status_code == 500
        assert exc.value.message == "OpenAI API request failed"


class TestAnthropic:
    @pytest.mark.asyncio
    async def test_request_shape_and_text(self):
        gateway, seen = _gateway(
            lambda r: httpx.Response(200, json={"content": [{"type": "text", "text": "Hey"}]})
        )
        text = await gateway.complete(_request(Provider.ANTHROPIC))
        assert text == "Hey"

        sent = seen[0]
        assert sent.url == "https://api.anthropic.com/v1/messages"
        assert sent.headers["x-api-key"] == "sk-test"
        assert sent.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(sent.content)
        assert body["system"] == "Be terse."
        assert body["messages"] == [{"role": "user", "content": "Hello"}]
        assert body["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_max_tokens_clamped(self):
        gateway, seen = _gateway(
            lambda r: httpx.Response(200, json={"content": [{"text": "ok"}]})
        )
        await gateway.complete(_request(Provider.ANTHROPIC, max_tokens=100_000))
        assert json.loads(seen[0].content)["max_tokens"] == 8192

    @pytest.mark.asyncio
    async def test_no_system_field_without_system_message(self):
        gateway, seen = _gateway(
            lambda r: httpx.Response(200, json={"content": [{"text": "ok"}]})
        )
        await gateway.complete(
            _request(Provider.ANTHROPIC, messages=[ChatMessage(role="user", content="Hi")])
        )
        assert "system" not in json.loads(seen[0].content)

    @pytest.mark.asyncio
    async def test_empty_content_returns_placeholder(self):
        gateway, _ = _gateway(lambda r: httpx.Response(200, json={"content": []}))
        assert await gateway.complete(_request(Provider.ANTHROPIC)) == NO_RESPONSE

    @pytest.mark.asyncio
    async def test_error_label(self):
        gateway, _ = _gateway(lambda r: httpx.Response(529, json={}))
        with pytest.raises(TransportError) as exc:
            await gateway.complete(_request(Provider.ANTHROPIC))
        assert exc.value.status_code == 529
        assert exc.value.message == "Anthropic API request failed"


class TestFailures:
    @pytest.mark.asyncio
    async def test_missing_key(self):
        gateway, seen = _gateway(lambda r: httpx.Response(200, json={}))
        with pytest.raises(ConfigurationError):
            await gateway.complete(_request(Provider.OPENAI, api_key=""))
        assert seen == []

    @pytest.mark.asyncio
    async def test_network_error(self):
        def _boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway, _ = _gateway(_boom)
        with pytest.raises(TransportError) as exc:
            await gateway.complete(_request(Provider.OPENAI))
        assert exc.value.status_code is None

    @pytest.mark.asyncio
    async def test_non_json_success(self):
        gateway, _ = _gateway(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(TransportError):
            await gateway.complete(_request(Provider.OPENAI))
