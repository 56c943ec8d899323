"""LLM Gateway: one async call to OpenAI or Anthropic.

The gateway is stateless: every call carries its provider, model, messages,
sampling parameters and API key. Provider is inferred once from the model
id by ``provider_for_model`` and threaded through as a ``Provider`` value.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from prompt_studio.config import Settings, get_settings
from prompt_studio.core.errors import ConfigurationError, TransportError

logger = structlog.get_logger()

NO_RESPONSE = "No response generated"


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @property
    def label(self) -> str:
        return "OpenAI" if self is Provider.OPENAI else "Anthropic"


def provider_for_model(model: str) -> Provider:
    """OpenAI for ``gpt*`` model ids, Anthropic for everything else."""
    return Provider.OPENAI if model.startswith("gpt") else Provider.ANTHROPIC


class ChatMessage(BaseModel):
    role: str
    content: str


class LLMRequest(BaseModel):
    """Everything needed for one completion call."""

    provider: Provider
    model: str
    messages: list[ChatMessage]
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    api_key: str = Field(default="", repr=False)


def _error_message(resp: httpx.Response, provider: Provider) -> str:
    try:
        message = resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        message = None
    return message or f"{provider.label} API request failed"


class LLMGateway:
    """Calls the chat-completions (OpenAI) or messages (Anthropic) endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    async def complete(self, request: LLMRequest) -> str:
        """Return the first completion's text.

        Raises ConfigurationError without an API key and TransportError when
        the provider call fails.
        """
        if not request.api_key:
            raise ConfigurationError(f"API key not configured for {request.provider.label}")

        if request.provider is Provider.OPENAI:
            url, headers, payload = self._openai_call(request)
        else:
            url, headers, payload = self._anthropic_call(request)

        data = await self._post(url, headers, payload, request)

        if request.provider is Provider.OPENAI:
            text = self._openai_text(data)
        else:
            text = self._anthropic_text(data)
        return text or NO_RESPONSE

    def _openai_call(self, request: LLMRequest) -> tuple[str, dict[str, str], dict[str, Any]]:
        url = f"{self.settings.openai_base_url.rstrip('/')}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {request.api_key}",
        }
        payload = {
            "model": request.model,
            "messages": [m.model_dump() for m in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "top_p": request.top_p,
        }
        return url, headers, payload

    def _anthropic_call(self, request: LLMRequest) -> tuple[str, dict[str, str], dict[str, Any]]:
        url = f"{self.settings.anthropic_base_url.rstrip('/')}/messages"
        headers = {
            "Content-Type": "application/json",
            "x-api-key": request.api_key,
            "anthropic-version": self.settings.anthropic_version,
        }
        # Anthropic takes the system prompt as a top-level field.
        system = "\n\n".join(m.content for m in request.messages if m.role == "system" and m.content)
        payload: dict[str, Any] = {
            "model": request.model,
            "max_tokens": min(self.settings.anthropic_max_tokens, request.max_tokens),
            "temperature": request.temperature,
            "top_p": request.top_p,
            "messages": [m.model_dump() for m in request.messages if m.role != "system"],
        }
        if system.strip():
            payload["system"] = system
        return url, headers, payload

    @staticmethod
    def _openai_text(data: dict[str, Any]) -> str:
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""

    @staticmethod
    def _anthropic_text(data: dict[str, Any]) -> str:
        try:
            return data["content"][0]["text"] or ""
        except (KeyError, IndexError, TypeError):
            return ""

    async def _post(
        self,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        request: LLMRequest,
    ) -> dict[str, Any]:
        provider = request.provider
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout, transport=self._transport
            ) as client:
                resp = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.warning("gateway.network_error", provider=provider.value, error=str(e))
            raise TransportError(f"{provider.label} API request failed: {e}") from e

        if resp.status_code >= 400:
            message = _error_message(resp, provider)
            logger.warning(
                "gateway.request_failed",
                provider=provider.value,
                model=request.model,
                status=resp.status_code,
                error=message,
            )
            raise TransportError(message, status_code=resp.status_code)

        logger.debug("gateway.completed", provider=provider.value, model=request.model)
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(
                f"{provider.label} returned a non-JSON response", status_code=resp.status_code
            ) from e


@lru_cache
def get_gateway() -> LLMGateway:
    """Get cached gateway instance."""
    return LLMGateway()
