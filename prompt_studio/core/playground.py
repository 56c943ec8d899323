"""Interactive single-shot runs against one version."""

from __future__ import annotations

from functools import lru_cache

import structlog

from prompt_studio.core import vcs
from prompt_studio.core.credentials import CredentialStore, get_credentials
from prompt_studio.core.errors import ConfigurationError, TransportError
from prompt_studio.core.gateway import (
    ChatMessage,
    LLMGateway,
    LLMRequest,
    get_gateway,
    provider_for_model,
)
from prompt_studio.db.models import Prompt, PromptVersion, Rating, TestResult

logger = structlog.get_logger()


def build_messages(version: PromptVersion, user_content: str) -> list[ChatMessage]:
    """Optional system message followed by one user turn."""
    messages = []
    if version.system_message.strip():
        messages.append(ChatMessage(role="system", content=version.system_message))
    messages.append(ChatMessage(role="user", content=user_content))
    return messages


class Playground:
    def __init__(self, gateway: LLMGateway, credentials: CredentialStore) -> None:
        self.gateway = gateway
        self.credentials = credentials

    async def run_prompt(self, version: PromptVersion, test_input: str) -> str:
        """Run a version on a test input. Nothing is persisted."""
        if not test_input.strip():
            raise ConfigurationError("Please enter a test input to run the prompt")

        params = version.parameters
        provider = provider_for_model(params.model)
        request = LLMRequest(
            provider=provider,
            model=params.model,
            messages=build_messages(version, f"{version.prompt_text}\n\n{test_input}"),
            temperature=params.temperature,
            max_tokens=params.max_tokens,
            top_p=params.top_p,
            api_key=self.credentials.require_api_key(provider),
        )
        output = await self.gateway.complete(request)
        logger.info("playground.run", version_id=version.id, provider=provider.value)
        return output

    async def compare_versions(
        self, versions: list[PromptVersion], test_input: str
    ) -> dict[str, str]:
        """Run several versions on the same input, one after another.

        Transport failures and missing credentials are reported per version
        as ``"Error: ..."``.
        """
        if not test_input.strip():
            raise ConfigurationError("Please enter a test input to run the prompt")
        outputs: dict[str, str] = {}
        for version in versions:
            try:
                outputs[version.id] = await self.run_prompt(version, test_input)
            except TransportError as e:
                outputs[version.id] = f"Error: {e.message}"
            except ConfigurationError as e:
                outputs[version.id] = f"Error: {e}"
        return outputs


def rate_output(
    prompt: Prompt,
    version_id: str,
    test_input: str,
    output: str,
    rating: Rating,
) -> Prompt:
    """Record a manual rating of a single-shot output on the version."""
    if not test_input or not output:
        raise ConfigurationError("Both the test input and the output are required to rate")
    result = TestResult(input=test_input, output=output, rating=rating)
    return vcs.add_test_result(prompt, version_id, result)


@lru_cache
def get_playground() -> Playground:
    """Get cached playground instance."""
    return Playground(get_gateway(), get_credentials())
