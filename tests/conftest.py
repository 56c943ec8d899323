"""Test fixtures: in-memory store, scripted LLM gateway and shared test data."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from prompt_studio.config import Settings
from prompt_studio.core.credentials import CredentialStore
from prompt_studio.core.errors import TransportError
from prompt_studio.core.gateway import LLMGateway, LLMRequest, Provider
from prompt_studio.core.playground import Playground
from prompt_studio.core.registry import PromptRegistry
from prompt_studio.core.runner import ExperimentRunner
from prompt_studio.db.client import KeyValueStore


class MockKeyValueStore(KeyValueStore):
    """In-memory mock of the file-backed store for testing."""

    def __init__(self):
        self.root = Path("memory")
        self._data: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return json.loads(self._data[key])

    def set(self, key: str, value: Any) -> None:
        # Stored as JSON text, like the file backend.
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def raw(self, key: str) -> Any:
        return copy.deepcopy(json.loads(self._data[key]))


class FakeGateway(LLMGateway):
    """Scripted gateway: records every request and answers from a queue.

    ``responses`` items are strings (returned) or exceptions (raised). When
    the queue runs dry the gateway returns ``default``.
    """

    def __init__(self, responses: list[Any] | None = None, default: str = "PASS"):
        self.settings = Settings()
        self._transport = None
        self.responses = list(responses or [])
        self.default = default
        self.requests: list[LLMRequest] = []

    async def complete(self, request: LLMRequest) -> str:
        self.requests.append(request)
        if self.responses:
            item = self.responses.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        return self.default


@pytest.fixture
def store() -> MockKeyValueStore:
    """Fresh in-memory store for each test."""
    return MockKeyValueStore()


@pytest.fixture
def registry(store) -> PromptRegistry:
    return PromptRegistry(store)


@pytest.fixture
def credentials(store) -> CredentialStore:
    creds = CredentialStore(store)
    creds.set_api_key(Provider.OPENAI, "sk-test-openai-1234")
    creds.set_api_key(Provider.ANTHROPIC, "sk-ant-test-5678")
    return creds


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def runner(registry, gateway, credentials) -> ExperimentRunner:
    return ExperimentRunner(registry, gateway, credentials, row_delay=0)


@pytest.fixture
def playground(gateway, credentials) -> Playground:
    return Playground(gateway, credentials)


@pytest.fixture
def sample_csv() -> str:
    return "question,expected\nWhat is 2+2?,4\nCapital of France?,Paris\nColour of the sky?,blue\n"


@pytest.fixture
def seeded(registry, sample_csv) -> dict[str, Any]:
    """A prompt with a filled-in main version and a three-row dataset."""
    prompt = registry.create_prompt("local", "Quiz")
    version = prompt.versions[0]
    updated = version.model_copy(
        update={
            "prompt_text": "Answer briefly: {{question}}",
            "system_message": "You are a quiz bot.",
        }
    )
    registry.update_prompt(
        "local",
        prompt.id,
        lambda p: p.model_copy(update={"versions": [updated]}),
    )
    dataset = registry.add_dataset("local", prompt.id, "quiz", sample_csv)
    return {"prompt_id": prompt.id, "version_id": version.id, "dataset_id": dataset.id}


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("Rate limit exceeded", status_code=429)


@pytest.fixture
def app(store, registry, gateway, credentials, runner, playground):
    """FastAPI test app with mocked dependencies."""
    from prompt_studio.core.credentials import get_credentials
    from prompt_studio.core.gateway import get_gateway
    from prompt_studio.core.playground import get_playground
    from prompt_studio.core.registry import get_registry
    from prompt_studio.core.runner import get_runner
    from prompt_studio.db.client import get_store
    from prompt_studio.main import app as _app

    _app.dependency_overrides[get_store] = lambda: store
    _app.dependency_overrides[get_registry] = lambda: registry
    _app.dependency_overrides[get_gateway] = lambda: gateway
    _app.dependency_overrides[get_credentials] = lambda: credentials
    _app.dependency_overrides[get_runner] = lambda: runner
    _app.dependency_overrides[get_playground] = lambda: playground

    yield _app

    _app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """HTTP test client."""
    return TestClient(app)
