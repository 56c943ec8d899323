"""Pydantic request/response models for the API.

Request bodies use snake_case. Stored entities are returned as-is, which
serialises them with their camelCase keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from prompt_studio.core.gateway import ChatMessage
from prompt_studio.db.models import Prompt, PromptParameters


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Prompts ---


class PromptCreate(BaseModel):
    """Create a new prompt."""

    name: str = Field(..., min_length=1, max_length=200)


class PromptSummary(CamelModel):
    """Prompt listing entry."""

    id: str
    name: str
    last_accessed: datetime
    current_branch: str
    version_count: int
    dataset_count: int
    experiment_count: int

    @classmethod
    def from_prompt(cls, prompt: Prompt) -> PromptSummary:
        return cls(
            id=prompt.id,
            name=prompt.name,
            last_accessed=prompt.last_accessed,
            current_branch=prompt.current_branch,
            version_count=len(prompt.versions),
            dataset_count=len(prompt.datasets),
            experiment_count=len(prompt.experiments),
        )


# --- Versions ---


class VersionUpdate(BaseModel):
    """Save edits to an existing version."""

    prompt_text: str
    system_message: str = ""
    parameters: PromptParameters = Field(default_factory=PromptParameters)
    commit_message: str = Field(..., min_length=1)


class RatingCreate(BaseModel):
    """Manual rating of a single-shot output."""

    input: str
    output: str
    rating: Literal["pass", "fail"]


# --- Branches ---


class BranchCreate(BaseModel):
    """Create a branch (or a new commit on an existing branch)."""

    name: str = Field(..., min_length=1, max_length=100)
    from_version_id: str | None = None
    commit_message: str = Field(..., min_length=1)


class BranchMerge(BaseModel):
    """Merge a branch."""

    into: str = "main"
    commit_message: str = Field(..., min_length=1)


class BranchResponse(CamelModel):
    """Branch info."""

    name: str
    version_count: int
    head_id: str | None
    is_current: bool


# --- Playground ---


class RunPromptRequest(BaseModel):
    version_id: str
    test_input: str


class RunPromptResponse(BaseModel):
    version_id: str
    output: str


class CompareRequest(BaseModel):
    version_ids: list[str] = Field(..., min_length=1)
    test_input: str


# --- Test cases ---


class TestCaseCreate(BaseModel):
    __test__ = False

    name: str = Field(..., min_length=1)
    input: str


# --- Datasets ---


class DatasetCreate(BaseModel):
    """Import a dataset from CSV text."""

    name: str = Field(..., min_length=1)
    csv: str


# --- Experiments ---


class ExperimentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    dataset_id: str
    prompt_id: str
    prompt_version_id: str
    judge_prompt: str = Field(..., min_length=1)
    run: bool = False


class ExperimentUpdate(BaseModel):
    name: str | None = None
    dataset_id: str | None = None
    prompt_id: str | None = None
    prompt_version_id: str | None = None
    judge_prompt: str | None = None


class RunStarted(BaseModel):
    experiment_id: str
    run_id: str
    status: str
    rows: int


# --- LLM proxy ---


class LLMProxyRequest(CamelModel):
    """Body of the /llm proxy route (camelCase, as sent by browser clients)."""

    provider: str
    model: str
    messages: list[ChatMessage]
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    api_key: str = ""


# --- Settings ---


class ApiKeyUpdate(BaseModel):
    provider: Literal["openai", "anthropic"]
    api_key: str = ""


class SessionUpdate(BaseModel):
    user_id: str = Field(..., min_length=1)
