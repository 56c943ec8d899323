"""Persisted entity definitions.

The Prompt aggregate and everything it owns. Entities are frozen: every
mutation produces a new value through ``model_copy(update=...)``. Python
attributes are snake_case while the stored JSON keeps camelCase keys.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Rating = Literal["pass", "fail", "pending"]
JudgeRating = Literal["pass", "fail"]
RunStatus = Literal["pending", "running", "completed", "failed"]


def new_id() -> str:
    """Short random identifier."""
    return uuid4().hex[:9]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Entity(BaseModel):
    """Base for stored entities: immutable, camelCase on the wire."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class PromptParameters(Entity):
    """Sampling parameters attached to a version."""

    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    model: str = "gpt-4o"


class TestResult(Entity):
    """A manually rated single-shot output, logged on a version."""

    __test__ = False

    input: str
    output: str
    rating: Rating
    timestamp: datetime = Field(default_factory=utcnow)


class PromptVersion(Entity):
    """One commit on a branch."""

    id: str = Field(default_factory=new_id)
    branch: str = "main"
    parent: str | None = None
    prompt_text: str = ""
    system_message: str = ""
    parameters: PromptParameters = Field(default_factory=PromptParameters)
    commit_message: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    test_results: list[TestResult] = Field(default_factory=list)


class TestCase(Entity):
    """Reusable input snippet scoped to a prompt."""

    __test__ = False

    id: str = Field(default_factory=new_id)
    name: str
    input: str


class Dataset(Entity):
    """Tabular rows; ``columns`` fixes display and iteration order."""

    id: str = Field(default_factory=new_id)
    name: str
    data: list[dict[str, str]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)


class ExperimentResult(Entity):
    id: str = Field(default_factory=new_id)
    input: dict[str, str]
    output: str
    judge_output: str
    rating: JudgeRating
    timestamp: datetime = Field(default_factory=utcnow)


class ExperimentRun(Entity):
    id: str = Field(default_factory=new_id)
    results: list[ExperimentResult] = Field(default_factory=list)
    status: RunStatus = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.rating == "pass")

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed


class Experiment(Entity):
    """A saved dataset × prompt version × judge configuration and its run history.

    ``dataset_id``, ``prompt_id`` and ``prompt_version_id`` are weak
    references; they are resolved when a run starts.
    """

    id: str = Field(default_factory=new_id)
    name: str
    dataset_id: str
    prompt_id: str
    prompt_version_id: str
    judge_prompt: str
    runs: list[ExperimentRun] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def latest_run(self) -> ExperimentRun | None:
        """Most recently started run, if any."""
        return self.runs[-1] if self.runs else None


class Prompt(Entity):
    """Aggregate root: owns versions, test cases, datasets and experiments."""

    id: str = Field(default_factory=new_id)
    name: str
    last_accessed: datetime = Field(default_factory=utcnow)
    current_branch: str = "main"
    versions: list[PromptVersion] = Field(default_factory=list)
    test_cases: list[TestCase] = Field(default_factory=list)
    datasets: list[Dataset] = Field(default_factory=list)
    experiments: list[Experiment] = Field(default_factory=list)
