"""Prompt Registry — per-user persistence of Prompt aggregates.

Each user's prompts live under one store key. Every write loads the whole
collection, replaces the changed aggregate by id and saves it back, so the
last writer wins for concurrent edits of the same prompt.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Any

import structlog

from prompt_studio.config import get_settings
from prompt_studio.core import vcs
from prompt_studio.core.datasets import parse_csv
from prompt_studio.core.errors import ConfigurationError, NotFoundError
from prompt_studio.db.client import KeyValueStore, get_store
from prompt_studio.db.models import (
    Dataset,
    Experiment,
    Prompt,
    PromptVersion,
    TestCase,
    utcnow,
)

logger = structlog.get_logger()

ACTIVE_USER_KEY = "current_user"

# Experiment fields a user may edit; runs are never touched by an edit.
EDITABLE_EXPERIMENT_FIELDS = frozenset(
    {"name", "dataset_id", "prompt_id", "prompt_version_id", "judge_prompt"}
)


def prompts_key(user_id: str) -> str:
    return f"prompts_{user_id}"


def _replace_by_id(items: list[Any], item: Any) -> list[Any]:
    return [item if existing.id == item.id else existing for existing in items]


def _find(items: list[Any], item_id: str) -> Any | None:
    return next((i for i in items if i.id == item_id), None)


class PromptRegistry:
    """Loads, replaces and deletes prompt aggregates per user."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # --- Session ---

    def get_active_user(self) -> str | None:
        return self.store.get(ACTIVE_USER_KEY)

    def set_active_user(self, user_id: str) -> None:
        self.store.set(ACTIVE_USER_KEY, user_id)
        logger.info("registry.active_user_set", user_id=user_id)

    # --- Aggregates ---

    def _load(self, user_id: str) -> list[Prompt]:
        raw = self.store.get(prompts_key(user_id), default=[])
        return [Prompt.model_validate(p) for p in raw]

    def _save(self, user_id: str, prompts: list[Prompt]) -> None:
        self.store.set(
            prompts_key(user_id),
            [p.model_dump(mode="json", by_alias=True) for p in prompts],
        )

    def list_prompts(self, user_id: str) -> list[Prompt]:
        """All prompts for a user, most recently accessed first."""
        return sorted(self._load(user_id), key=lambda p: p.last_accessed, reverse=True)

    def get_prompt(self, user_id: str, prompt_id: str) -> Prompt | None:
        return _find(self._load(user_id), prompt_id)

    def require_prompt(self, user_id: str, prompt_id: str) -> Prompt:
        prompt = self.get_prompt(user_id, prompt_id)
        if prompt is None:
            raise NotFoundError(f"Prompt '{prompt_id}' not found")
        return prompt

    def create_prompt(self, user_id: str, name: str) -> Prompt:
        """Create a prompt with its initial main commit."""
        if not name.strip():
            raise ConfigurationError("Prompt name is required")
        prompt = vcs.create_prompt(name.strip())
        self._save(user_id, [*self._load(user_id), prompt])
        logger.info("prompt.created", user_id=user_id, prompt_id=prompt.id, name=prompt.name)
        return prompt

    def delete_prompt(self, user_id: str, prompt_id: str) -> bool:
        """Delete a prompt together with everything it owns."""
        prompts = self._load(user_id)
        remaining = [p for p in prompts if p.id != prompt_id]
        if len(remaining) == len(prompts):
            return False
        self._save(user_id, remaining)
        logger.info("prompt.deleted", user_id=user_id, prompt_id=prompt_id)
        return True

    def save_prompt(self, user_id: str, prompt: Prompt) -> Prompt:
        """Replace the stored aggregate with the same id."""
        prompts = self._load(user_id)
        if _find(prompts, prompt.id) is None:
            raise NotFoundError(f"Prompt '{prompt.id}' not found")
        self._save(user_id, _replace_by_id(prompts, prompt))
        return prompt

    def update_prompt(
        self,
        user_id: str,
        prompt_id: str,
        mutate: Callable[[Prompt], Prompt],
    ) -> Prompt:
        """Load, apply a pure mutation and persist the result."""
        prompts = self._load(user_id)
        prompt = _find(prompts, prompt_id)
        if prompt is None:
            raise NotFoundError(f"Prompt '{prompt_id}' not found")
        updated = mutate(prompt)
        if updated is not prompt:
            self._save(user_id, _replace_by_id(prompts, updated))
        return updated

    def touch_prompt(self, user_id: str, prompt_id: str) -> Prompt:
        """Mark a prompt as opened now."""
        return self.update_prompt(
            user_id, prompt_id, lambda p: p.model_copy(update={"last_accessed": utcnow()})
        )

    def find_version(
        self, user_id: str, prompt_id: str, version_id: str
    ) -> tuple[Prompt, PromptVersion]:
        prompt = self.require_prompt(user_id, prompt_id)
        version = vcs.get_version(prompt, version_id)
        if version is None:
            raise NotFoundError(f"Version '{version_id}' not found in prompt '{prompt_id}'")
        return prompt, version

    # --- Test cases ---

    def add_test_case(self, user_id: str, prompt_id: str, name: str, input: str) -> TestCase:
        test_case = TestCase(name=name, input=input)
        self.update_prompt(
            user_id,
            prompt_id,
            lambda p: p.model_copy(
                update={"test_cases": [*p.test_cases, test_case], "last_accessed": utcnow()}
            ),
        )
        return test_case

    def update_test_case(self, user_id: str, prompt_id: str, test_case: TestCase) -> TestCase:
        def _apply(p: Prompt) -> Prompt:
            if _find(p.test_cases, test_case.id) is None:
                raise NotFoundError(f"Test case '{test_case.id}' not found")
            return p.model_copy(
                update={
                    "test_cases": _replace_by_id(p.test_cases, test_case),
                    "last_accessed": utcnow(),
                }
            )

        self.update_prompt(user_id, prompt_id, _apply)
        return test_case

    def delete_test_case(self, user_id: str, prompt_id: str, test_case_id: str) -> None:
        self.update_prompt(
            user_id,
            prompt_id,
            lambda p: p.model_copy(
                update={
                    "test_cases": [t for t in p.test_cases if t.id != test_case_id],
                    "last_accessed": utcnow(),
                }
            ),
        )

    # --- Datasets ---

    def add_dataset(self, user_id: str, prompt_id: str, name: str, csv_text: str) -> Dataset:
        """Parse CSV text and attach it to a prompt as a dataset."""
        if not name.strip():
            raise ConfigurationError("Dataset name is required")
        table = parse_csv(csv_text)
        dataset = Dataset(name=name.strip(), data=table.data, columns=table.columns)
        self.update_prompt(
            user_id,
            prompt_id,
            lambda p: p.model_copy(
                update={"datasets": [*p.datasets, dataset], "last_accessed": utcnow()}
            ),
        )
        logger.info(
            "dataset.added",
            prompt_id=prompt_id,
            dataset_id=dataset.id,
            rows=len(dataset.data),
            columns=len(dataset.columns),
        )
        return dataset

    def get_dataset(self, user_id: str, prompt_id: str, dataset_id: str) -> Dataset:
        prompt = self.require_prompt(user_id, prompt_id)
        dataset = _find(prompt.datasets, dataset_id)
        if dataset is None:
            raise NotFoundError(f"Dataset '{dataset_id}' not found")
        return dataset

    def delete_dataset(self, user_id: str, prompt_id: str, dataset_id: str) -> None:
        """Remove a dataset. Experiments that reference it are left as they are."""
        self.update_prompt(
            user_id,
            prompt_id,
            lambda p: p.model_copy(
                update={
                    "datasets": [d for d in p.datasets if d.id != dataset_id],
                    "last_accessed": utcnow(),
                }
            ),
        )

    # --- Experiments ---

    def _validate_experiment(self, user_id: str, owner: Prompt, experiment: Experiment) -> None:
        if not experiment.name.strip():
            raise ConfigurationError("Experiment name is required")
        if not experiment.judge_prompt.strip():
            raise ConfigurationError("Judge prompt is required")
        if _find(owner.datasets, experiment.dataset_id) is None:
            raise NotFoundError(f"Dataset '{experiment.dataset_id}' not found")
        self.find_version(user_id, experiment.prompt_id, experiment.prompt_version_id)

    def add_experiment(
        self,
        user_id: str,
        prompt_id: str,
        name: str,
        dataset_id: str,
        target_prompt_id: str,
        prompt_version_id: str,
        judge_prompt: str,
    ) -> Experiment:
        """Save an experiment configuration without running it."""
        owner = self.require_prompt(user_id, prompt_id)
        experiment = Experiment(
            name=name.strip(),
            dataset_id=dataset_id,
            prompt_id=target_prompt_id,
            prompt_version_id=prompt_version_id,
            judge_prompt=judge_prompt,
        )
        self._validate_experiment(user_id, owner, experiment)
        self.update_prompt(
            user_id,
            prompt_id,
            lambda p: p.model_copy(
                update={"experiments": [*p.experiments, experiment], "last_accessed": utcnow()}
            ),
        )
        logger.info("experiment.created", prompt_id=prompt_id, experiment_id=experiment.id)
        return experiment

    def get_experiment(self, user_id: str, prompt_id: str, experiment_id: str) -> Experiment:
        prompt = self.require_prompt(user_id, prompt_id)
        experiment = _find(prompt.experiments, experiment_id)
        if experiment is None:
            raise NotFoundError(f"Experiment '{experiment_id}' not found")
        return experiment

    def update_experiment(
        self, user_id: str, prompt_id: str, experiment_id: str, **changes: Any
    ) -> Experiment:
        """Edit an experiment's configuration. Past runs are kept as they are."""
        unknown = set(changes) - EDITABLE_EXPERIMENT_FIELDS
        if unknown:
            raise ConfigurationError(f"Cannot edit experiment fields: {', '.join(sorted(unknown))}")

        owner = self.require_prompt(user_id, prompt_id)
        current = self.get_experiment(user_id, prompt_id, experiment_id)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        updated = current.model_copy(update={**changes, "updated_at": utcnow()})
        self._validate_experiment(user_id, owner, updated)
        self.save_experiment(user_id, prompt_id, updated)
        logger.info("experiment.updated", experiment_id=experiment_id, fields=sorted(changes))
        return updated

    def save_experiment(self, user_id: str, prompt_id: str, experiment: Experiment) -> Experiment:
        """Replace an experiment by id inside its owning prompt."""

        def _apply(p: Prompt) -> Prompt:
            if _find(p.experiments, experiment.id) is None:
                raise NotFoundError(f"Experiment '{experiment.id}' not found")
            return p.model_copy(
                update={"experiments": _replace_by_id(p.experiments, experiment)}
            )

        self.update_prompt(user_id, prompt_id, _apply)
        return experiment

    def delete_experiment(self, user_id: str, prompt_id: str, experiment_id: str) -> None:
        self.update_prompt(
            user_id,
            prompt_id,
            lambda p: p.model_copy(
                update={
                    "experiments": [e for e in p.experiments if e.id != experiment_id],
                    "last_accessed": utcnow(),
                }
            ),
        )


@lru_cache
def get_registry() -> PromptRegistry:
    """Get cached registry instance."""
    return PromptRegistry(get_store())


def resolve_user_id(registry: PromptRegistry, requested: str | None = None) -> str:
    """Explicit user, else the active-user pointer, else the configured default."""
    return requested or registry.get_active_user() or get_settings().default_user
