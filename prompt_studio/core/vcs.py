"""Version Control System — branches, commits and merges for one prompt.

Every function here is pure: it takes a ``Prompt`` aggregate and returns a
new one. Persisting the result is the caller's job (see
``PromptRegistry.update_prompt``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from prompt_studio.core.errors import NotFoundError
from prompt_studio.db.models import (
    Prompt,
    PromptParameters,
    PromptVersion,
    TestResult,
    new_id,
    utcnow,
)

logger = structlog.get_logger()

MAIN_BRANCH = "main"

# Fields copied when a version is cloned onto another branch.
CONTENT_FIELDS = ("prompt_text", "system_message", "parameters")


@dataclass(frozen=True)
class BranchInfo:
    """Summary of one branch."""

    name: str
    version_count: int
    head_id: str | None
    is_current: bool


def _content_of(version: PromptVersion) -> dict[str, Any]:
    return {name: getattr(version, name) for name in CONTENT_FIELDS}


def _touch(prompt: Prompt, **changes: Any) -> Prompt:
    return prompt.model_copy(update={"last_accessed": utcnow(), **changes})


def create_prompt(name: str) -> Prompt:
    """Create a prompt seeded with an initial commit on main."""
    initial = PromptVersion(
        branch=MAIN_BRANCH,
        prompt_text="",
        system_message="",
        parameters=PromptParameters(),
        commit_message="Initial commit",
    )
    prompt = Prompt(name=name, current_branch=MAIN_BRANCH, versions=[initial])
    logger.info("vcs.prompt_created", prompt_id=prompt.id, name=name)
    return prompt


def branch_history(prompt: Prompt, branch: str) -> list[PromptVersion]:
    """Versions on a branch, most recent first.

    Equal timestamps fall back to insertion order, later entries first.
    """
    indexed = [(i, v) for i, v in enumerate(prompt.versions) if v.branch == branch]
    indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
    return [v for _, v in indexed]


def select_latest(prompt: Prompt, branch: str) -> PromptVersion | None:
    """Most recent version on ``branch``, or None if the branch is empty."""
    history = branch_history(prompt, branch)
    return history[0] if history else None


def get_version(prompt: Prompt, version_id: str) -> PromptVersion | None:
    return next((v for v in prompt.versions if v.id == version_id), None)


def list_branches(prompt: Prompt) -> list[BranchInfo]:
    """Branches in order of first appearance, main first."""
    names: list[str] = [MAIN_BRANCH]
    for v in prompt.versions:
        if v.branch not in names:
            names.append(v.branch)

    branches = []
    for name in names:
        head = select_latest(prompt, name)
        count = sum(1 for v in prompt.versions if v.branch == name)
        branches.append(
            BranchInfo(
                name=name,
                version_count=count,
                head_id=head.id if head else None,
                is_current=name == prompt.current_branch,
            )
        )
    return branches


def update_version(prompt: Prompt, version: PromptVersion) -> Prompt:
    """Replace the version with the same id.

    No parameter validation happens here; providers reject bad values.
    """
    versions = [version if v.id == version.id else v for v in prompt.versions]
    logger.info("vcs.version_updated", prompt_id=prompt.id, version_id=version.id)
    return _touch(prompt, versions=versions)


def create_branch(
    prompt: Prompt,
    from_version: PromptVersion,
    branch_name: str,
    commit_message: str,
) -> Prompt:
    """Start (or extend) ``branch_name`` with a copy of ``from_version``.

    Reusing an existing branch name appends a new commit to that branch.
    """
    new_version = PromptVersion(
        id=new_id(),
        branch=branch_name,
        parent=from_version.id,
        commit_message=commit_message,
        timestamp=utcnow(),
        test_results=[],
        **_content_of(from_version),
    )
    logger.info(
        "vcs.branch_created",
        prompt_id=prompt.id,
        branch=branch_name,
        from_version=from_version.id,
        from_branch=from_version.branch,
    )
    return _touch(
        prompt,
        versions=[*prompt.versions, new_version],
        current_branch=branch_name,
    )


def merge_branch(
    prompt: Prompt,
    from_branch: str,
    to_branch: str,
    commit_message: str,
) -> Prompt:
    """Copy the head of ``from_branch`` onto ``to_branch`` as a new commit.

    There is no diffing: the target receives the source content verbatim.
    An empty source branch leaves the prompt unchanged.
    """
    source = select_latest(prompt, from_branch)
    if source is None:
        logger.warning(
            "vcs.merge_skipped",
            prompt_id=prompt.id,
            source=from_branch,
            target=to_branch,
            reason="empty source branch",
        )
        return prompt

    merged = PromptVersion(
        id=new_id(),
        branch=to_branch,
        parent=source.id,
        commit_message=f"Merge {from_branch} into {to_branch}: {commit_message}",
        timestamp=utcnow(),
        test_results=list(source.test_results),
        **_content_of(source),
    )
    logger.info(
        "vcs.branch_merged",
        prompt_id=prompt.id,
        source=from_branch,
        target=to_branch,
        source_version=source.id,
    )
    return _touch(
        prompt,
        versions=[*prompt.versions, merged],
        current_branch=to_branch,
    )


def delete_branch(prompt: Prompt, branch_name: str) -> Prompt:
    """Drop every version on ``branch_name``. Main cannot be deleted."""
    if branch_name == MAIN_BRANCH:
        logger.warning("vcs.delete_refused", prompt_id=prompt.id, branch=branch_name)
        return prompt

    versions = [v for v in prompt.versions if v.branch != branch_name]
    current = MAIN_BRANCH if prompt.current_branch == branch_name else prompt.current_branch
    logger.info(
        "vcs.branch_deleted",
        prompt_id=prompt.id,
        branch=branch_name,
        removed=len(prompt.versions) - len(versions),
    )
    return _touch(prompt, versions=versions, current_branch=current)


def switch_branch(prompt: Prompt, branch_name: str) -> Prompt:
    """Make ``branch_name`` current. Unknown branches raise NotFoundError."""
    if select_latest(prompt, branch_name) is None:
        raise NotFoundError(f"No versions found on branch '{branch_name}'")
    return _touch(prompt, current_branch=branch_name)


def add_test_result(prompt: Prompt, version_id: str, result: TestResult) -> Prompt:
    """Append a rated output to a version's test log."""
    version = get_version(prompt, version_id)
    if version is None:
        raise NotFoundError(f"Version '{version_id}' not found")
    updated = version.model_copy(update={"test_results": [*version.test_results, result]})
    versions = [updated if v.id == version_id else v for v in prompt.versions]
    return _touch(prompt, versions=versions)
