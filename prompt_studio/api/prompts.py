"""Prompt CRUD, test-case and single-shot run endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from prompt_studio.api.models import (
    CompareRequest,
    PromptCreate,
    PromptSummary,
    RunPromptRequest,
    RunPromptResponse,
    TestCaseCreate,
)
from prompt_studio.api.session import get_user_id
from prompt_studio.core.errors import ConfigurationError, NotFoundError, TransportError
from prompt_studio.core.playground import Playground, get_playground
from prompt_studio.core.registry import PromptRegistry, get_registry
from prompt_studio.db.models import Prompt, TestCase

router = APIRouter()


@router.post("", response_model=Prompt, status_code=201)
async def create_prompt(
    data: PromptCreate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Prompt:
    """Create a new prompt with an initial commit on main."""
    try:
        return registry.create_prompt(user_id, data.name)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=list[PromptSummary])
async def list_prompts(
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> list[PromptSummary]:
    """List prompts, most recently accessed first."""
    return [PromptSummary.from_prompt(p) for p in registry.list_prompts(user_id)]


@router.get("/{prompt_id}", response_model=Prompt)
async def get_prompt(
    prompt_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Prompt:
    """Get a full prompt aggregate."""
    prompt = registry.get_prompt(user_id, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return prompt


@router.post("/{prompt_id}/touch", response_model=Prompt)
async def touch_prompt(
    prompt_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Prompt:
    """Mark a prompt as opened."""
    try:
        return registry.touch_prompt(user_id, prompt_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{prompt_id}", status_code=204)
async def delete_prompt(
    prompt_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    """Delete a prompt and everything it owns."""
    if not registry.delete_prompt(user_id, prompt_id):
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")


# --- Test cases ---


@router.get("/{prompt_id}/test-cases", response_model=list[TestCase])
async def list_test_cases(
    prompt_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> list[TestCase]:
    try:
        return registry.require_prompt(user_id, prompt_id).test_cases
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{prompt_id}/test-cases", response_model=TestCase, status_code=201)
async def add_test_case(
    prompt_id: str,
    data: TestCaseCreate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> TestCase:
    try:
        return registry.add_test_case(user_id, prompt_id, data.name, data.input)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{prompt_id}/test-cases/{test_case_id}", response_model=TestCase)
async def update_test_case(
    prompt_id: str,
    test_case_id: str,
    data: TestCaseCreate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> TestCase:
    try:
        return registry.update_test_case(
            user_id, prompt_id, TestCase(id=test_case_id, name=data.name, input=data.input)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{prompt_id}/test-cases/{test_case_id}", status_code=204)
async def delete_test_case(
    prompt_id: str,
    test_case_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    try:
        registry.delete_test_case(user_id, prompt_id, test_case_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# --- Playground ---


@router.post("/{prompt_id}/run", response_model=RunPromptResponse)
async def run_prompt(
    prompt_id: str,
    data: RunPromptRequest,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
    playground: Playground = Depends(get_playground),
) -> RunPromptResponse:
    """Run one version on a test input. Nothing is saved."""
    try:
        _, version = registry.find_version(user_id, prompt_id, data.version_id)
        output = await playground.run_prompt(version, data.test_input)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportError as e:
        raise HTTPException(status_code=e.status_code or 502, detail=e.message)
    return RunPromptResponse(version_id=version.id, output=output)


@router.post("/{prompt_id}/compare")
async def compare_versions(
    prompt_id: str,
    data: CompareRequest,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
    playground: Playground = Depends(get_playground),
) -> dict[str, str]:
    """Run several versions of the prompt on the same input."""
    try:
        versions = [registry.find_version(user_id, prompt_id, vid)[1] for vid in data.version_ids]
        return await playground.compare_versions(versions, data.test_input)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
