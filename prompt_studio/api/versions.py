"""Version listing, editing and rating endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from prompt_studio.api.models import RatingCreate, VersionUpdate
from prompt_studio.api.session import get_user_id
from prompt_studio.core import vcs
from prompt_studio.core.errors import ConfigurationError, NotFoundError
from prompt_studio.core.playground import rate_output
from prompt_studio.core.registry import PromptRegistry, get_registry
from prompt_studio.db.models import PromptVersion, utcnow

router = APIRouter()


@router.get("/{prompt_id}/versions", response_model=list[PromptVersion])
async def list_versions(
    prompt_id: str,
    branch: str | None = None,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> list[PromptVersion]:
    """Version history of one branch (default: the current branch), newest first."""
    prompt = registry.get_prompt(user_id, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return vcs.branch_history(prompt, branch or prompt.current_branch)


@router.get("/{prompt_id}/versions/latest", response_model=PromptVersion)
async def get_latest_version(
    prompt_id: str,
    branch: str | None = None,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptVersion:
    """Head of a branch (default: the current branch)."""
    prompt = registry.get_prompt(user_id, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    branch_name = branch or prompt.current_branch
    latest = vcs.select_latest(prompt, branch_name)
    if latest is None:
        raise HTTPException(status_code=404, detail=f"No versions found on branch '{branch_name}'")
    return latest


@router.get("/{prompt_id}/versions/{version_id}", response_model=PromptVersion)
async def get_version(
    prompt_id: str,
    version_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptVersion:
    try:
        return registry.find_version(user_id, prompt_id, version_id)[1]
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{prompt_id}/versions/{version_id}", response_model=PromptVersion)
async def update_version(
    prompt_id: str,
    version_id: str,
    data: VersionUpdate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptVersion:
    """Save edits in place. The version keeps its id and gets a new timestamp."""
    try:
        _, version = registry.find_version(user_id, prompt_id, version_id)
        updated = version.model_copy(
            update={
                "prompt_text": data.prompt_text,
                "system_message": data.system_message,
                "parameters": data.parameters,
                "commit_message": data.commit_message.strip(),
                "timestamp": utcnow(),
            }
        )
        registry.update_prompt(user_id, prompt_id, lambda p: vcs.update_version(p, updated))
        return updated
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/{prompt_id}/versions/{version_id}/ratings", response_model=PromptVersion, status_code=201
)
async def rate_version_output(
    prompt_id: str,
    version_id: str,
    data: RatingCreate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptVersion:
    """Log a pass/fail rating for a single-shot output on the version."""
    try:
        prompt = registry.update_prompt(
            user_id,
            prompt_id,
            lambda p: rate_output(p, version_id, data.input, data.output, data.rating),
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return vcs.get_version(prompt, version_id)
