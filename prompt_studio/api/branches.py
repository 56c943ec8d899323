"""Branch management endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from prompt_studio.api.models import BranchCreate, BranchMerge, BranchResponse
from prompt_studio.api.session import get_user_id
from prompt_studio.core import vcs
from prompt_studio.core.errors import NotFoundError
from prompt_studio.core.registry import PromptRegistry, get_registry
from prompt_studio.db.models import Prompt

router = APIRouter()


def _branch_response(info: vcs.BranchInfo) -> BranchResponse:
    return BranchResponse(
        name=info.name,
        version_count=info.version_count,
        head_id=info.head_id,
        is_current=info.is_current,
    )


@router.get("/{prompt_id}/branches", response_model=list[BranchResponse])
async def list_branches(
    prompt_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> list[BranchResponse]:
    """List all branches for a prompt."""
    prompt = registry.get_prompt(user_id, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    return [_branch_response(b) for b in vcs.list_branches(prompt)]


@router.post("/{prompt_id}/branches", response_model=Prompt, status_code=201)
async def create_branch(
    prompt_id: str,
    data: BranchCreate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Prompt:
    """Branch from a version (default: head of the current branch)."""
    prompt = registry.get_prompt(user_id, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")

    if data.from_version_id:
        source = vcs.get_version(prompt, data.from_version_id)
    else:
        source = vcs.select_latest(prompt, prompt.current_branch)
    if source is None:
        raise HTTPException(status_code=404, detail="Source version not found")

    return registry.update_prompt(
        user_id,
        prompt_id,
        lambda p: vcs.create_branch(p, source, data.name, data.commit_message.strip()),
    )


@router.post("/{prompt_id}/branches/{branch_name}/merge", response_model=Prompt)
async def merge_branch(
    prompt_id: str,
    branch_name: str,
    data: BranchMerge,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Prompt:
    """Copy the head of a branch onto another branch (default: main)."""
    prompt = registry.get_prompt(user_id, prompt_id)
    if not prompt:
        raise HTTPException(status_code=404, detail=f"Prompt '{prompt_id}' not found")
    if vcs.select_latest(prompt, branch_name) is None:
        raise HTTPException(
            status_code=422, detail=f"No versions on source branch '{branch_name}'"
        )

    return registry.update_prompt(
        user_id,
        prompt_id,
        lambda p: vcs.merge_branch(p, branch_name, data.into, data.commit_message.strip()),
    )


@router.post("/{prompt_id}/branches/{branch_name}/checkout", response_model=Prompt)
async def checkout_branch(
    prompt_id: str,
    branch_name: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Prompt:
    """Make a branch current."""
    try:
        return registry.update_prompt(
            user_id, prompt_id, lambda p: vcs.switch_branch(p, branch_name)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{prompt_id}/branches/{branch_name}", response_model=Prompt)
async def delete_branch(
    prompt_id: str,
    branch_name: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Prompt:
    """Delete a branch and all its versions. Main cannot be deleted."""
    if branch_name == vcs.MAIN_BRANCH:
        raise HTTPException(status_code=400, detail="The main branch cannot be deleted")
    try:
        return registry.update_prompt(
            user_id, prompt_id, lambda p: vcs.delete_branch(p, branch_name)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
