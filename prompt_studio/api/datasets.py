"""Dataset import and listing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from prompt_studio.api.models import DatasetCreate
from prompt_studio.api.session import get_user_id
from prompt_studio.core.errors import ConfigurationError, DataError, NotFoundError
from prompt_studio.core.registry import PromptRegistry, get_registry
from prompt_studio.db.models import Dataset

router = APIRouter()


@router.get("/{prompt_id}/datasets", response_model=list[Dataset])
async def list_datasets(
    prompt_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> list[Dataset]:
    try:
        return registry.require_prompt(user_id, prompt_id).datasets
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{prompt_id}/datasets", response_model=Dataset, status_code=201)
async def import_dataset(
    prompt_id: str,
    data: DatasetCreate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Dataset:
    """Parse CSV text (header row first) into a new dataset."""
    try:
        return registry.add_dataset(user_id, prompt_id, data.name, data.csv)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DataError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{prompt_id}/datasets/{dataset_id}", response_model=Dataset)
async def get_dataset(
    prompt_id: str,
    dataset_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Dataset:
    try:
        return registry.get_dataset(user_id, prompt_id, dataset_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{prompt_id}/datasets/{dataset_id}", status_code=204)
async def delete_dataset(
    prompt_id: str,
    dataset_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    """Delete a dataset. Experiments referencing it fail to start afterwards."""
    try:
        registry.delete_dataset(user_id, prompt_id, dataset_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
