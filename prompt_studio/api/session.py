"""Active user, API keys and the caller-identity dependency."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header

from prompt_studio.api.models import ApiKeyUpdate, SessionUpdate
from prompt_studio.core.credentials import CredentialStore, get_credentials
from prompt_studio.core.gateway import Provider
from prompt_studio.core.registry import PromptRegistry, get_registry, resolve_user_id

router = APIRouter()


def get_user_id(
    x_user_id: str | None = Header(default=None),
    registry: PromptRegistry = Depends(get_registry),
) -> str:
    """User from the X-User-Id header, else the active user, else the default."""
    return resolve_user_id(registry, x_user_id)


@router.get("/session")
async def get_session(user_id: str = Depends(get_user_id)) -> dict[str, str]:
    """Show which user requests act as."""
    return {"user_id": user_id}


@router.put("/session")
async def set_session(
    data: SessionUpdate,
    registry: PromptRegistry = Depends(get_registry),
) -> dict[str, str]:
    """Switch the active user."""
    registry.set_active_user(data.user_id)
    return {"user_id": data.user_id}


@router.get("/settings/api-keys")
async def get_api_keys(
    credentials: CredentialStore = Depends(get_credentials),
) -> dict[str, str]:
    """Configured keys, masked."""
    return credentials.masked()


@router.put("/settings/api-keys")
async def set_api_key(
    data: ApiKeyUpdate,
    credentials: CredentialStore = Depends(get_credentials),
) -> dict[str, str]:
    """Store (or clear, with an empty key) one provider's API key."""
    credentials.set_api_key(Provider(data.provider), data.api_key)
    return credentials.masked()
