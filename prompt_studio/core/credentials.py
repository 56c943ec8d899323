"""Provider API keys stored in the settings entry of the key-value store."""

from __future__ import annotations

from functools import lru_cache

import structlog

from prompt_studio.config import get_settings
from prompt_studio.core.errors import ConfigurationError
from prompt_studio.core.gateway import Provider
from prompt_studio.db.client import KeyValueStore, get_store

logger = structlog.get_logger()

SETTINGS_KEY = "api_settings"


def mask_key(key: str) -> str:
    """Show only the last four characters."""
    if not key:
        return ""
    return f"{'*' * max(len(key) - 4, 4)}{key[-4:]}"


class CredentialStore:
    """Reads keys fresh from the store on every lookup."""

    def __init__(
        self,
        store: KeyValueStore,
        fallback_keys: dict[Provider, str] | None = None,
    ) -> None:
        self.store = store
        self.fallback_keys = fallback_keys or {}

    def all_keys(self) -> dict[str, str]:
        return dict(self.store.get(SETTINGS_KEY, default={}))

    def get_api_key(self, provider: Provider) -> str | None:
        key = self.all_keys().get(provider.value) or self.fallback_keys.get(provider)
        return key or None

    def require_api_key(self, provider: Provider) -> str:
        key = self.get_api_key(provider)
        if not key:
            raise ConfigurationError(f"API key not configured for {provider.label}")
        return key

    def set_api_key(self, provider: Provider, key: str) -> None:
        """Store a key; an empty key removes it."""
        keys = self.all_keys()
        if key:
            keys[provider.value] = key
        else:
            keys.pop(provider.value, None)
        self.store.set(SETTINGS_KEY, keys)
        logger.info("credentials.updated", provider=provider.value, configured=bool(key))

    def masked(self) -> dict[str, str]:
        return {p.value: mask_key(self.get_api_key(p) or "") for p in Provider}


@lru_cache
def get_credentials() -> CredentialStore:
    """Get cached credential store, falling back to keys from the environment."""
    settings = get_settings()
    fallbacks = {
        Provider.OPENAI: settings.openai_api_key,
        Provider.ANTHROPIC: settings.anthropic_api_key,
    }
    return CredentialStore(get_store(), {p: k for p, k in fallbacks.items() if k})
