"""Application configuration — reads from environment variables and Docker Swarm secrets."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


def _read_secret(name: str) -> str | None:
    """Read a Docker Swarm secret from /run/secrets/."""
    secret_path = Path(f"/run/secrets/{name}")
    if secret_path.exists():
        return secret_path.read_text().strip()
    return None


def _env_or_secret(env_var: str, secret_name: str) -> str | None:
    """Try environment variable first, then Docker Swarm secret."""
    return os.getenv(env_var) or _read_secret(secret_name)


class Settings(BaseSettings):
    """Application settings with env var and secret support."""

    data_dir: Path = Path(".prompt_studio")
    default_user: str = "local"
    port: int = 8400
    log_level: str = "INFO"

    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    anthropic_max_tokens: int = 8192
    request_timeout: float = 60.0

    # Inter-row pause so live progress stays observable.
    row_delay_seconds: float = 0.5

    # Fallback credentials when the user has none stored.
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "STUDIO_"}

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.openai_api_key and (secret := _env_or_secret("OPENAI_API_KEY", "openai_api_key")):
            self.openai_api_key = secret
        if not self.anthropic_api_key and (
            secret := _env_or_secret("ANTHROPIC_API_KEY", "anthropic_api_key")
        ):
            self.anthropic_api_key = secret


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
