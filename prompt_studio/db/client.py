"""Local key-value store backed by JSON files."""

from __future__ import annotations

import json
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import quote

import structlog

from prompt_studio.config import get_settings

logger = structlog.get_logger()


class KeyValueStore:
    """Persists JSON-serialisable values, one file per key under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value, or ``default`` when the key is absent."""
        path = self._path(key)
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8"))

    def set(self, key: str, value: Any) -> None:
        """Write a value atomically (temp file + rename)."""
        payload = json.dumps(value, ensure_ascii=False, indent=2)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("store.set", key=key, bytes=len(payload))

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        self._path(key).unlink(missing_ok=True)


@lru_cache
def get_store() -> KeyValueStore:
    """Get cached store instance."""
    settings = get_settings()
    store = KeyValueStore(settings.data_dir)
    logger.info("store.opened", path=str(store.root))
    return store
