"""Error taxonomy shared by the core, the API and the CLI."""

from __future__ import annotations


class PromptStudioError(Exception):
    """Base class for all PromptStudio errors."""


class ConfigurationError(PromptStudioError):
    """A required selection or credential is missing. Raised before any side effect."""


class NotFoundError(ConfigurationError):
    """A referenced prompt, version, dataset or experiment does not exist."""


class DataError(PromptStudioError):
    """Input data cannot be used as given (malformed CSV, empty merge source)."""


class TransportError(PromptStudioError):
    """An LLM provider call failed.

    ``status_code`` mirrors the upstream HTTP status, or is ``None`` for
    network-level failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FatalRunError(PromptStudioError):
    """An experiment run stopped outside the per-row error boundary."""

    def __init__(self, message: str, run_id: str) -> None:
        super().__init__(message)
        self.run_id = run_id
