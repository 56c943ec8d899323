"""API client for the PromptStudio REST API."""

from __future__ import annotations

from typing import Any

import httpx


class StudioClient:
    """HTTP client wrapping the PromptStudio API endpoints."""

    def __init__(self, base_url: str = "http://localhost:8400", user_id: str | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {}
        if user_id:
            headers["X-User-Id"] = user_id
        self._client = httpx.Client(base_url=f"{self.base_url}/api/v1", headers=headers, timeout=120)

    def _handle(self, resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            try:
                body = resp.json()
                detail = body.get("detail") or body.get("error") or resp.text
            except ValueError:
                detail = resp.text
            raise RuntimeError(f"API error ({resp.status_code}): {detail}")
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # --- Prompts ---

    def list_prompts(self) -> list[dict]:
        return self._handle(self._client.get("/prompts"))

    def create_prompt(self, name: str) -> dict:
        return self._handle(self._client.post("/prompts", json={"name": name}))

    def get_prompt(self, prompt_id: str) -> dict:
        return self._handle(self._client.get(f"/prompts/{prompt_id}"))

    def delete_prompt(self, prompt_id: str) -> None:
        self._handle(self._client.delete(f"/prompts/{prompt_id}"))

    def run_prompt(self, prompt_id: str, version_id: str, test_input: str) -> dict:
        return self._handle(self._client.post(
            f"/prompts/{prompt_id}/run",
            json={"version_id": version_id, "test_input": test_input},
        ))

    # --- Versions ---

    def list_versions(self, prompt_id: str, branch: str | None = None) -> list[dict]:
        params = {"branch": branch} if branch else {}
        return self._handle(self._client.get(f"/prompts/{prompt_id}/versions", params=params))

    def get_version(self, prompt_id: str, version_id: str) -> dict:
        return self._handle(self._client.get(f"/prompts/{prompt_id}/versions/{version_id}"))

    def latest_version(self, prompt_id: str, branch: str | None = None) -> dict:
        params = {"branch": branch} if branch else {}
        return self._handle(self._client.get(f"/prompts/{prompt_id}/versions/latest", params=params))

    # --- Branches ---

    def list_branches(self, prompt_id: str) -> list[dict]:
        return self._handle(self._client.get(f"/prompts/{prompt_id}/branches"))

    def create_branch(self, prompt_id: str, data: dict) -> dict:
        return self._handle(self._client.post(f"/prompts/{prompt_id}/branches", json=data))

    def merge_branch(self, prompt_id: str, branch: str, into: str, message: str) -> dict:
        return self._handle(self._client.post(
            f"/prompts/{prompt_id}/branches/{branch}/merge",
            json={"into": into, "commit_message": message},
        ))

    def delete_branch(self, prompt_id: str, branch: str) -> dict:
        return self._handle(self._client.delete(f"/prompts/{prompt_id}/branches/{branch}"))

    # --- Datasets ---

    def list_datasets(self, prompt_id: str) -> list[dict]:
        return self._handle(self._client.get(f"/prompts/{prompt_id}/datasets"))

    def import_dataset(self, prompt_id: str, name: str, csv_text: str) -> dict:
        return self._handle(self._client.post(
            f"/prompts/{prompt_id}/datasets",
            json={"name": name, "csv": csv_text},
        ))

    # --- Experiments ---

    def list_experiments(self, prompt_id: str) -> list[dict]:
        return self._handle(self._client.get(f"/prompts/{prompt_id}/experiments"))

    def create_experiment(self, prompt_id: str, data: dict) -> dict:
        return self._handle(self._client.post(f"/prompts/{prompt_id}/experiments", json=data))

    def get_experiment(self, prompt_id: str, experiment_id: str) -> dict:
        return self._handle(self._client.get(f"/prompts/{prompt_id}/experiments/{experiment_id}"))

    def run_experiment(self, prompt_id: str, experiment_id: str) -> dict:
        return self._handle(
            self._client.post(f"/prompts/{prompt_id}/experiments/{experiment_id}/run")
        )

    def get_run(self, prompt_id: str, experiment_id: str, run_id: str) -> dict:
        return self._handle(self._client.get(
            f"/prompts/{prompt_id}/experiments/{experiment_id}/runs/{run_id}"
        ))

    # --- Settings ---

    def get_api_keys(self) -> dict:
        return self._handle(self._client.get("/settings/api-keys"))

    def set_api_key(self, provider: str, api_key: str) -> dict:
        return self._handle(self._client.put(
            "/settings/api-keys",
            json={"provider": provider, "api_key": api_key},
        ))

    def set_session(self, user_id: str) -> dict:
        return self._handle(self._client.put("/session", json={"user_id": user_id}))
