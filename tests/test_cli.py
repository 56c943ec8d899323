"""Tests for the studio CLI."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from prompt_studio.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_client():
    with patch("prompt_studio.cli.main.StudioClient") as MockClass:
        client = MagicMock()
        MockClass.return_value = client
        yield client


class TestPromptCommands:
    def test_prompt_list(self, runner, mock_client):
        mock_client.list_prompts.return_value = [
            {
                "id": "abc123def",
                "name": "Summariser",
                "currentBranch": "main",
                "versionCount": 2,
                "lastAccessed": "2026-01-01T00:00:00Z",
            }
        ]
        result = runner.invoke(cli, ["prompt", "list"])
        assert result.exit_code == 0
        assert "Summariser" in result.output
        assert "CURRENTBRANCH" in result.output

    def test_prompt_list_json(self, runner, mock_client):
        mock_client.list_prompts.return_value = [{"id": "a", "name": "A"}]
        result = runner.invoke(cli, ["--format", "json", "prompt", "list"])
        assert result.exit_code == 0
        assert json.loads(result.output) == [{"id": "a", "name": "A"}]

    def test_prompt_create(self, runner, mock_client):
        mock_client.create_prompt.return_value = {"id": "new", "name": "New"}
        result = runner.invoke(cli, ["prompt", "create", "New"])
        assert result.exit_code == 0
        mock_client.create_prompt.assert_called_once_with("New")

    def test_prompt_delete(self, runner, mock_client):
        result = runner.invoke(cli, ["prompt", "delete", "abc", "--yes"])
        assert result.exit_code == 0
        mock_client.delete_prompt.assert_called_once_with("abc")
        assert "Deleted" in result.output

    def test_api_error_reported(self, runner, mock_client):
        mock_client.get_prompt.side_effect = RuntimeError("API error (404): Prompt 'x' not found")
        result = runner.invoke(cli, ["prompt", "show", "x"])
        assert result.exit_code != 0
        assert "not found" in result.output

    def test_user_option(self, runner):
        with patch("prompt_studio.cli.main.StudioClient") as MockClass:
            MockClass.return_value.list_prompts.return_value = []
            result = runner.invoke(cli, ["--user", "alice", "prompt", "list"])
            assert result.exit_code == 0
            MockClass.assert_called_once_with(base_url="http://localhost:8400", user_id="alice")


class TestBranchCommands:
    def test_branch_create(self, runner, mock_client):
        mock_client.create_branch.return_value = {"id": "p"}
        result = runner.invoke(
            cli, ["branch", "create", "p1", "feature", "-m", "try", "--from", "v1"]
        )
        assert result.exit_code == 0
        mock_client.create_branch.assert_called_once_with(
            "p1", {"name": "feature", "commit_message": "try", "from_version_id": "v1"}
        )

    def test_branch_merge(self, runner, mock_client):
        mock_client.merge_branch.return_value = {"id": "p"}
        result = runner.invoke(cli, ["branch", "merge", "p1", "feature", "-m", "ship"])
        assert result.exit_code == 0
        mock_client.merge_branch.assert_called_once_with("p1", "feature", "main", "ship")

    def test_branch_list(self, runner, mock_client):
        mock_client.list_branches.return_value = [
            {"name": "main", "versionCount": 1, "headId": "v1", "isCurrent": True}
        ]
        result = runner.invoke(cli, ["branch", "list", "p1"])
        assert result.exit_code == 0
        assert "main" in result.output


class TestVersionCommands:
    def test_version_history(self, runner, mock_client):
        mock_client.list_versions.return_value = [
            {"id": "v2", "branch": "main", "parent": "v1", "commitMessage": "second"},
            {"id": "v1", "branch": "main", "parent": None, "commitMessage": "Initial commit"},
        ]
        result = runner.invoke(cli, ["version", "history", "p1", "--branch", "main"])
        assert result.exit_code == 0
        assert "second" in result.output
        mock_client.list_versions.assert_called_once_with("p1", "main")


class TestDatasetCommands:
    def test_import(self, runner, mock_client, tmp_path):
        csv_file = tmp_path / "quiz.csv"
        csv_file.write_text("q,a\n1,2\n")
        mock_client.import_dataset.return_value = {
            "id": "d1",
            "name": "quiz",
            "data": [{"q": "1", "a": "2"}],
            "columns": ["q", "a"],
        }
        result = runner.invoke(cli, ["dataset", "import", "p1", str(csv_file)])
        assert result.exit_code == 0
        mock_client.import_dataset.assert_called_once_with("p1", "quiz", "q,a\n1,2\n")
        assert "1 rows" in result.output


class TestExperimentCommands:
    def test_create(self, runner, mock_client):
        mock_client.create_experiment.return_value = {"experiment": {"id": "e1"}}
        result = runner.invoke(
            cli,
            [
                "experiment", "create", "p1",
                "--name", "acc", "--dataset", "d1", "--version", "v1",
                "--judge", "PASS?", "--run",
            ],
        )
        assert result.exit_code == 0
        args = mock_client.create_experiment.call_args[0]
        assert args[0] == "p1"
        assert args[1]["prompt_id"] == "p1"
        assert args[1]["run"] is True

    def test_run(self, runner, mock_client):
        mock_client.run_experiment.return_value = {"run_id": "r1", "rows": 3}
        result = runner.invoke(cli, ["experiment", "run", "p1", "e1"])
        assert result.exit_code == 0
        assert "r1" in result.output

    def test_list_shows_latest_run(self, runner, mock_client):
        mock_client.list_experiments.return_value = [
            {
                "id": "e1", "name": "acc", "datasetId": "d1", "runs": [{}],
                "latestRun": {"run_id": "r1", "status": "completed", "total": 3, "passed": 2,
                              "failed": 1},
            },
            {"id": "e2", "name": "new", "datasetId": "d1", "runs": [], "latestRun": None},
        ]
        result = runner.invoke(cli, ["experiment", "list", "p1"])
        assert result.exit_code == 0
        assert "2/3 passed (completed)" in result.output
        assert "LASTRUN" in result.output

    def test_show_run(self, runner, mock_client):
        mock_client.get_run.return_value = {
            "run": {"results": [{"id": "x", "rating": "pass", "output": "4"}]},
            "summary": {"run_id": "r1", "status": "completed", "total": 1, "passed": 1, "failed": 0},
        }
        result = runner.invoke(cli, ["experiment", "show", "p1", "e1", "--run", "r1"])
        assert result.exit_code == 0
        assert "1 passed, 0 failed of 1" in result.output


class TestOtherCommands:
    def test_keys_set(self, runner, mock_client):
        mock_client.set_api_key.return_value = {"openai": "****abcd", "anthropic": ""}
        result = runner.invoke(cli, ["keys", "set", "openai", "--key", "sk-abcd"])
        assert result.exit_code == 0
        mock_client.set_api_key.assert_called_once_with("openai", "sk-abcd")

    def test_run_latest(self, runner, mock_client):
        mock_client.latest_version.return_value = {"id": "v9"}
        mock_client.run_prompt.return_value = {"version_id": "v9", "output": "Bonjour"}
        result = runner.invoke(cli, ["run", "p1", "Hello"])
        assert result.exit_code == 0
        mock_client.run_prompt.assert_called_once_with("p1", "v9", "Hello")
        assert "Bonjour" in result.output
