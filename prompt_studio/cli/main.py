"""PromptStudio CLI — studio command."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from prompt_studio.cli.client import StudioClient


def _format_table(rows: list[dict], columns: list[str]) -> str:
    """Simple table formatter."""
    if not rows:
        return "No results."
    widths = {c: len(c) for c in columns}
    for row in rows:
        for c in columns:
            val = str(row.get(c, ""))
            widths[c] = max(widths[c], len(val))

    header = "  ".join(c.upper().ljust(widths[c]) for c in columns)
    separator = "  ".join("-" * widths[c] for c in columns)
    lines = [header, separator]
    for row in rows:
        line = "  ".join(str(row.get(c, "")).ljust(widths[c]) for c in columns)
        lines.append(line)
    return "\n".join(lines)


@click.group()
@click.option("--api", default="http://localhost:8400", envvar="STUDIO_API", help="API base URL")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.option("--user", default=None, envvar="STUDIO_USER", help="Act as this user")
@click.pass_context
def cli(ctx: click.Context, api: str, output_format: str, user: str | None) -> None:
    """PromptStudio CLI. Manage prompts, branches, datasets and experiments."""
    ctx.ensure_object(dict)
    ctx.obj = StudioClient(base_url=api, user_id=user)
    ctx.meta["output_format"] = output_format


def _output(ctx: click.Context, data: Any, columns: list[str] | None = None) -> None:
    fmt = ctx.meta.get("output_format", "table")
    if fmt == "json":
        click.echo(json.dumps(data, indent=2, default=str))
    elif isinstance(data, list) and columns:
        click.echo(_format_table(data, columns))
    else:
        click.echo(json.dumps(data, indent=2, default=str))


def _call(fn, *args, **kwargs) -> Any:
    try:
        return fn(*args, **kwargs)
    except RuntimeError as e:
        raise click.ClickException(str(e))


# --- Prompt commands ---


@cli.group()
def prompt() -> None:
    """Manage prompts."""


@prompt.command("list")
@click.pass_context
def prompt_list(ctx: click.Context) -> None:
    """List prompts, most recently used first."""
    client: StudioClient = ctx.obj
    data = _call(client.list_prompts)
    _output(ctx, data, ["id", "name", "currentBranch", "versionCount", "lastAccessed"])


@prompt.command("create")
@click.argument("name")
@click.pass_context
def prompt_create(ctx: click.Context, name: str) -> None:
    """Create a prompt with an empty first version on main."""
    client: StudioClient = ctx.obj
    result = _call(client.create_prompt, name)
    _output(ctx, result)


@prompt.command("show")
@click.argument("prompt_id")
@click.pass_context
def prompt_show(ctx: click.Context, prompt_id: str) -> None:
    """Show prompt details."""
    client: StudioClient = ctx.obj
    _output(ctx, _call(client.get_prompt, prompt_id))


@prompt.command("delete")
@click.argument("prompt_id")
@click.confirmation_option(prompt="Delete this prompt and everything it owns?")
@click.pass_context
def prompt_delete(ctx: click.Context, prompt_id: str) -> None:
    """Delete a prompt."""
    client: StudioClient = ctx.obj
    _call(client.delete_prompt, prompt_id)
    click.echo(f"Deleted prompt '{prompt_id}'")


# --- Branch commands ---


@cli.group()
def branch() -> None:
    """Manage branches."""


@branch.command("list")
@click.argument("prompt_id")
@click.pass_context
def branch_list(ctx: click.Context, prompt_id: str) -> None:
    """List branches of a prompt."""
    client: StudioClient = ctx.obj
    data = _call(client.list_branches, prompt_id)
    _output(ctx, data, ["name", "versionCount", "headId", "isCurrent"])


@branch.command("create")
@click.argument("prompt_id")
@click.argument("name")
@click.option("--message", "-m", required=True)
@click.option("--from", "from_version_id", default=None, help="Source version id")
@click.pass_context
def branch_create(
    ctx: click.Context, prompt_id: str, name: str, message: str, from_version_id: str | None
) -> None:
    """Create a branch from a version (default: head of the current branch)."""
    client: StudioClient = ctx.obj
    data: dict[str, Any] = {"name": name, "commit_message": message}
    if from_version_id:
        data["from_version_id"] = from_version_id
    _output(ctx, _call(client.create_branch, prompt_id, data))


@branch.command("merge")
@click.argument("prompt_id")
@click.argument("name")
@click.option("--into", default="main")
@click.option("--message", "-m", required=True)
@click.pass_context
def branch_merge(ctx: click.Context, prompt_id: str, name: str, into: str, message: str) -> None:
    """Merge a branch's head into another branch."""
    client: StudioClient = ctx.obj
    _output(ctx, _call(client.merge_branch, prompt_id, name, into, message))


@branch.command("delete")
@click.argument("prompt_id")
@click.argument("name")
@click.pass_context
def branch_delete(ctx: click.Context, prompt_id: str, name: str) -> None:
    """Delete a branch and all its versions."""
    client: StudioClient = ctx.obj
    _call(client.delete_branch, prompt_id, name)
    click.echo(f"Deleted branch '{name}'")


# --- Version commands ---


@cli.group()
def version() -> None:
    """Inspect versions."""


@version.command("history")
@click.argument("prompt_id")
@click.option("--branch", default=None)
@click.pass_context
def version_history(ctx: click.Context, prompt_id: str, branch: str | None) -> None:
    """Show version history, newest first."""
    client: StudioClient = ctx.obj
    data = _call(client.list_versions, prompt_id, branch)
    _output(ctx, data, ["id", "branch", "parent", "commitMessage", "timestamp"])


@version.command("show")
@click.argument("prompt_id")
@click.argument("version_id")
@click.pass_context
def version_show(ctx: click.Context, prompt_id: str, version_id: str) -> None:
    """Show one version."""
    client: StudioClient = ctx.obj
    _output(ctx, _call(client.get_version, prompt_id, version_id))


# --- Datasets ---


@cli.group()
def dataset() -> None:
    """Manage datasets."""


@dataset.command("import")
@click.argument("prompt_id")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", default=None, help="Dataset name (default: file name)")
@click.pass_context
def dataset_import(ctx: click.Context, prompt_id: str, csv_file: Path, name: str | None) -> None:
    """Import a CSV file as a dataset."""
    client: StudioClient = ctx.obj
    csv_text = csv_file.read_text(encoding="utf-8")
    result = _call(client.import_dataset, prompt_id, name or csv_file.stem, csv_text)
    click.echo(
        f"Imported '{result['name']}' ({len(result['data'])} rows, "
        f"columns: {', '.join(result['columns'])}) as {result['id']}"
    )


@dataset.command("list")
@click.argument("prompt_id")
@click.pass_context
def dataset_list(ctx: click.Context, prompt_id: str) -> None:
    """List datasets of a prompt."""
    client: StudioClient = ctx.obj
    data = _call(client.list_datasets, prompt_id)
    rows = [{"id": d["id"], "name": d["name"], "rows": len(d["data"]),
             "columns": ",".join(d["columns"])} for d in data]
    _output(ctx, rows, ["id", "name", "rows", "columns"])


# --- Experiments ---


@cli.group()
def experiment() -> None:
    """Manage experiments."""


@experiment.command("list")
@click.argument("prompt_id")
@click.pass_context
def experiment_list(ctx: click.Context, prompt_id: str) -> None:
    """List experiments of a prompt."""
    client: StudioClient = ctx.obj
    data = _call(client.list_experiments, prompt_id)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, data)
        return
    rows = []
    for e in data:
        latest = e.get("latestRun")
        last = "-"
        if latest:
            last = f"{latest['passed']}/{latest['total']} passed ({latest['status']})"
        rows.append({"id": e["id"], "name": e["name"], "datasetId": e["datasetId"],
                     "runs": len(e["runs"]), "lastRun": last})
    _output(ctx, rows, ["id", "name", "datasetId", "runs", "lastRun"])


@experiment.command("create")
@click.argument("prompt_id")
@click.option("--name", required=True)
@click.option("--dataset", "dataset_id", required=True)
@click.option("--version", "version_id", required=True)
@click.option("--target", "target_prompt_id", default=None,
              help="Prompt owning the version (default: PROMPT_ID)")
@click.option("--judge", "judge_prompt", required=True)
@click.option("--run", "run_now", is_flag=True, help="Start a run right away")
@click.pass_context
def experiment_create(
    ctx: click.Context,
    prompt_id: str,
    name: str,
    dataset_id: str,
    version_id: str,
    target_prompt_id: str | None,
    judge_prompt: str,
    run_now: bool,
) -> None:
    """Create an experiment."""
    client: StudioClient = ctx.obj
    data = {
        "name": name,
        "dataset_id": dataset_id,
        "prompt_id": target_prompt_id or prompt_id,
        "prompt_version_id": version_id,
        "judge_prompt": judge_prompt,
        "run": run_now,
    }
    _output(ctx, _call(client.create_experiment, prompt_id, data))


@experiment.command("run")
@click.argument("prompt_id")
@click.argument("experiment_id")
@click.pass_context
def experiment_run(ctx: click.Context, prompt_id: str, experiment_id: str) -> None:
    """Start a run of an experiment."""
    client: StudioClient = ctx.obj
    result = _call(client.run_experiment, prompt_id, experiment_id)
    click.echo(f"Started run {result['run_id']} over {result['rows']} rows")


@experiment.command("show")
@click.argument("prompt_id")
@click.argument("experiment_id")
@click.option("--run", "run_id", default=None, help="Show one run's results")
@click.pass_context
def experiment_show(
    ctx: click.Context, prompt_id: str, experiment_id: str, run_id: str | None
) -> None:
    """Show an experiment, or one of its runs."""
    client: StudioClient = ctx.obj
    if run_id is None:
        _output(ctx, _call(client.get_experiment, prompt_id, experiment_id))
        return
    result = _call(client.get_run, prompt_id, experiment_id, run_id)
    if ctx.meta.get("output_format") == "json":
        _output(ctx, result)
        return
    summary = result["summary"]
    click.echo(
        f"Run {summary['run_id']} [{summary['status']}] "
        f"{summary['passed']} passed, {summary['failed']} failed of {summary['total']}"
    )
    click.echo(_format_table(result["run"]["results"], ["id", "rating", "output"]))


# --- Settings ---


@cli.group()
def keys() -> None:
    """Manage provider API keys."""


@keys.command("set")
@click.argument("provider", type=click.Choice(["openai", "anthropic"]))
@click.option("--key", prompt=True, hide_input=True, default="", help="Empty to clear")
@click.pass_context
def keys_set(ctx: click.Context, provider: str, key: str) -> None:
    """Store an API key."""
    client: StudioClient = ctx.obj
    _output(ctx, _call(client.set_api_key, provider, key))


@keys.command("show")
@click.pass_context
def keys_show(ctx: click.Context) -> None:
    """Show configured keys (masked)."""
    client: StudioClient = ctx.obj
    _output(ctx, _call(client.get_api_keys))


# --- Playground ---


@cli.command()
@click.argument("prompt_id")
@click.argument("test_input")
@click.option("--version", "version_id", default=None,
              help="Version id (default: head of the current branch)")
@click.pass_context
def run(ctx: click.Context, prompt_id: str, test_input: str, version_id: str | None) -> None:
    """Run a version against one input and print the output."""
    client: StudioClient = ctx.obj
    if version_id is None:
        version_id = _call(client.latest_version, prompt_id)["id"]
    result = _call(client.run_prompt, prompt_id, version_id, test_input)
    click.echo(result.get("output", ""))


if __name__ == "__main__":
    cli()
