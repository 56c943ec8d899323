"""Experiment CRUD and run endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from prompt_studio.api.models import ExperimentCreate, ExperimentUpdate, RunStarted
from prompt_studio.api.session import get_user_id
from prompt_studio.core.errors import ConfigurationError, FatalRunError, NotFoundError
from prompt_studio.core.registry import PromptRegistry, get_registry
from prompt_studio.core.runner import ExperimentRunner, RunContext, get_runner, run_summary
from prompt_studio.db.models import Experiment

logger = structlog.get_logger()
router = APIRouter()


async def _execute_in_background(runner: ExperimentRunner, ctx: RunContext) -> None:
    try:
        await runner.execute(ctx)
    except FatalRunError as e:
        # The run is already persisted as failed; the log is the only other outlet here.
        logger.error("experiment.background_run_failed", run_id=e.run_id, error=str(e))


def _start_run(
    runner: ExperimentRunner,
    background_tasks: BackgroundTasks,
    user_id: str,
    prompt_id: str,
    experiment_id: str,
) -> RunStarted:
    try:
        ctx = runner.prepare(user_id, prompt_id, experiment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    background_tasks.add_task(_execute_in_background, runner, ctx)
    return RunStarted(
        experiment_id=experiment_id,
        run_id=ctx.run_id,
        status="running",
        rows=len(ctx.dataset.data),
    )


# ── CRUD ─────────────────────────────────────────────────────────────


@router.post("/{prompt_id}/experiments", status_code=201)
async def create_experiment(
    prompt_id: str,
    data: ExperimentCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
    runner: ExperimentRunner = Depends(get_runner),
) -> dict[str, Any]:
    """Save an experiment; with ``run: true`` also start its first run."""
    try:
        experiment = registry.add_experiment(
            user_id,
            prompt_id,
            name=data.name,
            dataset_id=data.dataset_id,
            target_prompt_id=data.prompt_id,
            prompt_version_id=data.prompt_version_id,
            judge_prompt=data.judge_prompt,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response: dict[str, Any] = {"experiment": experiment.model_dump(mode="json", by_alias=True)}
    if data.run:
        started = _start_run(runner, background_tasks, user_id, prompt_id, experiment.id)
        response["run"] = started.model_dump()
    return response


@router.get("/{prompt_id}/experiments")
async def list_experiments(
    prompt_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> list[dict[str, Any]]:
    """Experiments with a pass/fail summary of each one's latest run."""
    try:
        experiments = registry.require_prompt(user_id, prompt_id).experiments
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [
        {
            **e.model_dump(mode="json", by_alias=True),
            "latestRun": run_summary(e.latest_run) if e.latest_run else None,
        }
        for e in experiments
    ]


@router.get("/{prompt_id}/experiments/{experiment_id}", response_model=Experiment)
async def get_experiment(
    prompt_id: str,
    experiment_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Experiment:
    try:
        return registry.get_experiment(user_id, prompt_id, experiment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{prompt_id}/experiments/{experiment_id}", response_model=Experiment)
async def update_experiment(
    prompt_id: str,
    experiment_id: str,
    data: ExperimentUpdate,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> Experiment:
    """Edit configuration. Existing runs keep the results they produced."""
    try:
        return registry.update_experiment(
            user_id, prompt_id, experiment_id, **data.model_dump(exclude_none=True)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{prompt_id}/experiments/{experiment_id}", status_code=204)
async def delete_experiment(
    prompt_id: str,
    experiment_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> None:
    try:
        registry.delete_experiment(user_id, prompt_id, experiment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ── Runs ─────────────────────────────────────────────────────────────


@router.post("/{prompt_id}/experiments/{experiment_id}/run", status_code=202)
async def run_experiment(
    prompt_id: str,
    experiment_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_user_id),
    runner: ExperimentRunner = Depends(get_runner),
) -> RunStarted:
    """Start a new run. Poll the experiment to watch results arrive."""
    return _start_run(runner, background_tasks, user_id, prompt_id, experiment_id)


@router.get("/{prompt_id}/experiments/{experiment_id}/runs/{run_id}")
async def get_run(
    prompt_id: str,
    experiment_id: str,
    run_id: str,
    user_id: str = Depends(get_user_id),
    registry: PromptRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """One run with its results and pass/fail summary."""
    try:
        experiment = registry.get_experiment(user_id, prompt_id, experiment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    run = next((r for r in experiment.runs if r.id == run_id), None)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return {
        "run": run.model_dump(mode="json", by_alias=True),
        "summary": run_summary(run),
    }
