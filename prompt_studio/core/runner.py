"""Experiment Runner — sequential dataset sweeps scored by an LLM judge.

A run walks the dataset in row order. Each row costs two gateway calls:
the prompt version itself, then the judge. A failing row is recorded as a
``fail`` result and the sweep moves on; only an error outside the per-row
boundary ends the run early, with status ``failed``.

The run is written back through the registry after every row, and the
optional ``on_progress`` callback sees the updated experiment and run.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import structlog

from prompt_studio.config import get_settings
from prompt_studio.core.credentials import CredentialStore, get_credentials
from prompt_studio.core.errors import ConfigurationError, FatalRunError, NotFoundError
from prompt_studio.core.gateway import (
    ChatMessage,
    LLMGateway,
    LLMRequest,
    Provider,
    get_gateway,
    provider_for_model,
)
from prompt_studio.core.interpolate import interpolate, placeholders
from prompt_studio.core.playground import build_messages
from prompt_studio.core.registry import PromptRegistry, get_registry
from prompt_studio.db.models import (
    Dataset,
    Experiment,
    ExperimentResult,
    ExperimentRun,
    JudgeRating,
    PromptVersion,
    utcnow,
)

logger = structlog.get_logger()

JUDGE_TEMPERATURE = 0.1
JUDGE_MAX_TOKENS = 100
JUDGE_TOP_P = 1.0
PASS_MARKERS = ("pass", "true", "yes")

ProgressCallback = Callable[[Experiment, ExperimentRun], Any]


def classify_judgement(judge_output: str) -> JudgeRating:
    """``pass`` if the judge text mentions pass/true/yes anywhere, else ``fail``."""
    text = judge_output.lower()
    return "pass" if any(marker in text for marker in PASS_MARKERS) else "fail"


def build_judge_message(judge_prompt: str, row: dict[str, str], output: str) -> str:
    row_json = json.dumps(row, ensure_ascii=False, separators=(",", ":"))
    return f"{judge_prompt}\n\nInput: {row_json}\n\nOutput: {output}"


def run_summary(run: ExperimentRun) -> dict[str, Any]:
    """Pass/fail counts for one run."""
    return {
        "run_id": run.id,
        "status": run.status,
        "total": len(run.results),
        "passed": run.passed,
        "failed": run.failed,
    }


@dataclass(frozen=True)
class RunContext:
    """Everything resolved before a run starts."""

    user_id: str
    owner_prompt_id: str
    experiment_id: str
    run_id: str
    dataset: Dataset
    version: PromptVersion
    provider: Provider
    judge_prompt: str


class ExperimentRunner:
    """Runs experiments one row at a time."""

    def __init__(
        self,
        registry: PromptRegistry,
        gateway: LLMGateway,
        credentials: CredentialStore,
        row_delay: float = 0.5,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.registry = registry
        self.gateway = gateway
        self.credentials = credentials
        self.row_delay = row_delay
        self.on_progress = on_progress

    # --- Public API ---

    async def run_experiment(
        self,
        user_id: str,
        prompt_id: str,
        experiment_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> ExperimentRun:
        """Validate, start and execute a new run of an experiment."""
        ctx = self.prepare(user_id, prompt_id, experiment_id, on_progress)
        return await self.execute(ctx, on_progress)

    async def rerun_experiment(
        self,
        user_id: str,
        prompt_id: str,
        experiment_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> ExperimentRun:
        """Append a fresh run. Earlier runs stay as they are."""
        logger.info("runner.rerun", experiment_id=experiment_id)
        return await self.run_experiment(user_id, prompt_id, experiment_id, on_progress)

    async def create_and_run(
        self,
        user_id: str,
        prompt_id: str,
        name: str,
        dataset_id: str,
        target_prompt_id: str,
        prompt_version_id: str,
        judge_prompt: str,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[Experiment, ExperimentRun]:
        """Save a new experiment and run it straight away."""
        experiment = self.registry.add_experiment(
            user_id,
            prompt_id,
            name=name,
            dataset_id=dataset_id,
            target_prompt_id=target_prompt_id,
            prompt_version_id=prompt_version_id,
            judge_prompt=judge_prompt,
        )
        run = await self.run_experiment(user_id, prompt_id, experiment.id, on_progress)
        return self.registry.get_experiment(user_id, prompt_id, experiment.id), run

    def prepare(
        self,
        user_id: str,
        prompt_id: str,
        experiment_id: str,
        on_progress: ProgressCallback | None = None,
    ) -> RunContext:
        """Resolve every reference, then append a ``running`` run and persist it.

        Raises ConfigurationError (or NotFoundError) before anything is written.
        """
        owner = self.registry.require_prompt(user_id, prompt_id)
        experiment = next((e for e in owner.experiments if e.id == experiment_id), None)
        if experiment is None:
            raise NotFoundError(f"Experiment '{experiment_id}' not found")

        dataset = next((d for d in owner.datasets if d.id == experiment.dataset_id), None)
        if dataset is None:
            raise ConfigurationError(
                f"Dataset '{experiment.dataset_id}' referenced by experiment no longer exists"
            )
        target = self.registry.get_prompt(user_id, experiment.prompt_id)
        if target is None:
            raise ConfigurationError(
                f"Prompt '{experiment.prompt_id}' referenced by experiment no longer exists"
            )
        version = next((v for v in target.versions if v.id == experiment.prompt_version_id), None)
        if version is None:
            raise ConfigurationError(
                f"Version '{experiment.prompt_version_id}' referenced by experiment no longer exists"
            )
        if not experiment.judge_prompt.strip():
            raise ConfigurationError("Judge prompt is required")

        unmatched = [
            name
            for name in placeholders(version.prompt_text) + placeholders(experiment.judge_prompt)
            if name not in dataset.columns
        ]
        if unmatched:
            logger.warning(
                "runner.unmatched_placeholders",
                experiment_id=experiment_id,
                placeholders=sorted(set(unmatched)),
            )

        provider = provider_for_model(version.parameters.model)
        self.credentials.require_api_key(provider)

        run = ExperimentRun(status="running")
        ctx = RunContext(
            user_id=user_id,
            owner_prompt_id=prompt_id,
            experiment_id=experiment_id,
            run_id=run.id,
            dataset=dataset,
            version=version,
            provider=provider,
            judge_prompt=experiment.judge_prompt,
        )
        self._write_run(ctx, run, on_progress, append=True)
        logger.info(
            "runner.run_started",
            experiment_id=experiment_id,
            run_id=run.id,
            rows=len(dataset.data),
            model=version.parameters.model,
        )
        return ctx

    async def execute(
        self, ctx: RunContext, on_progress: ProgressCallback | None = None
    ) -> ExperimentRun:
        """Sweep the dataset for a prepared run and return the terminal run."""
        log = logger.bind(experiment_id=ctx.experiment_id, run_id=ctx.run_id)
        try:
            run = self._current_run(ctx)
        except NotFoundError as e:
            log.error("runner.run_vanished", error=str(e))
            raise FatalRunError(f"Experiment failed: {e}", run_id=ctx.run_id) from e
        try:
            results: list[ExperimentResult] = []
            for index, row in enumerate(ctx.dataset.data):
                try:
                    result = await self._process_row(ctx, row)
                    succeeded = True
                except Exception as e:
                    log.warning("runner.row_failed", row=index + 1, error=str(e))
                    result = ExperimentResult(
                        input=row,
                        output=f"Error: {e}",
                        judge_output=f"Processing failed: {e}",
                        rating="fail",
                    )
                    succeeded = False

                results = [*results, result]
                run = run.model_copy(update={"results": results, "updated_at": utcnow()})
                self._write_run(ctx, run, on_progress)
                log.debug("runner.row_completed", row=index + 1, rating=result.rating)

                if succeeded and self.row_delay > 0:
                    await asyncio.sleep(self.row_delay)

            run = run.model_copy(update={"status": "completed", "updated_at": utcnow()})
            self._write_run(ctx, run, on_progress)
        except Exception as e:
            log.error("runner.run_failed", error=str(e), completed_rows=len(run.results))
            run = run.model_copy(update={"status": "failed", "updated_at": utcnow()})
            try:
                self._write_run(ctx, run, on_progress)
            except Exception as write_error:
                # The experiment may be gone; the run can no longer be marked.
                log.error("runner.failed_status_not_saved", error=str(write_error))
            raise FatalRunError(f"Experiment failed: {e}", run_id=ctx.run_id) from e

        summary = run_summary(run)
        log.info("runner.run_completed", passed=summary["passed"], total=summary["total"])
        return run

    # --- Internals ---

    async def _process_row(self, ctx: RunContext, row: dict[str, str]) -> ExperimentResult:
        version = ctx.version
        params = version.parameters

        candidate_prompt = interpolate(version.prompt_text, row)
        output = await self.gateway.complete(
            LLMRequest(
                provider=ctx.provider,
                model=params.model,
                messages=build_messages(version, candidate_prompt),
                temperature=params.temperature,
                max_tokens=params.max_tokens,
                top_p=params.top_p,
                api_key=self.credentials.require_api_key(ctx.provider),
            )
        )

        judge_prompt = interpolate(ctx.judge_prompt, row)
        judge_output = await self.gateway.complete(
            LLMRequest(
                provider=ctx.provider,
                model=params.model,
                messages=[
                    ChatMessage(
                        role="user", content=build_judge_message(judge_prompt, row, output)
                    )
                ],
                temperature=JUDGE_TEMPERATURE,
                max_tokens=JUDGE_MAX_TOKENS,
                top_p=JUDGE_TOP_P,
                api_key=self.credentials.require_api_key(ctx.provider),
            )
        )

        return ExperimentResult(
            input=row,
            output=output,
            judge_output=judge_output,
            rating=classify_judgement(judge_output),
        )

    def _current_run(self, ctx: RunContext) -> ExperimentRun:
        experiment = self.registry.get_experiment(
            ctx.user_id, ctx.owner_prompt_id, ctx.experiment_id
        )
        run = next((r for r in experiment.runs if r.id == ctx.run_id), None)
        if run is None:
            raise NotFoundError(f"Run '{ctx.run_id}' not found")
        return run

    def _write_run(
        self,
        ctx: RunContext,
        run: ExperimentRun,
        on_progress: ProgressCallback | None = None,
        append: bool = False,
    ) -> None:
        """Persist ``run`` into its experiment and notify the observer."""
        experiment = self.registry.get_experiment(
            ctx.user_id, ctx.owner_prompt_id, ctx.experiment_id
        )
        if append:
            runs = [*experiment.runs, run]
        else:
            runs = [run if r.id == run.id else r for r in experiment.runs]
        updated = experiment.model_copy(update={"runs": runs, "updated_at": utcnow()})
        self.registry.save_experiment(ctx.user_id, ctx.owner_prompt_id, updated)

        callback = on_progress or self.on_progress
        if callback is not None:
            callback(updated, run)


@lru_cache
def get_runner() -> ExperimentRunner:
    """Get cached runner instance."""
    settings = get_settings()
    return ExperimentRunner(
        get_registry(),
        get_gateway(),
        get_credentials(),
        row_delay=settings.row_delay_seconds,
    )
