"""Create, execute and retry pipeline runs.

A pipeline never retries internally. The runner retries the whole run on
store failures; completed steps are recorded on the run, so the retry picks up
after the last one that committed.
"""

import asyncio
import uuid
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from feedback_hub.config import settings
from feedback_hub.pipelines.aggregation import AggregationPipeline
from feedback_hub.pipelines.base import Pipeline
from feedback_hub.pipelines.feedback_processing import FeedbackProcessingPipeline
from feedback_hub.pipelines.models import PipelineRun
from feedback_hub.summarizer.llm import TextGenerator

logger = structlog.get_logger()

PIPELINES: dict[str, type[Pipeline]] = {
    FeedbackProcessingPipeline.kind: FeedbackProcessingPipeline,
    AggregationPipeline.kind: AggregationPipeline,
}

FAILED_STATE = "failed"

# Strong references to fire-and-forget runs so they are not garbage collected mid-flight
_background_runs: set[asyncio.Task] = set()


async def create_run(
    db: AsyncSession,
    kind: str,
    params: dict[str, Any],
    source: str | None = None,
) -> PipelineRun:
    pipeline_cls = PIPELINES[kind]
    run = PipelineRun(
        kind=kind,
        source=source,
        state=pipeline_cls.initial_state.value,
        params=params,
        step_results={},
    )
    db.add(run)
    await db.commit()
    logger.info("pipeline_run_created", run_id=str(run.id), kind=kind, source=source)
    return run


async def get_run(db: AsyncSession, run_id: uuid.UUID) -> PipelineRun | None:
    return await db.get(PipelineRun, run_id)


async def _attempt(
    session_factory: async_sessionmaker[AsyncSession],
    run_id: uuid.UUID,
    generate: TextGenerator,
) -> dict:
    async with session_factory() as db:
        run = await db.get(PipelineRun, run_id)
        if run is None:
            raise LookupError(f"pipeline run {run_id} not found")

        pipeline_cls = PIPELINES[run.kind]
        if pipeline_cls.is_finished(run):
            return run.result or {}

        run.attempts += 1
        await db.commit()

        try:
            return await pipeline_cls(db, run, generate).execute()
        except Exception as exc:
            await db.rollback()
            await db.refresh(run)
            logger.error(
                "pipeline_run_failed",
                run_id=str(run_id),
                kind=run.kind,
                state=run.state,
                attempt=run.attempts,
                error=str(exc),
            )
            run.state = FAILED_STATE
            run.error = str(exc)
            await db.commit()
            raise


async def execute_run(
    session_factory: async_sessionmaker[AsyncSession],
    run_id: uuid.UUID,
    generate: TextGenerator,
    max_attempts: int | None = None,
) -> dict:
    """Execute a run to completion, retrying the whole run on store failures."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts or settings.PIPELINE_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(SQLAlchemyError),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            result = await _attempt(session_factory, run_id, generate)
    return result


async def run_in_background(
    session_factory: async_sessionmaker[AsyncSession],
    run_id: uuid.UUID,
    generate: TextGenerator,
) -> None:
    """Entry point for detached runs: failures are recorded on the run and logged."""
    try:
        await execute_run(session_factory, run_id, generate)
    except Exception:
        logger.exception("pipeline_run_abandoned", run_id=str(run_id))


def fire_and_forget(
    session_factory: async_sessionmaker[AsyncSession],
    run_id: uuid.UUID,
    generate: TextGenerator,
) -> asyncio.Task:
    task = asyncio.create_task(run_in_background(session_factory, run_id, generate))
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)
    return task
