import uuid

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_hub.config import settings
from feedback_hub.database import get_db, get_session_factory
from feedback_hub.feedback.service import fetch_unprocessed
from feedback_hub.models.base import unix_now
from feedback_hub.pipelines.aggregation import SECONDS_PER_DAY, AggregationPipeline
from feedback_hub.pipelines.feedback_processing import FeedbackProcessingPipeline
from feedback_hub.pipelines.runner import create_run, get_run, run_in_background
from feedback_hub.pipelines.schemas import (
    AggregateRequest,
    AggregateResponse,
    PipelineRunResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from feedback_hub.summarizer.llm import TextGenerator, get_text_generator

logger = structlog.get_logger()
router = APIRouter(tags=["pipelines"])


@router.post("/aggregate", response_model=AggregateResponse)
async def trigger_aggregation(
    background_tasks: BackgroundTasks,
    data: AggregateRequest | None = None,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    generate: TextGenerator = Depends(get_text_generator),
):
    days = data.days if data else settings.AGGREGATION_DEFAULT_DAYS
    run = await create_run(db, AggregationPipeline.kind, {"days": days})
    background_tasks.add_task(run_in_background, session_factory, run.id, generate)
    logger.info("aggregation_dispatched", run_id=str(run.id), days=days, trigger="manual")
    return AggregateResponse(message="Aggregation pipeline started", run_id=run.id, days=days)


@router.post("/summarize/{source}", response_model=SummarizeResponse)
async def trigger_summarize(
    source: str,
    background_tasks: BackgroundTasks,
    data: SummarizeRequest | None = None,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    generate: TextGenerator = Depends(get_text_generator),
):
    """Summarise the source's unprocessed feedback created in the last ``days`` days."""
    days = data.days if data else 1
    cutoff = unix_now() - days * SECONDS_PER_DAY
    pending = await fetch_unprocessed(db, source, settings.UNPROCESSED_FETCH_LIMIT)
    recent_ids = [f.id for f in pending if f.created_at >= cutoff]

    if not recent_ids:
        return SummarizeResponse(message=f"No unprocessed feedback for {source}")

    run = await create_run(
        db, FeedbackProcessingPipeline.kind, {"feedback_ids": recent_ids}, source=source,
    )
    background_tasks.add_task(run_in_background, session_factory, run.id, generate)
    return SummarizeResponse(
        message=f"Summarization pipeline started for {source}",
        run_id=run.id,
        feedback_count=len(recent_ids),
    )


@router.get("/runs/{run_id}", response_model=PipelineRunResponse)
async def get_pipeline_run(run_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    run = await get_run(db, run_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pipeline run not found")
    return PipelineRunResponse.model_validate(run)
