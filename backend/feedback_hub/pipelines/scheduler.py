"""Recurring aggregation trigger started from the app lifespan."""

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_hub.config import settings
from feedback_hub.pipelines.aggregation import AggregationPipeline
from feedback_hub.pipelines.runner import create_run, fire_and_forget
from feedback_hub.summarizer.llm import TextGenerator

logger = structlog.get_logger()


async def dispatch_scheduled_aggregation(
    session_factory: async_sessionmaker[AsyncSession],
    generate: TextGenerator,
    days: int | None = None,
) -> asyncio.Task:
    """Create an aggregation run and start it without waiting for the result."""
    days = days or settings.AGGREGATION_DEFAULT_DAYS
    async with session_factory() as db:
        run = await create_run(db, AggregationPipeline.kind, {"days": days})
    logger.info("aggregation_dispatched", run_id=str(run.id), days=days, trigger="schedule")
    return fire_and_forget(session_factory, run.id, generate)


async def aggregation_loop(
    session_factory: async_sessionmaker[AsyncSession],
    generate: TextGenerator,
) -> None:
    """Dispatch aggregation every AGGREGATION_INTERVAL_SECONDS indefinitely."""
    interval = settings.AGGREGATION_INTERVAL_SECONDS
    logger.info("aggregation_loop_started", interval=interval)
    while True:
        await asyncio.sleep(interval)
        try:
            await dispatch_scheduled_aggregation(session_factory, generate)
        except Exception:
            logger.exception("aggregation_loop_error")
