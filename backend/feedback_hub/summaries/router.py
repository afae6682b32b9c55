from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_hub.database import get_db
from feedback_hub.feedback.service import feedback_counts_by_source
from feedback_hub.summaries.schemas import (
    AggregatedSummaryListResponse,
    AggregatedSummaryResponse,
    SourceSummariesBySourceResponse,
    SourceSummaryListResponse,
    SourceSummaryResponse,
    StatsResponse,
)
from feedback_hub.summaries.service import (
    latest_aggregated_summaries,
    latest_source_summaries,
    source_summaries_by_source,
)

router = APIRouter(tags=["summaries"])


@router.get("/summaries", response_model=SourceSummaryListResponse)
async def list_source_summaries(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    summaries = await latest_source_summaries(db, limit)
    return SourceSummaryListResponse(
        summaries=[SourceSummaryResponse.model_validate(s) for s in summaries],
    )


@router.get("/summaries/{source}", response_model=SourceSummariesBySourceResponse)
async def list_summaries_for_source(
    source: str,
    limit: int = Query(20, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    summaries = await source_summaries_by_source(db, source, limit)
    return SourceSummariesBySourceResponse(
        source=source,
        summaries=[SourceSummaryResponse.model_validate(s) for s in summaries],
    )


@router.get("/aggregated", response_model=AggregatedSummaryListResponse)
async def list_aggregated_summaries(
    limit: int = Query(10, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    summaries = await latest_aggregated_summaries(db, limit)
    return AggregatedSummaryListResponse(
        summaries=[AggregatedSummaryResponse.model_validate(s) for s in summaries],
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    counts = await feedback_counts_by_source(db)
    latest_aggregated = await latest_aggregated_summaries(db, 1)
    recent = await latest_source_summaries(db, 10)
    return StatsResponse(
        feedback_counts_by_source=counts,
        latest_aggregated_summary=(
            AggregatedSummaryResponse.model_validate(latest_aggregated[0]) if latest_aggregated else None
        ),
        recent_source_summaries=[SourceSummaryResponse.model_validate(s) for s in recent],
    )
