from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_hub.models.base import unix_now
from feedback_hub.summaries.models import AggregatedSummary, SourceSummary


def add_source_summary(
    db: AsyncSession,
    source: str,
    summary: str,
    date_range_start: int,
    date_range_end: int,
    feedback_count: int,
) -> SourceSummary:
    if feedback_count < 1:
        raise ValueError("a source summary must cover at least one feedback record")
    if date_range_start > date_range_end:
        raise ValueError("date_range_start must not be after date_range_end")
    row = SourceSummary(
        source=source,
        summary=summary,
        date_range_start=date_range_start,
        date_range_end=date_range_end,
        feedback_count=feedback_count,
        created_at=unix_now(),
    )
    db.add(row)
    return row


async def insert_source_summary(
    db: AsyncSession,
    source: str,
    summary: str,
    date_range_start: int,
    date_range_end: int,
    feedback_count: int,
) -> int:
    row = add_source_summary(db, source, summary, date_range_start, date_range_end, feedback_count)
    await db.commit()
    return row.id


def add_aggregated_summary(
    db: AsyncSession,
    summary: str,
    date_range_start: int,
    date_range_end: int,
    source_count: int,
    total_feedback_count: int,
) -> AggregatedSummary:
    row = AggregatedSummary(
        summary=summary,
        date_range_start=date_range_start,
        date_range_end=date_range_end,
        source_count=source_count,
        total_feedback_count=total_feedback_count,
        created_at=unix_now(),
    )
    db.add(row)
    return row


async def insert_aggregated_summary(
    db: AsyncSession,
    summary: str,
    date_range_start: int,
    date_range_end: int,
    source_count: int,
    total_feedback_count: int,
) -> int:
    row = add_aggregated_summary(
        db, summary, date_range_start, date_range_end, source_count, total_feedback_count,
    )
    await db.commit()
    return row.id


async def query_source_summaries(
    db: AsyncSession,
    window_start: int,
    window_end: int,
) -> list[SourceSummary]:
    """Summaries whose whole date range lies inside the window.

    Containment, not overlap: a summary straddling either boundary is left out.
    """
    result = await db.execute(
        select(SourceSummary)
        .where(
            SourceSummary.date_range_start >= window_start,
            SourceSummary.date_range_end <= window_end,
        )
        .order_by(SourceSummary.created_at.desc(), SourceSummary.id.desc())
    )
    return list(result.scalars().all())


async def source_summaries_by_ids(db: AsyncSession, ids: list[int]) -> list[SourceSummary]:
    if not ids:
        return []
    result = await db.execute(
        select(SourceSummary)
        .where(SourceSummary.id.in_(ids))
        .order_by(SourceSummary.created_at.desc(), SourceSummary.id.desc())
    )
    return list(result.scalars().all())


async def latest_source_summaries(db: AsyncSession, limit: int = 10) -> list[SourceSummary]:
    result = await db.execute(
        select(SourceSummary)
        .order_by(SourceSummary.created_at.desc(), SourceSummary.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def source_summaries_by_source(db: AsyncSession, source: str, limit: int = 10) -> list[SourceSummary]:
    result = await db.execute(
        select(SourceSummary)
        .where(SourceSummary.source == source)
        .order_by(SourceSummary.created_at.desc(), SourceSummary.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def latest_aggregated_summaries(db: AsyncSession, limit: int = 10) -> list[AggregatedSummary]:
    result = await db.execute(
        select(AggregatedSummary)
        .order_by(AggregatedSummary.created_at.desc(), AggregatedSummary.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
