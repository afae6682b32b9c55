from collections.abc import Sequence

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_hub.feedback.models import Feedback
from feedback_hub.models.base import unix_now

logger = structlog.get_logger()


def add_feedback(db: AsyncSession, source: str, content: str, metadata: dict | None = None) -> Feedback:
    """Stage a feedback row on the session without committing."""
    record = Feedback(
        source=source,
        content=content,
        feedback_metadata=metadata or {},
        created_at=unix_now(),
        processed=False,
    )
    db.add(record)
    return record


async def insert_feedback(db: AsyncSession, source: str, content: str, metadata: dict | None = None) -> int:
    record = add_feedback(db, source, content, metadata)
    await db.commit()
    return record.id


async def fetch_unprocessed_by_ids(db: AsyncSession, ids: Sequence[int]) -> list[Feedback]:
    """Records among *ids* that are still unprocessed.

    Rows already flagged by another run are left out, which is what keeps a
    retried or racing run from summarising the same feedback twice.
    """
    if not ids:
        return []
    result = await db.execute(
        select(Feedback)
        .where(Feedback.id.in_(list(ids)), Feedback.processed.is_(False))
        .order_by(Feedback.created_at.asc(), Feedback.id.asc())
    )
    return list(result.scalars().all())


async def fetch_feedback_by_ids(db: AsyncSession, ids: Sequence[int]) -> list[Feedback]:
    if not ids:
        return []
    result = await db.execute(
        select(Feedback)
        .where(Feedback.id.in_(list(ids)))
        .order_by(Feedback.created_at.asc(), Feedback.id.asc())
    )
    return list(result.scalars().all())


async def fetch_unprocessed(db: AsyncSession, source: str, limit: int = 50) -> list[Feedback]:
    """Oldest-first unprocessed feedback for one source."""
    result = await db.execute(
        select(Feedback)
        .where(Feedback.source == source, Feedback.processed.is_(False))
        .order_by(Feedback.created_at.asc(), Feedback.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_processed(db: AsyncSession, ids: Sequence[int], commit: bool = True) -> int:
    """Flag *ids* as processed. Returns the number of rows actually flipped."""
    if not ids:
        return 0
    result = await db.execute(
        update(Feedback)
        .where(Feedback.id.in_(list(ids)), Feedback.processed.is_(False))
        .values(processed=True)
        .execution_options(synchronize_session=False)
    )
    flipped = result.rowcount or 0
    if commit:
        await db.commit()
    logger.info("feedback_marked_processed", requested=len(ids), flipped=flipped)
    return flipped


async def feedback_counts_by_source(db: AsyncSession) -> dict[str, int]:
    result = await db.execute(
        select(Feedback.source, func.count()).group_by(Feedback.source).order_by(Feedback.source)
    )
    return {source: count for source, count in result.all()}
