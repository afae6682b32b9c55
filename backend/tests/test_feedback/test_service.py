import pytest
from sqlalchemy import select

from feedback_hub.feedback.models import Feedback
from feedback_hub.feedback.service import (
    feedback_counts_by_source,
    fetch_unprocessed,
    fetch_unprocessed_by_ids,
    insert_feedback,
    mark_processed,
)


@pytest.mark.asyncio
async def test_insert_assigns_increasing_ids_and_timestamp(db):
    first = await insert_feedback(db, "github", "one", {"author": "al"})
    second = await insert_feedback(db, "github", "two")
    assert second > first

    record = await db.get(Feedback, first)
    assert record.processed is False
    assert record.created_at > 0
    assert record.feedback_metadata == {"author": "al"}


@pytest.mark.asyncio
async def test_fetch_by_ids_excludes_processed(db):
    ids = [await insert_feedback(db, "discord", f"msg {i}") for i in range(3)]
    await mark_processed(db, ids[:1])

    records = await fetch_unprocessed_by_ids(db, ids)
    assert [r.id for r in records] == ids[1:]


@pytest.mark.asyncio
async def test_fetch_by_ids_empty(db):
    assert await fetch_unprocessed_by_ids(db, []) == []


@pytest.mark.asyncio
async def test_fetch_unprocessed_oldest_first_and_limited(db):
    ids = [await insert_feedback(db, "email", f"mail {i}") for i in range(4)]
    await insert_feedback(db, "forum", "other source")
    old = await db.get(Feedback, ids[3])
    old.created_at = 1_000
    await db.commit()

    records = await fetch_unprocessed(db, "email", limit=2)
    assert [r.id for r in records] == [ids[3], ids[0]]


@pytest.mark.asyncio
async def test_mark_processed_empty_is_noop(db):
    assert await mark_processed(db, []) == 0


@pytest.mark.asyncio
async def test_mark_processed_counts_only_flipped_rows(db):
    ids = [await insert_feedback(db, "support", f"t {i}") for i in range(3)]
    assert await mark_processed(db, ids[:2]) == 2
    assert await mark_processed(db, ids) == 1
    assert await mark_processed(db, ids) == 0

    result = await db.execute(select(Feedback.processed))
    assert all(result.scalars().all())


@pytest.mark.asyncio
async def test_feedback_counts_by_source(db):
    for source in ["github", "github", "discord"]:
        await insert_feedback(db, source, "x")
    assert await feedback_counts_by_source(db) == {"discord": 1, "github": 2}
