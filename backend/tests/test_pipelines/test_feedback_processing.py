import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from feedback_hub.feedback.models import Feedback
from feedback_hub.feedback.service import insert_feedback, mark_processed
from feedback_hub.pipelines import feedback_processing
from feedback_hub.pipelines.feedback_processing import FeedbackProcessingPipeline, FeedbackState
from feedback_hub.pipelines.models import PipelineRun
from feedback_hub.pipelines.runner import create_run, execute_run
from feedback_hub.summaries.models import SourceSummary

ITEMS = [
    {"content": "Voice chat drops", "metadata": {"author": "kai"}},
    {"content": "Please add threads", "metadata": {}},
    {"content": "Bot is great", "metadata": {"author": "lee"}},
]


async def _count(db, model):
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_three_discord_items_produce_one_summary(db, session_factory, generator, process_feedback):
    result = await process_feedback(session_factory, "discord", generator, items=ITEMS)

    assert result["success"] is True
    assert result["feedback_count"] == 3
    assert len(result["feedback_ids"]) == 3

    records = (await db.execute(select(Feedback))).scalars().all()
    assert len(records) == 3
    assert all(r.processed for r in records)
    assert all(r.source == "discord" for r in records)

    summaries = (await db.execute(select(SourceSummary))).scalars().all()
    assert len(summaries) == 1
    summary = summaries[0]
    assert summary.feedback_count == 3
    assert summary.summary == generator.response
    assert summary.date_range_start <= summary.date_range_end
    in_range = [r for r in records if summary.date_range_start <= r.created_at <= summary.date_range_end]
    assert len(in_range) == summary.feedback_count
    assert len(generator.calls) == 1


@pytest.mark.asyncio
async def test_run_record_walks_to_processed(db, session_factory, generator, process_feedback):
    result = await process_feedback(session_factory, "discord", generator, items=ITEMS[:1])

    run = (await db.execute(select(PipelineRun))).scalar_one()
    assert run.state == FeedbackState.PROCESSED.value
    assert run.attempts == 1
    assert set(run.step_results) == {
        "store-feedback",
        "fetch-feedback-records",
        "generate-summary",
        "store-summary",
        "mark-processed",
    }
    assert run.result == result


@pytest.mark.asyncio
async def test_empty_items_is_noop(db, session_factory, generator, process_feedback):
    result = await process_feedback(session_factory, "github", generator, items=[])

    assert result["message"] == "No feedback items to process"
    assert await _count(db, Feedback) == 0
    assert await _count(db, SourceSummary) == 0
    run = (await db.execute(select(PipelineRun))).scalar_one()
    assert run.state == FeedbackState.EMPTY.value


@pytest.mark.asyncio
async def test_rerun_over_processed_ids_creates_nothing(db, session_factory, generator, process_feedback):
    first = await process_feedback(session_factory, "github", generator, items=ITEMS)
    ids = first["feedback_ids"]

    second = await process_feedback(session_factory, "github", generator, feedback_ids=ids)

    assert second["message"] == "No unprocessed feedback found"
    assert await _count(db, SourceSummary) == 1
    assert len(generator.calls) == 1
    processed = (await db.execute(select(Feedback.processed).where(Feedback.id.in_(ids)))).scalars().all()
    assert processed == [True, True, True]


@pytest.mark.asyncio
async def test_existing_ids_only_summarise_unclaimed_subset(db, session_factory, generator, process_feedback):
    ids = [await insert_feedback(db, "forum", f"post {i}") for i in range(4)]
    await mark_processed(db, ids[:1])

    result = await process_feedback(session_factory, "forum", generator, feedback_ids=ids)

    assert result["feedback_count"] == 3
    assert await _count(db, Feedback) == 4
    summary = (await db.execute(select(SourceSummary))).scalar_one()
    assert summary.feedback_count == 3
    assert "post 0" not in generator.calls[0]["user_prompt"]


@pytest.mark.asyncio
async def test_ai_failure_still_persists_and_marks(db, session_factory, failing_generator, process_feedback):
    result = await process_feedback(session_factory, "twitter", failing_generator, items=ITEMS)

    assert result["success"] is True
    summary = (await db.execute(select(SourceSummary))).scalar_one()
    assert summary.summary.startswith("Summary of 3 feedback items. Error generating AI summary")
    assert summary.feedback_count == 3
    processed = (await db.execute(select(Feedback.processed))).scalars().all()
    assert processed == [True, True, True]


@pytest.mark.asyncio
async def test_store_failure_leaves_records_unprocessed_and_run_resumes(
    db, session_factory, generator, monkeypatch,
):
    original = feedback_processing.add_source_summary
    broken = {"on": True}

    def flaky_add_source_summary(*args, **kwargs):
        if broken["on"]:
            raise SQLAlchemyError("database is locked")
        return original(*args, **kwargs)

    monkeypatch.setattr(feedback_processing, "add_source_summary", flaky_add_source_summary)

    run = await create_run(db, FeedbackProcessingPipeline.kind, {"items": ITEMS}, source="email")
    with pytest.raises(SQLAlchemyError):
        await execute_run(session_factory, run.id, generator, max_attempts=1)

    await db.refresh(run)
    assert run.state == FeedbackState.FAILED.value
    assert "database is locked" in run.error
    assert "generate-summary" in run.step_results
    assert "store-summary" not in run.step_results
    assert await _count(db, SourceSummary) == 0
    processed = (await db.execute(select(Feedback.processed))).scalars().all()
    assert processed == [False, False, False]

    broken["on"] = False
    result = await execute_run(session_factory, run.id, generator, max_attempts=1)

    assert result["feedback_count"] == 3
    assert await _count(db, Feedback) == 3
    assert await _count(db, SourceSummary) == 1
    # The recorded summary text was reused; the model was asked only once.
    assert len(generator.calls) == 1
    await db.refresh(run)
    assert run.state == FeedbackState.PROCESSED.value
    assert run.attempts == 2
    assert run.error is None


@pytest.mark.asyncio
async def test_resumed_run_skips_batch_claimed_by_another_run(
    db, session_factory, generator, monkeypatch, process_feedback,
):
    ids = [await insert_feedback(db, "forum", f"post {i}") for i in range(3)]
    original = feedback_processing.add_source_summary
    broken = {"on": True}

    def flaky_add_source_summary(*args, **kwargs):
        if broken["on"]:
            raise SQLAlchemyError("database is locked")
        return original(*args, **kwargs)

    monkeypatch.setattr(feedback_processing, "add_source_summary", flaky_add_source_summary)

    run = await create_run(db, FeedbackProcessingPipeline.kind, {"feedback_ids": ids}, source="forum")
    with pytest.raises(SQLAlchemyError):
        await execute_run(session_factory, run.id, generator, max_attempts=1)

    broken["on"] = False
    other = await process_feedback(session_factory, "forum", generator, feedback_ids=ids)
    assert other["feedback_count"] == 3

    result = await execute_run(session_factory, run.id, generator, max_attempts=1)

    assert result["message"] == "No unprocessed feedback found"
    summaries = (await db.execute(select(SourceSummary))).scalars().all()
    assert len(summaries) == 1
    await db.refresh(run)
    assert run.state == FeedbackState.NO_UNPROCESSED_FOUND.value
    assert "mark-processed" not in run.step_results


@pytest.mark.asyncio
async def test_resumed_run_resummarises_shrunken_batch(db, session_factory, generator, monkeypatch):
    ids = [await insert_feedback(db, "forum", f"post {i}") for i in range(3)]
    original = feedback_processing.add_source_summary
    broken = {"on": True}

    def flaky_add_source_summary(*args, **kwargs):
        if broken["on"]:
            raise SQLAlchemyError("database is locked")
        return original(*args, **kwargs)

    monkeypatch.setattr(feedback_processing, "add_source_summary", flaky_add_source_summary)

    run = await create_run(db, FeedbackProcessingPipeline.kind, {"feedback_ids": ids}, source="forum")
    with pytest.raises(SQLAlchemyError):
        await execute_run(session_factory, run.id, generator, max_attempts=1)
    assert len(generator.calls) == 1

    await mark_processed(db, ids[:1])
    broken["on"] = False
    result = await execute_run(session_factory, run.id, generator, max_attempts=1)

    assert result["feedback_count"] == 2
    summary = (await db.execute(select(SourceSummary))).scalar_one()
    assert summary.feedback_count == 2
    assert len(generator.calls) == 2
    assert "post 0" not in generator.calls[1]["user_prompt"]
    assert "post 1" in generator.calls[1]["user_prompt"]
    await db.refresh(run)
    assert run.step_results["mark-processed"] == {"processed": 2}


@pytest.mark.asyncio
async def test_finished_run_is_not_executed_again(db, session_factory, generator):
    run = await create_run(db, FeedbackProcessingPipeline.kind, {"items": ITEMS[:2]}, source="github")
    first = await execute_run(session_factory, run.id, generator)
    second = await execute_run(session_factory, run.id, generator)

    assert first == second
    assert await _count(db, Feedback) == 2
    assert len(generator.calls) == 1
