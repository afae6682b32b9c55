"""Store -> reload -> summarise -> persist summary -> mark processed.

Batch membership is checked against the processed flag twice: when the records
are reloaded and again right before the summary is persisted. A retried or
racing run therefore never summarises a record twice: it either finds nothing
left (and ends as a no-op) or summarises the subset nobody has claimed yet. The
summary is committed strictly before any record is flagged.
"""

from enum import Enum

import structlog

from feedback_hub.feedback.models import Feedback
from feedback_hub.feedback.service import (
    add_feedback,
    fetch_feedback_by_ids,
    fetch_unprocessed_by_ids,
    mark_processed,
)
from feedback_hub.pipelines.base import Pipeline
from feedback_hub.summaries.service import add_source_summary
from feedback_hub.summarizer.summarizers import summarize_feedback

logger = structlog.get_logger()


class FeedbackState(str, Enum):
    RECEIVED = "received"
    STORED = "stored"
    SUMMARIZING = "summarizing"
    SUMMARIZED = "summarized"
    PROCESSED = "processed"
    EMPTY = "empty"
    NO_UNPROCESSED_FOUND = "no_unprocessed_found"
    FAILED = "failed"


class FeedbackProcessingPipeline(Pipeline):
    """Run params: ``items`` (adapter output) or ``feedback_ids`` (existing records)."""

    kind = "feedback_processing"
    initial_state = FeedbackState.RECEIVED
    terminal_states = frozenset({
        FeedbackState.PROCESSED,
        FeedbackState.EMPTY,
        FeedbackState.NO_UNPROCESSED_FOUND,
    })

    _batch: list[Feedback] | None = None

    async def execute(self) -> dict:
        source = self.run.source or "unknown"
        params = self.run.params or {}
        items = params.get("items") or []
        existing_ids = params.get("feedback_ids") or []

        if not items and not existing_ids:
            return await self.finish(FeedbackState.EMPTY, {
                "success": True,
                "message": "No feedback items to process",
                "feedback_ids": [],
            })

        stored = await self.step(
            "store-feedback",
            lambda: self._store(source, items, existing_ids),
            FeedbackState.STORED,
        )
        feedback_ids = stored["feedback_ids"]

        batch = await self.step("fetch-feedback-records", lambda: self._reload(feedback_ids))
        if not batch["feedback_ids"]:
            logger.info("no_unprocessed_feedback", run_id=str(self.run.id), source=source)
            return await self.finish(FeedbackState.NO_UNPROCESSED_FOUND, {
                "success": True,
                "message": "No unprocessed feedback found",
                "feedback_ids": feedback_ids,
            })

        await self.transition(FeedbackState.SUMMARIZING)
        generated = await self.step("generate-summary", lambda: self._summarize(batch["feedback_ids"]))

        saved = await self.step(
            "store-summary",
            lambda: self._store_summary(source, generated["summary"], batch["feedback_ids"]),
        )
        if not saved["feedback_ids"]:
            logger.info("feedback_claimed_elsewhere", run_id=str(self.run.id), source=source)
            return await self.finish(FeedbackState.NO_UNPROCESSED_FOUND, {
                "success": True,
                "message": "No unprocessed feedback found",
                "feedback_ids": feedback_ids,
            })
        await self.transition(FeedbackState.SUMMARIZED)

        await self.step(
            "mark-processed",
            lambda: self._mark_processed(saved["feedback_ids"]),
            FeedbackState.PROCESSED,
        )

        summary = saved["summary"]
        return await self.finish(FeedbackState.PROCESSED, {
            "success": True,
            "message": f"Processed {stored['count']} feedback items for {source}",
            "feedback_ids": feedback_ids,
            "summary_id": saved["summary_id"],
            "feedback_count": saved["feedback_count"],
            "date_range": {"start": saved["date_range_start"], "end": saved["date_range_end"]},
            "summary_preview": summary[:200] + ("..." if len(summary) > 200 else ""),
        })

    async def _store(self, source: str, items: list[dict], existing_ids: list[int]) -> dict:
        if existing_ids:
            return {"feedback_ids": list(existing_ids), "count": len(existing_ids)}

        records = [
            add_feedback(self.db, source, item["content"], item.get("metadata") or {})
            for item in items
        ]
        await self.db.flush()
        ids = [r.id for r in records]
        logger.info("feedback_stored", run_id=str(self.run.id), source=source, count=len(ids))
        return {"feedback_ids": ids, "count": len(ids)}

    async def _reload(self, feedback_ids: list[int]) -> dict:
        records = await fetch_unprocessed_by_ids(self.db, feedback_ids)
        self._batch = records
        if not records:
            return {"feedback_ids": []}
        timestamps = [r.created_at for r in records]
        return {
            "feedback_ids": [r.id for r in records],
            "date_range_start": min(timestamps),
            "date_range_end": max(timestamps),
        }

    async def _summarize(self, batch_ids: list[int]) -> dict:
        # A resumed run has no batch in memory; membership was fixed by the reload step.
        records = self._batch
        if records is None:
            records = await fetch_feedback_by_ids(self.db, batch_ids)
        summary = await summarize_feedback(records, self.generate)
        return {"summary": summary}

    async def _store_summary(self, source: str, summary: str, batch_ids: list[int]) -> dict:
        # Another run may have claimed part of the batch since it was reloaded.
        records = await fetch_unprocessed_by_ids(self.db, batch_ids)
        if not records:
            return {"feedback_ids": []}
        if len(records) < len(batch_ids):
            logger.info(
                "feedback_batch_shrunk",
                run_id=str(self.run.id),
                source=source,
                before=len(batch_ids),
                after=len(records),
            )
            summary = await summarize_feedback(records, self.generate)

        timestamps = [r.created_at for r in records]
        row = add_source_summary(
            self.db,
            source=source,
            summary=summary,
            date_range_start=min(timestamps),
            date_range_end=max(timestamps),
            feedback_count=len(records),
        )
        await self.db.flush()
        return {
            "summary_id": row.id,
            "summary": summary,
            "feedback_ids": [r.id for r in records],
            "date_range_start": row.date_range_start,
            "date_range_end": row.date_range_end,
            "feedback_count": row.feedback_count,
        }

    async def _mark_processed(self, feedback_ids: list[int]) -> dict:
        flipped = await mark_processed(self.db, feedback_ids, commit=False)
        return {"processed": flipped}
