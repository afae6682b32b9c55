"""Combine the per-source summaries of a time window into one executive summary.

Read-only over source summaries; re-running over the same or an overlapping
window simply appends another aggregated row.
"""

from enum import Enum

import structlog

from feedback_hub.models.base import unix_now
from feedback_hub.pipelines.base import Pipeline
from feedback_hub.summaries.models import SourceSummary
from feedback_hub.summaries.service import (
    add_aggregated_summary,
    query_source_summaries,
    source_summaries_by_ids,
)
from feedback_hub.summarizer.summarizers import summarize_sources

logger = structlog.get_logger()

SECONDS_PER_DAY = 24 * 60 * 60


class AggregationState(str, Enum):
    WINDOWING = "windowing"
    FETCHED = "fetched"
    EMPTY = "empty"
    SUMMARIZING = "summarizing"
    SUMMARIZED = "summarized"
    PERSISTED = "persisted"
    FAILED = "failed"


def compute_window(days: int, now: int | None = None) -> tuple[int, int]:
    end = unix_now() if now is None else now
    return end - days * SECONDS_PER_DAY, end


class AggregationPipeline(Pipeline):
    """Run params: ``days`` (window length, default 7)."""

    kind = "aggregation"
    initial_state = AggregationState.WINDOWING
    terminal_states = frozenset({AggregationState.PERSISTED, AggregationState.EMPTY})

    _summaries: list[SourceSummary] | None = None

    async def execute(self) -> dict:
        days = int((self.run.params or {}).get("days", 7))

        window = await self.step("compute-window", lambda: self._window(days))
        date_range = {"start": window["start"], "end": window["end"]}

        fetched = await self.step(
            "fetch-source-summaries",
            lambda: self._fetch(window["start"], window["end"]),
            AggregationState.FETCHED,
        )
        if not fetched["summary_ids"]:
            return await self.finish(AggregationState.EMPTY, {
                "success": True,
                "message": "No source summaries found for the specified time period",
                "summary": None,
                "date_range": date_range,
            })

        await self.transition(AggregationState.SUMMARIZING)
        generated = await self.step(
            "generate-aggregated-summary",
            lambda: self._summarize(fetched["summary_ids"]),
            AggregationState.SUMMARIZED,
        )

        saved = await self.step(
            "store-aggregated-summary",
            lambda: self._store(generated["summary"], window, fetched),
            AggregationState.PERSISTED,
        )

        return await self.finish(AggregationState.PERSISTED, {
            "success": True,
            "message": "Aggregated summary generated successfully",
            "summary": generated["summary"],
            "aggregated_summary_id": saved["aggregated_summary_id"],
            "source_count": fetched["source_count"],
            "total_feedback_count": fetched["total_feedback_count"],
            "date_range": date_range,
        })

    async def _window(self, days: int) -> dict:
        start, end = compute_window(days)
        return {"start": start, "end": end, "days": days}

    async def _fetch(self, start: int, end: int) -> dict:
        summaries = await query_source_summaries(self.db, start, end)
        self._summaries = summaries
        logger.info("source_summaries_fetched", run_id=str(self.run.id), count=len(summaries))
        return {
            "summary_ids": [s.id for s in summaries],
            "source_count": len({s.source for s in summaries}),
            "total_feedback_count": sum(s.feedback_count for s in summaries),
        }

    async def _summarize(self, summary_ids: list[int]) -> dict:
        summaries = self._summaries
        if summaries is None:
            summaries = await source_summaries_by_ids(self.db, summary_ids)
        return {"summary": await summarize_sources(summaries, self.generate)}

    async def _store(self, summary: str, window: dict, fetched: dict) -> dict:
        row = add_aggregated_summary(
            self.db,
            summary=summary,
            date_range_start=window["start"],
            date_range_end=window["end"],
            source_count=fetched["source_count"],
            total_feedback_count=fetched["total_feedback_count"],
        )
        await self.db.flush()
        return {"aggregated_summary_id": row.id}
