"""Prompt construction and model calls for both summarisation stages.

Per-source summaries are built from raw feedback; the executive summary is
built from per-source summaries. A failed model call never propagates: the
caller gets a deterministic placeholder so storage and processed-marking
still go ahead.
"""

from collections.abc import Sequence
from datetime import datetime, timezone

import structlog

from feedback_hub.feedback.models import Feedback
from feedback_hub.summaries.models import SourceSummary
from feedback_hub.summarizer.llm import TextGenerator, extract_response_text

logger = structlog.get_logger()

ITEM_DELIMITER = "\n\n---\n\n"

NO_FEEDBACK_TEXT = "No feedback to summarize."
NO_SOURCE_SUMMARIES_TEXT = "No source summaries available to aggregate."

FEEDBACK_MAX_TOKENS = 1000
SOURCES_MAX_TOKENS = 1500
TEMPERATURE = 0.7

# ---------------------------------------------------------------------------
# Per-source feedback summaries
# ---------------------------------------------------------------------------

_FEEDBACK_SYSTEM = "You are a helpful assistant that summarizes product feedback concisely and clearly."

_FEEDBACK_INSTRUCTIONS = (
    "You are a product feedback analyst. Analyze the following feedback items "
    "and create a concise summary that highlights:\n"
    "1. Main themes and topics\n"
    "2. Common pain points or issues\n"
    "3. Positive feedback or praise\n"
    "4. Suggestions or feature requests\n"
    "5. Overall sentiment"
)

_FEEDBACK_CLOSING = (
    "Provide a well-structured summary that would help a product manager "
    "understand the key insights from this feedback."
)


def _format_feedback(records: Sequence[Feedback]) -> str:
    blocks: list[str] = []
    for index, record in enumerate(records, start=1):
        text = f"Feedback {index}:\n{record.content}"
        author = (record.feedback_metadata or {}).get("author")
        if author:
            text += f"\n[From: {author}]"
        blocks.append(text)
    return ITEM_DELIMITER.join(blocks)


def build_feedback_prompt(records: Sequence[Feedback]) -> str:
    return (
        f"{_FEEDBACK_INSTRUCTIONS}\n\n"
        f"Feedback items:\n{_format_feedback(records)}\n\n"
        f"{_FEEDBACK_CLOSING}"
    )


async def summarize_feedback(records: Sequence[Feedback], generate: TextGenerator) -> str:
    if not records:
        return NO_FEEDBACK_TEXT
    try:
        result = await generate(
            _FEEDBACK_SYSTEM,
            build_feedback_prompt(records),
            max_tokens=FEEDBACK_MAX_TOKENS,
            temperature=TEMPERATURE,
        )
        return extract_response_text(result)
    except Exception as exc:
        logger.warning("summary_generation_failed", stage="feedback", items=len(records), error=str(exc))
        return f"Summary of {len(records)} feedback items. Error generating AI summary: {exc}"


# ---------------------------------------------------------------------------
# Cross-source executive summaries
# ---------------------------------------------------------------------------

_SOURCES_SYSTEM = (
    "You are a product management assistant that synthesizes feedback from "
    "multiple sources into actionable insights."
)

_SOURCES_INSTRUCTIONS = (
    "You are a product manager analyzing feedback summaries from multiple sources.\n"
    "Create a comprehensive aggregated summary that:\n"
    "1. Identifies common themes across all sources\n"
    "2. Highlights the most critical issues or pain points\n"
    "3. Notes positive feedback and what users love\n"
    "4. Prioritizes feature requests and suggestions by frequency/importance\n"
    "5. Provides overall sentiment analysis\n"
    "6. Suggests actionable insights for the product team"
)

_SOURCES_CLOSING = (
    "Provide a well-structured, executive-level summary that synthesizes "
    "insights from all sources."
)


def _format_date(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


def _format_source_summaries(summaries: Sequence[SourceSummary]) -> str:
    blocks: list[str] = []
    for s in summaries:
        date_range = f"{_format_date(s.date_range_start)} to {_format_date(s.date_range_end)}"
        blocks.append(
            f"Source: {s.source or 'Unknown'} ({s.feedback_count} items, {date_range})\n{s.summary}"
        )
    return ITEM_DELIMITER.join(blocks)


def build_sources_prompt(summaries: Sequence[SourceSummary]) -> str:
    return (
        f"{_SOURCES_INSTRUCTIONS}\n\n"
        f"Source Summaries:\n{_format_source_summaries(summaries)}\n\n"
        f"{_SOURCES_CLOSING}"
    )


async def summarize_sources(summaries: Sequence[SourceSummary], generate: TextGenerator) -> str:
    if not summaries:
        return NO_SOURCE_SUMMARIES_TEXT
    try:
        result = await generate(
            _SOURCES_SYSTEM,
            build_sources_prompt(summaries),
            max_tokens=SOURCES_MAX_TOKENS,
            temperature=TEMPERATURE,
        )
        return extract_response_text(result)
    except Exception as exc:
        total = sum(s.feedback_count for s in summaries)
        logger.warning("summary_generation_failed", stage="sources", items=len(summaries), error=str(exc))
        return (
            f"Aggregated summary of {len(summaries)} sources covering {total} total "
            f"feedback items. Error generating AI summary: {exc}"
        )
