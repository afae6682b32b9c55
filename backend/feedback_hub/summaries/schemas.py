from pydantic import BaseModel


class SourceSummaryResponse(BaseModel):
    id: int
    source: str
    summary: str
    date_range_start: int
    date_range_end: int
    feedback_count: int
    created_at: int

    model_config = {"from_attributes": True}


class AggregatedSummaryResponse(BaseModel):
    id: int
    summary: str
    date_range_start: int
    date_range_end: int
    source_count: int
    total_feedback_count: int
    created_at: int

    model_config = {"from_attributes": True}


class SourceSummaryListResponse(BaseModel):
    success: bool = True
    summaries: list[SourceSummaryResponse]


class SourceSummariesBySourceResponse(SourceSummaryListResponse):
    source: str


class AggregatedSummaryListResponse(BaseModel):
    success: bool = True
    summaries: list[AggregatedSummaryResponse]


class StatsResponse(BaseModel):
    success: bool = True
    feedback_counts_by_source: dict[str, int]
    latest_aggregated_summary: AggregatedSummaryResponse | None
    recent_source_summaries: list[SourceSummaryResponse]
