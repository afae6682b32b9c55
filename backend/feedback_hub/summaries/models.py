from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from feedback_hub.models.base import Base, unix_now


class SourceSummary(Base):
    __tablename__ = "source_summaries"
    __table_args__ = (
        Index("ix_source_summaries_date_range", "date_range_start", "date_range_end"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    # Inclusive bounds: min/max created_at of the feedback the summary covers
    date_range_start: Mapped[int] = mapped_column(Integer, nullable=False)
    date_range_end: Mapped[int] = mapped_column(Integer, nullable=False)
    feedback_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False, default=unix_now)


class AggregatedSummary(Base):
    __tablename__ = "aggregated_summaries"
    __table_args__ = (
        Index("ix_aggregated_summaries_date_range", "date_range_start", "date_range_end"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    # The query window, not recomputed from the inputs
    date_range_start: Mapped[int] = mapped_column(Integer, nullable=False)
    date_range_end: Mapped[int] = mapped_column(Integer, nullable=False)
    source_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_feedback_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False, default=unix_now)
