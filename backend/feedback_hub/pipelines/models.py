import uuid

from sqlalchemy import Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from feedback_hub.models.base import Base, TimestampMixin, generate_uuid


class PipelineRun(TimestampMixin, Base):
    __tablename__ = "pipeline_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    kind: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # feedback_processing, aggregation
    source: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str] = mapped_column(String(50), nullable=False)
    params: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # step name -> recorded result; presence marks the step complete
    step_results: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    result: Mapped[dict | None] = mapped_column(JSON, default=None)
    error: Mapped[str | None] = mapped_column(Text)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
