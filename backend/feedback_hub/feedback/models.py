from sqlalchemy import Boolean, Integer, JSON, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from feedback_hub.models.base import Base, unix_now


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(100), nullable=False, index=True)  # github, discord, twitter, ...
    content: Mapped[str] = mapped_column(Text, nullable=False)
    feedback_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False, default=unix_now, index=True)  # unix seconds
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false(), index=True)
