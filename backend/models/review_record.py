"""Persisted SM-2 scheduling state, one row per learnable item."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base, TimestampMixin


class ReviewRecordRow(Base, TimestampMixin):
    """SM-2 state and review counters for one item."""

    __tablename__ = "review_records"

    item_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # Days
    repetition: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_review_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_review_date: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incorrect_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    forward_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    forward_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reverse_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reverse_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    review_logs: Mapped[list["ReviewLog"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="record", cascade="all, delete-orphan", passive_deletes=True
    )
