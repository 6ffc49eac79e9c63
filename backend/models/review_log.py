from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.config import utcnow
from backend.models.base import Base


class ReviewLog(Base):
    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        ForeignKey("review_records.item_id", ondelete="CASCADE"), nullable=False, index=True
    )
    method: Mapped[str] = mapped_column(String(50), nullable=False)  # traditional, fill_blank, ...
    rating: Mapped[str] = mapped_column(String(10), nullable=False)  # forgot, hard, good, easy
    effective_rating: Mapped[str] = mapped_column(String(10), nullable=False)
    adjusted_quality: Mapped[float] = mapped_column(Float, nullable=False)  # 0-5
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    direction: Mapped[str | None] = mapped_column(String(10), nullable=True)  # forward, reverse
    interval_before: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_after: Mapped[int] = mapped_column(Integer, nullable=False)
    ease_before: Mapped[float] = mapped_column(Float, nullable=False)
    ease_after: Mapped[float] = mapped_column(Float, nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    record: Mapped["ReviewRecordRow"] = relationship(back_populates="review_logs")  # type: ignore[name-defined] # noqa: F821
