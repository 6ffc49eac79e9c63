from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base


class StudySession(Base):
    """Summary of a finished (completed or aborted) review session."""

    __tablename__ = "study_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # uuid4
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ended_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    candidates: Mapped[int] = mapped_column(Integer, nullable=False)
    reviewed: Mapped[int] = mapped_column(Integer, nullable=False)
    accuracy_rate: Mapped[float] = mapped_column(Float, nullable=False)  # 0-1
    aborted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
