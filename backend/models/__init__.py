"""SQLAlchemy ORM models for the vocab SRS database."""

from backend.models.base import Base
from backend.models.review_log import ReviewLog
from backend.models.review_record import ReviewRecordRow
from backend.models.study_session import StudySession

__all__ = ["Base", "ReviewLog", "ReviewRecordRow", "StudySession"]
