"""Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, Field

from backend.srs.methods import ReviewMethod
from backend.srs.queue import DirectionMode
from backend.srs.sm2 import Direction, Rating
from backend.srs.status import ItemStatus

# --- Items ---


class RecordResponse(BaseModel):
    """Scheduling state of one item."""

    item_id: str
    ease_factor: float
    interval: int
    repetition: int
    last_review_date: datetime | None
    next_review_date: datetime | None
    total_reviews: int
    correct_count: int
    incorrect_count: int
    status: ItemStatus


# --- Session ---


class SessionStartRequest(BaseModel):
    """Options for a new review session. Omitted fields use the server defaults."""

    session_size: int | None = Field(default=None, ge=1, le=500)
    randomize: bool | None = None
    direction: DirectionMode = DirectionMode.MIXED
    practice_mode: bool = False
    status_filter: list[ItemStatus] | None = None
    weak_items_only: bool = False
    weak_items_threshold: int = Field(default=70, ge=0, le=100)


class SessionStartResponse(BaseModel):
    """Response when starting a new review session."""

    session_id: str
    total_items: int
    due_items: int
    new_items: int


class NextItemResponse(BaseModel):
    """The next item to present and how to present it."""

    item_id: str
    method: ReviewMethod
    reason: str
    direction: Direction | None
    ease_factor: float
    interval: int
    repetition: int
    status: ItemStatus
    remaining: int
    progress: float


class AnswerRequest(BaseModel):
    """Request to submit the learner's answer for an item."""

    item_id: str
    rating: Rating
    response_time_ms: int = Field(ge=0)
    method: ReviewMethod | None = None  # Defaults to the method chosen by /next
    direction: Direction | None = None


class AnswerResponse(BaseModel):
    """Response after submitting an answer with scheduling info."""

    item_id: str
    accepted: bool  # False for a duplicate submission
    adjusted_quality: float | None = None
    effective_rating: Rating | None = None
    interval: int | None = None
    ease_factor: float | None = None
    next_review: datetime | None = None
    next_review_label: str | None = None
    status: ItemStatus | None = None
    remaining: int
    progress: float
    session_complete: bool


class SessionProgressResponse(BaseModel):
    status: str
    reviewed: int
    total: int
    remaining: int
    progress: float


class SessionSummaryResponse(BaseModel):
    """Statistics for a finished review session."""

    status: str
    candidates: int
    reviewed: int
    correct: int
    accuracy_rate: float
    rating_counts: dict[str, int]
    effective_rating_counts: dict[str, int]
    average_response_ms: float
    duration_seconds: float
    aborted: bool


# --- Stats ---


class ItemStatsResponse(RecordResponse):
    """Record plus derived statistics for one item."""

    accuracy: int
    forward_accuracy: int | None
    reverse_accuracy: int | None
    interval_label: str
    next_review_label: str | None


class MethodPerformanceResponse(BaseModel):
    method: ReviewMethod
    attempts: int
    correct: int
    accuracy: float
    last_attempt: datetime | None


class OverviewResponse(BaseModel):
    """Overall statistics across all items."""

    total_items: int
    items_due: int
    items_new: int
    items_learning: int
    items_mastered: int
    total_reviews: int
    sessions_finished: int
