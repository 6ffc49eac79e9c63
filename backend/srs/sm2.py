"""SM-2 spaced repetition scheduler.

A variant of the SuperMemo SM-2 algorithm.
Reference: https://www.supermemo.com/en/archives1990-2015/english/ol/sm2

Key concepts:
- Ease factor: Multiplier controlling how fast the interval grows on success.
- Interval: Days until the item is shown again, clamped to [1, 365].
- Repetition: Consecutive non-"forgot" outcomes since the last reset.
- Method multiplier: Difficulty weight of the retrieval method; scales
  interval growth once an item is past its first two reviews.

Every function here is pure. ``update_record`` returns a new record and
never mutates its input.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from backend.config import utcnow
from backend.srs.errors import InvalidDirectionError, InvalidRatingError
from backend.srs.methods import ReviewMethod, difficulty_multiplier

INITIAL_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
INITIAL_INTERVAL = 1

# Ease adjustments per rating
EASY_BONUS = 0.15
HARD_PENALTY = -0.15
FORGOT_PENALTY = -0.20

# Interval bounds and fixed early intervals (days)
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6
MIN_INTERVAL = 1
MAX_INTERVAL = 365

# Steady-state interval trims
HARD_INTERVAL_FACTOR = 0.8
EASY_INTERVAL_FACTOR = 1.3


class Rating(str, Enum):
    """The four outcome buckets the scheduler understands."""

    FORGOT = "forgot"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def parse(cls, value: "Rating | str") -> "Rating":
        """Coerce a rating name to a Rating.

        Raises:
            InvalidRatingError: If the value is not one of the four ratings.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidRatingError(value)


class Direction(str, Enum):
    """Presentation direction of a vocabulary card."""

    FORWARD = "forward"  # source -> target
    REVERSE = "reverse"  # target -> source

    @classmethod
    def parse(cls, value: "Direction | str") -> "Direction":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidDirectionError(value)


@dataclass(frozen=True)
class ReviewRecord:
    """Scheduling state of one learnable item."""

    item_id: str
    ease_factor: float = INITIAL_EASE_FACTOR
    interval: int = INITIAL_INTERVAL  # Days
    repetition: int = 0
    last_review_date: datetime | None = None
    next_review_date: datetime | None = None
    total_reviews: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    forward_correct: int = 0
    forward_total: int = 0
    reverse_correct: int = 0
    reverse_total: int = 0


def create_initial_record(item_id: str, now: datetime | None = None) -> ReviewRecord:
    """Create the record for a newly added item. It is due immediately."""
    return ReviewRecord(item_id=item_id, next_review_date=now or utcnow())


def next_ease_factor(ease: float, rating: Rating) -> float:
    """Apply the rating's ease adjustment, floored at MIN_EASE_FACTOR."""
    if rating is Rating.EASY:
        ease += EASY_BONUS
    elif rating is Rating.HARD:
        ease += HARD_PENALTY
    elif rating is Rating.FORGOT:
        ease += FORGOT_PENALTY
    return max(MIN_EASE_FACTOR, ease)


def next_repetition(repetition: int, rating: Rating) -> int:
    """Reset on "forgot", otherwise count one more consecutive success."""
    if rating is Rating.FORGOT:
        return 0
    return repetition + 1


def next_interval(
    current_interval: int,
    repetition_before: int,
    new_ease: float,
    rating: Rating,
    method_multiplier: float = 1.0,
) -> int:
    """Calculate the next interval in days.

    Args:
        current_interval: Interval before this review.
        repetition_before: Repetition count before this review.
        new_ease: Ease factor after this review's adjustment.
        rating: Effective rating of the review.
        method_multiplier: Difficulty weight of the retrieval method.

    Returns:
        Interval in days, clamped to [MIN_INTERVAL, MAX_INTERVAL].
    """
    if rating is Rating.FORGOT:
        interval = FIRST_INTERVAL
    elif repetition_before == 0:
        interval = FIRST_INTERVAL
    elif repetition_before == 1:
        interval = SECOND_INTERVAL
    else:
        interval = _round_half_up(current_interval * new_ease * method_multiplier)
        if rating is Rating.HARD:
            interval = _round_half_up(interval * HARD_INTERVAL_FACTOR)
        elif rating is Rating.EASY:
            interval = _round_half_up(interval * EASY_INTERVAL_FACTOR)

    return max(MIN_INTERVAL, min(MAX_INTERVAL, interval))


def next_review_date(now: datetime, interval: int) -> datetime:
    """Return the moment the item becomes due again."""
    return now + timedelta(days=interval)


def update_record(
    record: ReviewRecord,
    rating: Rating | str,
    method: ReviewMethod | str = ReviewMethod.TRADITIONAL,
    now: datetime | None = None,
    direction: Direction | str | None = None,
) -> ReviewRecord:
    """Apply one review outcome and return the updated record.

    Args:
        record: Current scheduling state.
        rating: Effective rating (after quality adjustment).
        method: Retrieval method used for the review.
        now: Review time (defaults to utcnow).
        direction: Presentation direction, if the caller tracks it.

    Returns:
        A new ReviewRecord; ``record`` is left untouched.

    Raises:
        InvalidRatingError: If ``rating`` is not a valid rating.
        InvalidMethodError: If ``method`` is not a valid method.
        InvalidDirectionError: If ``direction`` is not forward or reverse.
    """
    # Validate everything before computing anything
    rating = Rating.parse(rating)
    multiplier = difficulty_multiplier(method)
    direction = Direction.parse(direction) if direction is not None else None
    now = now or utcnow()

    new_ease = next_ease_factor(record.ease_factor, rating)
    new_interval = next_interval(
        record.interval, record.repetition, new_ease, rating, multiplier
    )
    correct = rating is not Rating.FORGOT

    changes: dict = {
        "ease_factor": new_ease,
        "interval": new_interval,
        "repetition": next_repetition(record.repetition, rating),
        "last_review_date": now,
        "next_review_date": next_review_date(now, new_interval),
        "total_reviews": record.total_reviews + 1,
        "correct_count": record.correct_count + (1 if correct else 0),
        "incorrect_count": record.incorrect_count + (0 if correct else 1),
    }
    if direction is Direction.FORWARD:
        changes["forward_total"] = record.forward_total + 1
        changes["forward_correct"] = record.forward_correct + (1 if correct else 0)
    elif direction is Direction.REVERSE:
        changes["reverse_total"] = record.reverse_total + 1
        changes["reverse_correct"] = record.reverse_correct + (1 if correct else 0)

    return replace(record, **changes)


def is_due(record: ReviewRecord, now: datetime | None = None) -> bool:
    """Return True if the item's next review date has passed."""
    if record.next_review_date is None:
        return True
    return record.next_review_date <= (now or utcnow())


def format_interval(days: int) -> str:
    """Format an interval for display ("1 day", "3 months", "1 year")."""
    if days == 1:
        return "1 day"
    if days < 30:
        return f"{days} days"
    if days < 365:
        months = _round_half_up(days / 30)
        return "1 month" if months == 1 else f"{months} months"
    years = _round_half_up(days / 365)
    return "1 year" if years == 1 else f"{years} years"


def format_next_review(next_review: datetime, now: datetime | None = None) -> str:
    """Format a due date relative to now ("Overdue", "Tomorrow", "In 2 weeks")."""
    diff = next_review - (now or utcnow())
    diff_days = math.ceil(diff.total_seconds() / 86400)

    if diff_days < 0:
        return "Overdue"
    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Tomorrow"
    if diff_days < 7:
        return f"In {diff_days} days"
    if diff_days < 30:
        weeks = _round_half_up(diff_days / 7)
        return "In 1 week" if weeks == 1 else f"In {weeks} weeks"
    months = _round_half_up(diff_days / 30)
    return "In 1 month" if months == 1 else f"In {months} months"


def _round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)
