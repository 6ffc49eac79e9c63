"""Quality adjustment from response time.

The learner's self-rating is turned into a 0-5 quality score, nudged up for
fast answers and down for slow ones. Response-time thresholds are scaled per
retrieval method, since listening to audio or typing an answer takes longer
than clicking an option even when the item is well known.

The adjusted quality is then bucketed back into a Rating (the "effective
rating") which is what the SM-2 scheduler consumes.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from backend.srs.errors import InvalidReviewInput
from backend.srs.methods import ReviewMethod, time_multiplier
from backend.srs.sm2 import Rating

logger = logging.getLogger(__name__)

BASE_QUALITY: dict[Rating, float] = {
    Rating.FORGOT: 0.0,
    Rating.HARD: 2.0,
    Rating.GOOD: 3.0,
    Rating.EASY: 4.0,
}

MIN_QUALITY = 0.0
MAX_QUALITY = 5.0

# Base response-time thresholds (ms), before per-method scaling
VERY_FAST_MS = 2000
FAST_MS = 5000
MODERATE_MS = 10000
SLOW_MS = 20000

# Effective rating cut-offs on the adjusted quality scale
EASY_CUTOFF = 4.0
GOOD_CUTOFF = 2.5
HARD_CUTOFF = 1.0


class ResponseSpeed(str, Enum):
    VERY_FAST = "very_fast"
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"
    VERY_SLOW = "very_slow"


SPEED_ADJUSTMENT: dict[ResponseSpeed, float] = {
    ResponseSpeed.VERY_FAST: 1.0,
    ResponseSpeed.FAST: 0.5,
    ResponseSpeed.MODERATE: 0.0,
    ResponseSpeed.SLOW: -0.5,
    ResponseSpeed.VERY_SLOW: -1.0,
}


@dataclass(frozen=True)
class QualityAdjustment:
    """Result of adjusting a self-rating by response time."""

    rating: Rating  # What the learner reported
    method: ReviewMethod
    response_time_ms: int
    speed: ResponseSpeed
    adjusted_quality: float  # 0-5
    effective_rating: Rating  # What the scheduler will use


def rating_to_quality(rating: Rating | str) -> float:
    """Map a rating onto the 0-5 quality scale."""
    return BASE_QUALITY[Rating.parse(rating)]


def response_speed(response_time_ms: int, method: ReviewMethod | str) -> ResponseSpeed:
    """Classify a response time against the method's scaled thresholds."""
    multiplier = time_multiplier(method)

    if response_time_ms < VERY_FAST_MS * multiplier:
        return ResponseSpeed.VERY_FAST
    if response_time_ms < FAST_MS * multiplier:
        return ResponseSpeed.FAST
    if response_time_ms < MODERATE_MS * multiplier:
        return ResponseSpeed.MODERATE
    if response_time_ms < SLOW_MS * multiplier:
        return ResponseSpeed.SLOW
    return ResponseSpeed.VERY_SLOW


def quality_to_rating(quality: float) -> Rating:
    """Bucket an adjusted quality score back into a Rating."""
    if quality >= EASY_CUTOFF:
        return Rating.EASY
    if quality >= GOOD_CUTOFF:
        return Rating.GOOD
    if quality >= HARD_CUTOFF:
        return Rating.HARD
    return Rating.FORGOT


def adjust_quality(
    rating: Rating | str,
    response_time_ms: int,
    method: ReviewMethod | str = ReviewMethod.TRADITIONAL,
) -> QualityAdjustment:
    """Combine a self-rating with response time into an effective rating.

    Args:
        rating: The learner's self-rating.
        response_time_ms: Time from presentation to answer.
        method: Retrieval method used.

    Returns:
        QualityAdjustment with the adjusted quality and effective rating.

    Raises:
        InvalidRatingError: If ``rating`` is not a valid rating.
        InvalidMethodError: If ``method`` is not a valid method.
        InvalidReviewInput: If ``response_time_ms`` is negative.
    """
    rating = Rating.parse(rating)
    method = ReviewMethod.parse(method)
    if response_time_ms < 0:
        raise InvalidReviewInput(f"Response time must be >= 0, got {response_time_ms}")

    speed = response_speed(response_time_ms, method)
    quality = BASE_QUALITY[rating] + SPEED_ADJUSTMENT[speed]
    quality = max(MIN_QUALITY, min(MAX_QUALITY, quality))
    effective = quality_to_rating(quality)

    if effective is not rating:
        logger.debug(
            "Adjusted %s -> %s (%s, %dms, %s)",
            rating.value,
            effective.value,
            method.value,
            response_time_ms,
            speed.value,
        )

    return QualityAdjustment(
        rating=rating,
        method=method,
        response_time_ms=response_time_ms,
        speed=speed,
        adjusted_quality=quality,
        effective_rating=effective,
    )
