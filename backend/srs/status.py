"""Proficiency stage of an item, derived from its review counters."""

import math
from enum import Enum

from backend.srs.sm2 import Direction, ReviewRecord

MIN_REVIEWS_FOR_LEARNING = 3
MASTERY_REPETITION = 5
MASTERY_ACCURACY = 80  # Percent


class ItemStatus(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    MASTERED = "mastered"


def record_accuracy(record: ReviewRecord) -> int:
    """Return accuracy as a whole percentage (0 when never reviewed)."""
    if record.total_reviews == 0:
        return 0
    return math.floor(record.correct_count / record.total_reviews * 100 + 0.5)


def directional_accuracy(record: ReviewRecord, direction: Direction) -> int | None:
    """Return accuracy for one presentation direction, or None if untested."""
    if direction is Direction.FORWARD:
        correct, total = record.forward_correct, record.forward_total
    else:
        correct, total = record.reverse_correct, record.reverse_total
    if total == 0:
        return None
    return math.floor(correct / total * 100 + 0.5)


def classify_status(record: ReviewRecord) -> ItemStatus:
    """Classify an item as new, learning or mastered.

    - new: fewer than 3 reviews
    - mastered: 5+ consecutive successes and accuracy >= 80%
    - learning: everything else

    An item can drop from mastered back to learning after a "forgot",
    since that resets its repetition count.
    """
    if record.total_reviews < MIN_REVIEWS_FOR_LEARNING:
        return ItemStatus.NEW
    if record.repetition >= MASTERY_REPETITION and record_accuracy(record) >= MASTERY_ACCURACY:
        return ItemStatus.MASTERED
    return ItemStatus.LEARNING
