"""Queue management for SRS review sessions.

Handles candidate selection (due items, filters, practice mode),
mixing never-reviewed items in with reviews, and the session size limit.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from backend.config import settings, utcnow
from backend.srs.sm2 import ReviewRecord
from backend.srs.status import ItemStatus, classify_status, record_accuracy
from backend.srs.store import RecordStore

logger = logging.getLogger(__name__)


class DirectionMode(str, Enum):
    FORWARD = "forward"
    REVERSE = "reverse"
    MIXED = "mixed"  # Pick a direction per item


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for building and running a review session."""

    session_size: int = settings.session_size
    randomize: bool = settings.randomize_sessions
    direction: DirectionMode = DirectionMode.MIXED
    practice_mode: bool = False  # Include items that are not due yet
    status_filter: frozenset[ItemStatus] | None = None
    weak_items_only: bool = False
    weak_items_threshold: int = 70  # Accuracy percent


@dataclass
class ReviewQueue:
    """A prepared queue of records for a review session."""

    due_records: list[ReviewRecord] = field(default_factory=list)
    new_records: list[ReviewRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.due_records) + len(self.new_records)

    def interleaved(self) -> list[ReviewRecord]:
        """Return records interleaved: mostly reviews with new items mixed in.

        Strategy: Insert new items at regular intervals within the review queue
        to maintain engagement without overwhelming with unfamiliar material.
        """
        if not self.new_records:
            return list(self.due_records)
        if not self.due_records:
            return list(self.new_records)

        result: list[ReviewRecord] = []
        due = list(self.due_records)
        new = list(self.new_records)

        # Insert a new item every N reviews
        interval = max(1, len(due) // (len(new) + 1))
        new_idx = 0

        for i, record in enumerate(due):
            result.append(record)
            if new_idx < len(new) and (i + 1) % interval == 0:
                result.append(new[new_idx])
                new_idx += 1

        # Append any remaining new items at the end
        result.extend(new[new_idx:])
        return result

    def item_ids(self, limit: int | None = None, rng: random.Random | None = None) -> list[str]:
        """Return item ids in session order, cut to ``limit``.

        With ``rng``, reviews and new items are each shuffled after the cut
        and then interleaved again, so new items stay spread out.
        """
        records = self.interleaved()
        if limit is not None:
            records = records[: max(0, limit)]
        if rng is not None:
            chosen = {r.item_id for r in records}
            due = [r for r in self.due_records if r.item_id in chosen]
            new = [r for r in self.new_records if r.item_id in chosen]
            rng.shuffle(due)
            rng.shuffle(new)
            records = ReviewQueue(due, new).interleaved()
        return [r.item_id for r in records]


def matches_filters(record: ReviewRecord, config: SessionConfig) -> bool:
    """Return True if the record passes the session's status and weakness filters."""
    if config.status_filter and classify_status(record) not in config.status_filter:
        return False
    if config.weak_items_only:
        if record.total_reviews == 0:
            return False
        if record_accuracy(record) >= config.weak_items_threshold:
            return False
    return True


async def build_queue(
    store: RecordStore,
    config: SessionConfig | None = None,
    now: datetime | None = None,
) -> ReviewQueue:
    """Build a review queue from the store.

    Fetches due records (most overdue first), or every record in practice
    mode, applies the session filters and splits never-reviewed items from
    reviews.

    Args:
        store: Record store to read from.
        config: Session configuration (size, filters, practice mode).
        now: Current time (defaults to utcnow).

    Returns:
        A ReviewQueue with due and new records.
    """
    config = config or SessionConfig()
    now = now or utcnow()

    if config.practice_mode:
        records = await store.all_records()
        records.sort(key=lambda r: r.next_review_date or now)
    else:
        records = await store.get_due_records(now)

    records = [r for r in records if matches_filters(r, config)]
    queue = ReviewQueue(
        due_records=[r for r in records if r.total_reviews > 0],
        new_records=[r for r in records if r.total_reviews == 0],
    )

    logger.info(
        "Built queue: %d due + %d new = %d total (practice=%s)",
        len(queue.due_records),
        len(queue.new_records),
        queue.total,
        config.practice_mode,
    )
    return queue
