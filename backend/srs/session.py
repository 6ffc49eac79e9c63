"""Review session orchestrator.

Sequences a batch of candidate items and, for each submitted answer, runs
quality adjustment, the SM-2 update and the store write. The session is a
small state machine:

    IDLE -> IN_PROGRESS -> COMPLETED
                        -> ABORTED

An aborted session is a partial success: every outcome recorded before the
abort has already been persisted. At most one outcome is accepted per item;
a repeated submission is ignored.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from backend.config import utcnow
from backend.srs.errors import SessionStateError, UnknownSessionItemError
from backend.srs.methods import ReviewMethod
from backend.srs.quality import QualityAdjustment, adjust_quality
from backend.srs.queue import DirectionMode, SessionConfig
from backend.srs.sm2 import Direction, Rating, ReviewRecord, update_record
from backend.srs.store import ReviewLogEntry

if TYPE_CHECKING:
    from backend.srs.store import RecordStore

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Outcome:
    """One recorded answer within a session."""

    item_id: str
    method: ReviewMethod
    rating: Rating
    effective_rating: Rating
    adjusted_quality: float
    response_time_ms: int
    direction: Direction | None
    recorded_at: datetime
    record: ReviewRecord | None = None  # Record after the update, when persisted

    @property
    def correct(self) -> bool:
        return self.effective_rating is not Rating.FORGOT


@dataclass(frozen=True)
class SessionSummary:
    """Aggregate statistics, computed when the session ends.

    An abort recomputes it when a write that was in flight lands.
    """

    started_at: datetime
    ended_at: datetime
    candidates: int
    reviewed: int
    correct: int
    accuracy_rate: float  # 0-1
    rating_counts: dict[str, int]
    effective_rating_counts: dict[str, int]
    average_response_ms: float
    aborted: bool

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()


def summarize(
    outcomes: list[Outcome],
    candidates: int,
    started_at: datetime,
    ended_at: datetime,
    aborted: bool,
) -> SessionSummary:
    """Compute session statistics from the outcome list."""
    reviewed = len(outcomes)
    correct = sum(1 for o in outcomes if o.correct)
    raw = Counter(o.rating.value for o in outcomes)
    effective = Counter(o.effective_rating.value for o in outcomes)
    total_ms = sum(o.response_time_ms for o in outcomes)

    return SessionSummary(
        started_at=started_at,
        ended_at=ended_at,
        candidates=candidates,
        reviewed=reviewed,
        correct=correct,
        accuracy_rate=correct / reviewed if reviewed else 0.0,
        rating_counts={r.value: raw.get(r.value, 0) for r in Rating},
        effective_rating_counts={r.value: effective.get(r.value, 0) for r in Rating},
        average_response_ms=total_ms / reviewed if reviewed else 0.0,
        aborted=aborted,
    )


@dataclass
class ReviewSession:
    """Manages one review session over a fixed list of candidate items."""

    rng: random.Random = field(default_factory=random.Random)
    config: SessionConfig = field(default_factory=SessionConfig)
    status: SessionStatus = SessionStatus.IDLE
    candidates: list[str] = field(default_factory=list)
    outcomes: list[Outcome] = field(default_factory=list)
    index: int = 0
    started_at: datetime | None = None
    ended_at: datetime | None = None
    summary: SessionSummary | None = None
    _directions: dict[str, Direction] = field(default_factory=dict)
    _methods: dict[str, ReviewMethod] = field(default_factory=dict)
    _answered: set[str] = field(default_factory=set)
    _in_flight: set[str] = field(default_factory=set)
    _settled: asyncio.Event = field(default_factory=asyncio.Event)

    def __post_init__(self) -> None:
        self._settled.set()

    def start(
        self,
        candidates: list[str],
        config: SessionConfig | None = None,
        now: datetime | None = None,
        shuffle: bool | None = None,
    ) -> None:
        """Begin the session with up to ``config.session_size`` candidates.

        Candidates are shuffled when ``shuffle`` is set, which defaults to
        ``config.randomize``. Pass ``shuffle=False`` for a list that is
        already in session order, such as ``ReviewQueue.item_ids(rng=...)``.

        Raises:
            SessionStateError: If the session was already started.
        """
        if self.status is not SessionStatus.IDLE:
            raise SessionStateError(f"Cannot start a session that is {self.status.value}")

        self.config = config or self.config
        items = list(dict.fromkeys(candidates))[: max(0, self.config.session_size)]
        if self.config.randomize if shuffle is None else shuffle:
            self.rng.shuffle(items)

        self.candidates = items
        self._directions = {item: self._pick_direction() for item in items}
        self.started_at = now or utcnow()
        self.status = SessionStatus.IN_PROGRESS
        logger.info("Started session: %d items", len(items))

        if not items:
            self._finish(self.started_at, aborted=False)

    @property
    def is_finished(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.ABORTED)

    @property
    def remaining(self) -> int:
        return max(0, len(self.candidates) - len(self.outcomes))

    @property
    def progress(self) -> float:
        """Fraction of candidates answered, never above 1.0."""
        if not self.candidates:
            return 1.0 if self.is_finished else 0.0
        return min(len(self.outcomes) / len(self.candidates), 1.0)

    @property
    def current_item(self) -> str | None:
        """Return the next unanswered item, or None if there is nothing left."""
        if self.status is not SessionStatus.IN_PROGRESS:
            return None
        for item_id in self.candidates:
            if item_id not in self._answered and item_id not in self._in_flight:
                return item_id
        return None

    def direction_for(self, item_id: str) -> Direction | None:
        return self._directions.get(item_id)

    def assign_method(self, item_id: str, method: ReviewMethod) -> None:
        """Remember which method the item was presented with."""
        self._methods[item_id] = ReviewMethod.parse(method)

    def method_for(self, item_id: str) -> ReviewMethod | None:
        return self._methods.get(item_id)

    def history(self) -> list[ReviewMethod]:
        """Methods of the outcomes recorded so far, most recent last."""
        return [o.method for o in self.outcomes]

    def record_outcome(
        self,
        item_id: str,
        rating: Rating | str,
        response_time_ms: int,
        method: ReviewMethod | str | None = None,
        direction: Direction | str | None = None,
        now: datetime | None = None,
        record: ReviewRecord | None = None,
    ) -> Outcome | None:
        """Record an answer without touching a store.

        Returns:
            The new Outcome, or None if the submission was ignored (the
            item already has an outcome, or the session has ended).

        Raises:
            InvalidReviewInput: For an invalid rating, method or response time,
                or an item that is not part of the session.
        """
        if not self._accepts(item_id):
            return None
        adjustment = adjust_quality(rating, response_time_ms, self._resolve_method(item_id, method))
        direction = Direction.parse(direction) if direction is not None else self.direction_for(item_id)
        return self._append(item_id, adjustment, direction, now, record)

    async def submit(
        self,
        store: RecordStore,
        item_id: str,
        rating: Rating | str,
        response_time_ms: int,
        method: ReviewMethod | str | None = None,
        direction: Direction | str | None = None,
        now: datetime | None = None,
    ) -> Outcome | None:
        """Adjust quality, update the item's record in the store and record the outcome.

        The store update is atomic per item. A missing record is created with
        the initial defaults before the update is applied.

        Returns:
            The new Outcome, or None if the submission was ignored.
        """
        if not self._accepts(item_id):
            return None
        adjustment = adjust_quality(rating, response_time_ms, self._resolve_method(item_id, method))
        direction = Direction.parse(direction) if direction is not None else self.direction_for(item_id)
        now = now or utcnow()
        before: list[ReviewRecord] = []

        def apply(record: ReviewRecord) -> ReviewRecord:
            before.append(record)
            return update_record(record, adjustment.effective_rating, adjustment.method, now, direction)

        self._in_flight.add(item_id)
        self._settled.clear()
        try:
            updated = await store.update(item_id, apply, now)
            # The record is committed: the outcome counts even if logging fails
            outcome = self._append(item_id, adjustment, direction, now, updated)
            await store.append_log(
                ReviewLogEntry(
                    item_id=item_id,
                    method=adjustment.method,
                    rating=adjustment.rating,
                    effective_rating=adjustment.effective_rating,
                    adjusted_quality=adjustment.adjusted_quality,
                    response_time_ms=response_time_ms,
                    reviewed_at=now,
                    direction=direction,
                    interval_before=before[0].interval,
                    interval_after=updated.interval,
                    ease_before=before[0].ease_factor,
                    ease_after=updated.ease_factor,
                )
            )
        finally:
            self._in_flight.discard(item_id)
            if not self._in_flight:
                self._settled.set()

        return outcome

    async def settle(self) -> None:
        """Wait until no submission is writing to the store."""
        await self._settled.wait()

    def abort(self, now: datetime | None = None) -> SessionSummary:
        """End the session early. Outcomes recorded so far stay valid.

        A submission whose store write is still in flight is counted into
        the summary once the write lands; await ``settle()`` before reading
        a summary that must include it.

        Raises:
            SessionStateError: If the session is not in progress.
        """
        if self.status is not SessionStatus.IN_PROGRESS:
            raise SessionStateError(f"Cannot abort a session that is {self.status.value}")
        summary = self._finish(now or utcnow(), aborted=True)
        logger.info(
            "Aborted session after %d/%d items", summary.reviewed, summary.candidates
        )
        return summary

    def _accepts(self, item_id: str) -> bool:
        if self.status is not SessionStatus.IN_PROGRESS:
            logger.warning(
                "Ignoring outcome for %s: session is %s", item_id, self.status.value
            )
            return False
        if item_id in self._answered or item_id in self._in_flight:
            logger.debug("Ignoring duplicate outcome for %s", item_id)
            return False
        if item_id not in self._directions:
            raise UnknownSessionItemError(item_id)
        return True

    def _resolve_method(self, item_id: str, method: ReviewMethod | str | None) -> ReviewMethod:
        if method is not None:
            return ReviewMethod.parse(method)
        return self._methods.get(item_id, ReviewMethod.TRADITIONAL)

    def _append(
        self,
        item_id: str,
        adjustment: QualityAdjustment,
        direction: Direction | None,
        now: datetime | None,
        record: ReviewRecord | None,
    ) -> Outcome:
        outcome = Outcome(
            item_id=item_id,
            method=adjustment.method,
            rating=adjustment.rating,
            effective_rating=adjustment.effective_rating,
            adjusted_quality=adjustment.adjusted_quality,
            response_time_ms=adjustment.response_time_ms,
            direction=direction,
            recorded_at=now or utcnow(),
            record=record,
        )
        self.outcomes.append(outcome)
        self._answered.add(item_id)
        self.index += 1

        if self.status is SessionStatus.ABORTED:
            # Aborted while the store write was in flight; the write stands
            logger.info("Counting outcome for %s written during abort", item_id)
            self.summary = summarize(
                self.outcomes,
                candidates=len(self.candidates),
                started_at=self.started_at or outcome.recorded_at,
                ended_at=self.ended_at or outcome.recorded_at,
                aborted=True,
            )
            return outcome

        if len(self.outcomes) == len(self.candidates):
            summary = self._finish(outcome.recorded_at, aborted=False)
            logger.info(
                "Completed session: %d items, accuracy %.0f%%",
                summary.reviewed,
                summary.accuracy_rate * 100,
            )
        return outcome

    def _finish(self, now: datetime, aborted: bool) -> SessionSummary:
        self.status = SessionStatus.ABORTED if aborted else SessionStatus.COMPLETED
        self.ended_at = now
        self.summary = summarize(
            self.outcomes,
            candidates=len(self.candidates),
            started_at=self.started_at or now,
            ended_at=now,
            aborted=aborted,
        )
        return self.summary

    def _pick_direction(self) -> Direction:
        if self.config.direction is DirectionMode.FORWARD:
            return Direction.FORWARD
        if self.config.direction is DirectionMode.REVERSE:
            return Direction.REVERSE
        return self.rng.choice([Direction.FORWARD, Direction.REVERSE])
