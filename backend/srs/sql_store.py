"""SQLAlchemy-backed RecordStore.

Each read-modify-write of a record runs under the item's asyncio lock and
inside a single transaction that selects the row ``FOR UPDATE``, so two
writers of the same item are serialized both in-process and in the database.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import utcnow
from backend.models.review_log import ReviewLog
from backend.models.review_record import ReviewRecordRow
from backend.models.study_session import StudySession
from backend.srs.methods import ReviewMethod
from backend.srs.session import SessionSummary
from backend.srs.sm2 import Direction, Rating, ReviewRecord, create_initial_record
from backend.srs.store import ItemLocks, RecordUpdate, ReviewLogEntry

logger = logging.getLogger(__name__)

_RECORD_FIELDS = (
    "ease_factor",
    "interval",
    "repetition",
    "last_review_date",
    "next_review_date",
    "total_reviews",
    "correct_count",
    "incorrect_count",
    "forward_correct",
    "forward_total",
    "reverse_correct",
    "reverse_total",
)


def _to_record(row: ReviewRecordRow) -> ReviewRecord:
    return ReviewRecord(item_id=row.item_id, **{f: getattr(row, f) for f in _RECORD_FIELDS})


def _copy_into(row: ReviewRecordRow, record: ReviewRecord) -> None:
    for f in _RECORD_FIELDS:
        setattr(row, f, getattr(record, f))
    if row.next_review_date is None:
        row.next_review_date = utcnow()


def _to_entry(row: ReviewLog) -> ReviewLogEntry:
    return ReviewLogEntry(
        item_id=row.item_id,
        method=ReviewMethod(row.method),
        rating=Rating(row.rating),
        effective_rating=Rating(row.effective_rating),
        adjusted_quality=row.adjusted_quality,
        response_time_ms=row.response_time_ms,
        reviewed_at=row.reviewed_at,
        direction=Direction(row.direction) if row.direction else None,
        interval_before=row.interval_before,
        interval_after=row.interval_after,
        ease_before=row.ease_before,
        ease_after=row.ease_after,
    )


class SqlRecordStore:
    """RecordStore persisting records and review logs with SQLAlchemy."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker
        self._locks = ItemLocks()

    async def get_record(self, item_id: str) -> ReviewRecord | None:
        async with self._sessionmaker() as db:
            row = await db.get(ReviewRecordRow, item_id)
            return _to_record(row) if row else None

    async def get_due_records(self, now: datetime) -> list[ReviewRecord]:
        stmt = (
            select(ReviewRecordRow)
            .where(ReviewRecordRow.next_review_date <= now)
            .order_by(ReviewRecordRow.next_review_date.asc())  # Most overdue first
        )
        async with self._sessionmaker() as db:
            result = await db.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def all_records(self) -> list[ReviewRecord]:
        async with self._sessionmaker() as db:
            result = await db.execute(select(ReviewRecordRow).order_by(ReviewRecordRow.item_id))
            return [_to_record(row) for row in result.scalars().all()]

    async def put_record(self, record: ReviewRecord) -> None:
        async with self._locks(record.item_id):
            async with self._sessionmaker() as db, db.begin():
                row = await db.get(ReviewRecordRow, record.item_id, with_for_update=True)
                if row is None:
                    row = ReviewRecordRow(item_id=record.item_id)
                    db.add(row)
                _copy_into(row, record)

    async def create_initial_record(self, item_id: str, now: datetime | None = None) -> ReviewRecord:
        async with self._locks(item_id):
            async with self._sessionmaker() as db, db.begin():
                row = await db.get(ReviewRecordRow, item_id)
                if row is not None:
                    return _to_record(row)
                record = create_initial_record(item_id, now or utcnow())
                row = ReviewRecordRow(item_id=item_id)
                _copy_into(row, record)
                db.add(row)
        logger.info("Created initial record for item %s", item_id)
        return record

    async def delete_record(self, item_id: str) -> bool:
        async with self._locks(item_id):
            async with self._sessionmaker() as db, db.begin():
                await db.execute(delete(ReviewLog).where(ReviewLog.item_id == item_id))
                result = await db.execute(
                    delete(ReviewRecordRow).where(ReviewRecordRow.item_id == item_id)
                )
        self._locks.discard(item_id)
        return result.rowcount > 0

    async def update(
        self, item_id: str, apply: RecordUpdate, now: datetime | None = None
    ) -> ReviewRecord:
        """Atomically apply ``apply`` to the item's record, creating it if missing."""
        async with self._locks(item_id):
            async with self._sessionmaker() as db, db.begin():
                row = await db.get(ReviewRecordRow, item_id, with_for_update=True)
                if row is None:
                    logger.info("No record for item %s, creating initial record", item_id)
                    record = create_initial_record(item_id, now or utcnow())
                    row = ReviewRecordRow(item_id=item_id)
                    db.add(row)
                else:
                    record = _to_record(row)
                updated = apply(record)
                _copy_into(row, updated)
        return updated

    async def append_log(self, entry: ReviewLogEntry) -> None:
        async with self._sessionmaker() as db, db.begin():
            db.add(
                ReviewLog(
                    item_id=entry.item_id,
                    method=entry.method.value,
                    rating=entry.rating.value,
                    effective_rating=entry.effective_rating.value,
                    adjusted_quality=entry.adjusted_quality,
                    response_time_ms=entry.response_time_ms,
                    direction=entry.direction.value if entry.direction else None,
                    interval_before=entry.interval_before,
                    interval_after=entry.interval_after,
                    ease_before=entry.ease_before,
                    ease_after=entry.ease_after,
                    reviewed_at=entry.reviewed_at,
                )
            )

    async def log_entries(self, item_id: str | None = None) -> list[ReviewLogEntry]:
        stmt = select(ReviewLog).order_by(ReviewLog.reviewed_at.asc(), ReviewLog.id.asc())
        if item_id is not None:
            stmt = stmt.where(ReviewLog.item_id == item_id)
        async with self._sessionmaker() as db:
            result = await db.execute(stmt)
            return [_to_entry(row) for row in result.scalars().all()]

    async def method_history(self, item_id: str, limit: int = 10) -> list[ReviewMethod]:
        stmt = (
            select(ReviewLog.method)
            .where(ReviewLog.item_id == item_id)
            .order_by(ReviewLog.reviewed_at.desc(), ReviewLog.id.desc())
            .limit(limit)
        )
        async with self._sessionmaker() as db:
            result = await db.execute(stmt)
            methods = [ReviewMethod(m) for m in result.scalars().all()]
        methods.reverse()  # Most recent last
        return methods

    async def save_session(self, session_id: str, summary: SessionSummary) -> None:
        """Persist the summary of a finished session."""
        async with self._sessionmaker() as db, db.begin():
            db.add(
                StudySession(
                    id=session_id,
                    started_at=summary.started_at,
                    ended_at=summary.ended_at,
                    candidates=summary.candidates,
                    reviewed=summary.reviewed,
                    accuracy_rate=summary.accuracy_rate,
                    aborted=summary.aborted,
                )
            )

    async def count_sessions(self) -> int:
        async with self._sessionmaker() as db:
            return (await db.execute(select(func.count(StudySession.id)))).scalar() or 0
