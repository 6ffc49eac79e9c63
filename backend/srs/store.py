"""Record store contract and an in-memory implementation.

The scheduling engine reads and writes ReviewRecords through this narrow
interface. A read-modify-write of one item's record must be atomic, so the
store exposes ``update`` (get-or-create, apply, put) rather than leaving
callers to pair ``get_record`` and ``put_record`` themselves.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from backend.config import utcnow
from backend.srs.methods import ReviewMethod
from backend.srs.sm2 import Direction, Rating, ReviewRecord, create_initial_record

logger = logging.getLogger(__name__)

RecordUpdate = Callable[[ReviewRecord], ReviewRecord]


@dataclass(frozen=True)
class ReviewLogEntry:
    """One applied review outcome."""

    item_id: str
    method: ReviewMethod
    rating: Rating  # Self-reported
    effective_rating: Rating  # Fed to the scheduler
    adjusted_quality: float
    response_time_ms: int
    reviewed_at: datetime
    direction: Direction | None = None
    interval_before: int = 0
    interval_after: int = 0
    ease_before: float = 0.0
    ease_after: float = 0.0

    @property
    def correct(self) -> bool:
        return self.effective_rating is not Rating.FORGOT


class RecordStore(Protocol):
    """Persistence collaborator consumed by the review engine."""

    async def get_record(self, item_id: str) -> ReviewRecord | None: ...

    async def get_due_records(self, now: datetime) -> list[ReviewRecord]: ...

    async def all_records(self) -> list[ReviewRecord]: ...

    async def put_record(self, record: ReviewRecord) -> None: ...

    async def create_initial_record(self, item_id: str, now: datetime | None = None) -> ReviewRecord: ...

    async def delete_record(self, item_id: str) -> bool: ...

    async def update(
        self, item_id: str, apply: RecordUpdate, now: datetime | None = None
    ) -> ReviewRecord: ...

    async def append_log(self, entry: ReviewLogEntry) -> None: ...

    async def log_entries(self, item_id: str | None = None) -> list[ReviewLogEntry]: ...

    async def method_history(self, item_id: str, limit: int = 10) -> list[ReviewMethod]: ...


class ItemLocks:
    """One asyncio.Lock per item id, serializing writers of the same record."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __call__(self, item_id: str) -> asyncio.Lock:
        return self._locks[item_id]

    def discard(self, item_id: str) -> None:
        lock = self._locks.get(item_id)
        if lock is not None and not lock.locked():
            del self._locks[item_id]


class InMemoryRecordStore:
    """Dict-backed RecordStore, for tests and single-process use."""

    def __init__(self) -> None:
        self._records: dict[str, ReviewRecord] = {}
        self._log: list[ReviewLogEntry] = []
        self._locks = ItemLocks()

    async def get_record(self, item_id: str) -> ReviewRecord | None:
        return self._records.get(item_id)

    async def get_due_records(self, now: datetime) -> list[ReviewRecord]:
        due = [
            r
            for r in self._records.values()
            if r.next_review_date is None or r.next_review_date <= now
        ]
        # Most overdue first
        return sorted(due, key=lambda r: r.next_review_date or datetime.min)

    async def all_records(self) -> list[ReviewRecord]:
        return list(self._records.values())

    async def put_record(self, record: ReviewRecord) -> None:
        self._records[record.item_id] = record

    async def create_initial_record(self, item_id: str, now: datetime | None = None) -> ReviewRecord:
        async with self._locks(item_id):
            existing = self._records.get(item_id)
            if existing is not None:
                return existing
            record = create_initial_record(item_id, now or utcnow())
            self._records[item_id] = record
            return record

    async def delete_record(self, item_id: str) -> bool:
        async with self._locks(item_id):
            removed = self._records.pop(item_id, None) is not None
            self._log = [e for e in self._log if e.item_id != item_id]
        self._locks.discard(item_id)
        return removed

    async def update(
        self, item_id: str, apply: RecordUpdate, now: datetime | None = None
    ) -> ReviewRecord:
        """Atomically apply ``apply`` to the item's record, creating it if missing."""
        async with self._locks(item_id):
            record = self._records.get(item_id)
            if record is None:
                logger.info("No record for item %s, creating initial record", item_id)
                record = create_initial_record(item_id, now or utcnow())
            updated = apply(record)
            self._records[item_id] = updated
            return updated

    async def append_log(self, entry: ReviewLogEntry) -> None:
        self._log.append(entry)

    async def log_entries(self, item_id: str | None = None) -> list[ReviewLogEntry]:
        if item_id is None:
            return list(self._log)
        return [e for e in self._log if e.item_id == item_id]

    async def method_history(self, item_id: str, limit: int = 10) -> list[ReviewMethod]:
        entries = [e for e in self._log if e.item_id == item_id]
        entries.sort(key=lambda e: e.reviewed_at)
        return [e.method for e in entries[-limit:]]
