"""API routes for item statistics and dashboard data."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.api.schemas import ItemStatsResponse, MethodPerformanceResponse, OverviewResponse
from backend.config import utcnow
from backend.database import get_store
from backend.srs.method_selector import aggregate_performance
from backend.srs.methods import ALL_METHODS
from backend.srs.sm2 import Direction, format_interval, format_next_review, is_due
from backend.srs.sql_store import SqlRecordStore
from backend.srs.status import ItemStatus, classify_status, directional_accuracy, record_accuracy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/items/{item_id}", response_model=ItemStatsResponse)
async def get_item_stats(
    item_id: str,
    store: SqlRecordStore = Depends(get_store),
) -> ItemStatsResponse:
    """Get the scheduling state and derived statistics of one item."""
    record = await store.get_record(item_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Item not found")

    now = utcnow()
    return ItemStatsResponse(
        item_id=record.item_id,
        ease_factor=record.ease_factor,
        interval=record.interval,
        repetition=record.repetition,
        last_review_date=record.last_review_date,
        next_review_date=record.next_review_date,
        total_reviews=record.total_reviews,
        correct_count=record.correct_count,
        incorrect_count=record.incorrect_count,
        status=classify_status(record),
        accuracy=record_accuracy(record),
        forward_accuracy=directional_accuracy(record, Direction.FORWARD),
        reverse_accuracy=directional_accuracy(record, Direction.REVERSE),
        interval_label=format_interval(record.interval),
        next_review_label=(
            format_next_review(record.next_review_date, now) if record.next_review_date else None
        ),
    )


@router.get("/methods", response_model=list[MethodPerformanceResponse])
async def get_method_performance(
    store: SqlRecordStore = Depends(get_store),
) -> list[MethodPerformanceResponse]:
    """Get the learner's accuracy per review method across all items."""
    performance = aggregate_performance(await store.log_entries())
    return [
        MethodPerformanceResponse(
            method=method,
            attempts=performance[method].attempts,
            correct=performance[method].correct,
            accuracy=round(performance[method].accuracy, 3),
            last_attempt=performance[method].last_attempt,
        )
        for method in ALL_METHODS
        if method in performance
    ]


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    store: SqlRecordStore = Depends(get_store),
) -> OverviewResponse:
    """Get overall statistics across all items."""
    now = utcnow()
    records = await store.all_records()
    statuses = [classify_status(r) for r in records]

    return OverviewResponse(
        total_items=len(records),
        items_due=sum(1 for r in records if is_due(r, now)),
        items_new=statuses.count(ItemStatus.NEW),
        items_learning=statuses.count(ItemStatus.LEARNING),
        items_mastered=statuses.count(ItemStatus.MASTERED),
        total_reviews=sum(r.total_reviews for r in records),
        sessions_finished=await store.count_sessions(),
    )
