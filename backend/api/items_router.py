"""API routes for adding and removing learnable items."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from backend.api.schemas import RecordResponse
from backend.database import get_store
from backend.srs.sm2 import ReviewRecord
from backend.srs.sql_store import SqlRecordStore
from backend.srs.status import classify_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/items", tags=["items"])


def record_response(record: ReviewRecord) -> RecordResponse:
    return RecordResponse(
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
    )


@router.post("/{item_id}", response_model=RecordResponse, status_code=201)
async def add_item(
    item_id: str,
    store: SqlRecordStore = Depends(get_store),
) -> RecordResponse:
    """Create the initial scheduling record for an item. It is due immediately."""
    record = await store.create_initial_record(item_id)
    return record_response(record)


@router.delete("/{item_id}", status_code=204)
async def delete_item(
    item_id: str,
    store: SqlRecordStore = Depends(get_store),
) -> Response:
    """Delete an item's record and review history."""
    if not await store.delete_record(item_id):
        raise HTTPException(status_code=404, detail="Item not found")
    logger.info("Deleted item %s", item_id)
    return Response(status_code=204)
