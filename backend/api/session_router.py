"""API routes for review sessions."""

import logging
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException

from backend.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    NextItemResponse,
    SessionProgressResponse,
    SessionStartRequest,
    SessionStartResponse,
    SessionSummaryResponse,
)
from backend.config import settings, utcnow
from backend.database import get_store
from backend.srs.errors import InvalidReviewInput, SessionStateError, UnknownSessionItemError
from backend.srs.method_selector import MethodSelectorConfig, aggregate_performance, select_method
from backend.srs.queue import SessionConfig, build_queue
from backend.srs.session import ReviewSession
from backend.srs.sm2 import format_next_review
from backend.srs.sql_store import SqlRecordStore
from backend.srs.status import classify_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# In-memory session store (for MVP; move to Redis for production)
_active_sessions: dict[str, ReviewSession] = {}
_saved_sessions: set[str] = set()


def _purge_expired() -> None:
    """Drop sessions older than the configured TTL."""
    cutoff = utcnow() - timedelta(seconds=settings.session_ttl_seconds)
    expired = [
        sid
        for sid, s in _active_sessions.items()
        if s.started_at is not None and s.started_at < cutoff
    ]
    for sid in expired:
        logger.info("Expiring session %s", sid)
        _active_sessions.pop(sid, None)
        _saved_sessions.discard(sid)


def _get_active(session_id: str) -> ReviewSession:
    review_session = _active_sessions.get(session_id)
    if not review_session:
        raise HTTPException(status_code=404, detail="Session not found")
    return review_session


async def _save_if_finished(
    store: SqlRecordStore, session_id: str, review_session: ReviewSession
) -> None:
    """Persist the session summary once, when the session has ended."""
    if review_session.summary is None or session_id in _saved_sessions:
        return
    await store.save_session(session_id, review_session.summary)
    _saved_sessions.add(session_id)


def _summary_response(review_session: ReviewSession) -> SessionSummaryResponse:
    s = review_session.summary
    if s is None:
        raise HTTPException(status_code=409, detail="Session is still in progress")
    return SessionSummaryResponse(
        status=review_session.status.value,
        candidates=s.candidates,
        reviewed=s.reviewed,
        correct=s.correct,
        accuracy_rate=round(s.accuracy_rate, 3),
        rating_counts=s.rating_counts,
        effective_rating_counts=s.effective_rating_counts,
        average_response_ms=s.average_response_ms,
        duration_seconds=s.duration_seconds,
        aborted=s.aborted,
    )


@router.post("/start", response_model=SessionStartResponse)
async def session_start(
    request: SessionStartRequest,
    store: SqlRecordStore = Depends(get_store),
) -> SessionStartResponse:
    """Start a new review session over the currently due items."""
    _purge_expired()
    config = SessionConfig(
        session_size=request.session_size or settings.session_size,
        randomize=settings.randomize_sessions if request.randomize is None else request.randomize,
        direction=request.direction,
        practice_mode=request.practice_mode,
        status_filter=frozenset(request.status_filter) if request.status_filter else None,
        weak_items_only=request.weak_items_only,
        weak_items_threshold=request.weak_items_threshold,
    )
    queue = await build_queue(store, config)

    if queue.total == 0:
        raise HTTPException(status_code=404, detail="No items available for review")

    review_session = ReviewSession()
    rng = review_session.rng if config.randomize else None
    review_session.start(queue.item_ids(config.session_size, rng), config, shuffle=False)
    session_id = str(uuid.uuid4())
    _active_sessions[session_id] = review_session

    candidates = set(review_session.candidates)
    return SessionStartResponse(
        session_id=session_id,
        total_items=len(review_session.candidates),
        due_items=sum(1 for r in queue.due_records if r.item_id in candidates),
        new_items=sum(1 for r in queue.new_records if r.item_id in candidates),
    )


@router.get("/next/{session_id}", response_model=NextItemResponse)
async def session_next(
    session_id: str,
    store: SqlRecordStore = Depends(get_store),
) -> NextItemResponse:
    """Get the next item in the session and the method to present it with."""
    review_session = _get_active(session_id)

    item_id = review_session.current_item
    if item_id is None:
        raise HTTPException(status_code=410, detail="Session is complete")

    record = await store.get_record(item_id)
    if record is None:
        record = await store.create_initial_record(item_id)

    history = await store.method_history(item_id)
    performance = aggregate_performance(await store.log_entries(item_id))
    selection = select_method(
        history,
        performance,
        MethodSelectorConfig.from_settings(),
        rng=review_session.rng,
    )
    review_session.assign_method(item_id, selection.method)

    return NextItemResponse(
        item_id=item_id,
        method=selection.method,
        reason=selection.reason,
        direction=review_session.direction_for(item_id),
        ease_factor=record.ease_factor,
        interval=record.interval,
        repetition=record.repetition,
        status=classify_status(record),
        remaining=review_session.remaining,
        progress=review_session.progress,
    )


@router.post("/answer/{session_id}", response_model=AnswerResponse)
async def session_answer(
    session_id: str,
    request: AnswerRequest,
    store: SqlRecordStore = Depends(get_store),
) -> AnswerResponse:
    """Submit the learner's answer for an item."""
    review_session = _get_active(session_id)

    try:
        outcome = await review_session.submit(
            store,
            item_id=request.item_id,
            rating=request.rating,
            response_time_ms=request.response_time_ms,
            method=request.method,
            direction=request.direction,
        )
    except UnknownSessionItemError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except InvalidReviewInput as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    await _save_if_finished(store, session_id, review_session)

    if outcome is None or outcome.record is None:
        return AnswerResponse(
            item_id=request.item_id,
            accepted=False,
            remaining=review_session.remaining,
            progress=review_session.progress,
            session_complete=review_session.is_finished,
        )

    record = outcome.record
    return AnswerResponse(
        item_id=outcome.item_id,
        accepted=True,
        adjusted_quality=outcome.adjusted_quality,
        effective_rating=outcome.effective_rating,
        interval=record.interval,
        ease_factor=record.ease_factor,
        next_review=record.next_review_date,
        next_review_label=format_next_review(record.next_review_date, outcome.recorded_at),
        status=classify_status(record),
        remaining=review_session.remaining,
        progress=review_session.progress,
        session_complete=review_session.is_finished,
    )


@router.get("/progress/{session_id}", response_model=SessionProgressResponse)
async def session_progress(session_id: str) -> SessionProgressResponse:
    """Get progress through the current session."""
    review_session = _get_active(session_id)
    return SessionProgressResponse(
        status=review_session.status.value,
        reviewed=len(review_session.outcomes),
        total=len(review_session.candidates),
        remaining=review_session.remaining,
        progress=review_session.progress,
    )


@router.get("/stats/{session_id}", response_model=SessionSummaryResponse)
async def session_stats(session_id: str) -> SessionSummaryResponse:
    """Get the summary of a finished session."""
    return _summary_response(_get_active(session_id))


@router.post("/abort/{session_id}", response_model=SessionSummaryResponse)
async def session_abort(
    session_id: str,
    store: SqlRecordStore = Depends(get_store),
) -> SessionSummaryResponse:
    """Abort a session. Answers submitted so far are kept."""
    review_session = _get_active(session_id)
    try:
        review_session.abort()
        await review_session.settle()
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    await _save_if_finished(store, session_id, review_session)
    return _summary_response(review_session)


@router.post("/end/{session_id}", response_model=SessionSummaryResponse)
async def session_end(
    session_id: str,
    store: SqlRecordStore = Depends(get_store),
) -> SessionSummaryResponse:
    """End a session and clean up, aborting it if still in progress."""
    review_session = _get_active(session_id)
    if not review_session.is_finished:
        review_session.abort()
        await review_session.settle()

    await _save_if_finished(store, session_id, review_session)
    _active_sessions.pop(session_id, None)
    _saved_sessions.discard(session_id)
    return _summary_response(review_session)
