"""
NoteLens - Edit Tracking API Routes
Edit session lifecycle and edit pattern analysis endpoints
"""

import logging
from typing import Dict, Any
from fastapi import APIRouter, HTTPException, Depends, Body, status
from pydantic import ValidationError

from notelens.config import settings
from notelens.schemas import (
    EditSession, EditSessionStartRequest, EditSessionCompleteRequest,
    EditAnalysisRequest, EditAnalysisResult
)
from notelens.exceptions import SessionNotFoundError, SessionStateError, DeltaLimitExceededError
from notelens.modules.edit_analysis import analyze_edit_session
from notelens.services.session_tracker import EditSessionTracker, get_session_tracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Edit Tracking"])


def _session_error(e: Exception) -> HTTPException:
    """Map session lifecycle errors to HTTP errors"""
    if isinstance(e, SessionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (SessionStateError, DeltaLimitExceededError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.error(f"Edit session operation failed: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Edit session operation failed: {str(e)}"
    )


# =============================================================================
# Stateless Analysis
# =============================================================================

@router.post("/edits/analyze", response_model=EditAnalysisResult)
async def analyze_edits(request: EditAnalysisRequest):
    """
    Analyze an edit session supplied in full

    Returns inferred satisfaction, detected edit patterns, advisory prompt
    suggestions and a priority for the prompt optimizer.
    """
    try:
        return analyze_edit_session(request.session, request.deltas)
    except Exception as e:
        logger.error(f"Edit analysis failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Edit analysis failed: {str(e)}"
        )


@router.post("/edits/analyze/async", status_code=status.HTTP_202_ACCEPTED)
async def analyze_edits_async(session: EditSession):
    """Queue analysis of a completed session on the Celery worker"""
    if not settings.enable_async_analysis:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Asynchronous analysis is disabled"
        )
    try:
        from notelens.tasks.analysis import analyze_edit_session_task

        task = analyze_edit_session_task.delay(session.model_dump(mode="json"))
        logger.info(f"Queued analysis of session {session.session_id} as task {task.id}")
        return {"status": "queued", "task_id": task.id, "session_id": session.session_id}
    except Exception as e:
        logger.error(f"Failed to queue analysis: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to queue analysis: {str(e)}"
        )


# =============================================================================
# Edit Session Lifecycle
# =============================================================================

@router.post("/edit-sessions", response_model=EditSession, status_code=status.HTTP_201_CREATED)
async def start_edit_session(
    request: EditSessionStartRequest,
    tracker: EditSessionTracker = Depends(get_session_tracker)
):
    """Open an edit session for a generated note"""
    try:
        return tracker.start_from_request(request)
    except Exception as e:
        raise _session_error(e)


@router.get("/edit-sessions/{session_id}", response_model=EditSession)
async def get_edit_session(
    session_id: str,
    tracker: EditSessionTracker = Depends(get_session_tracker)
):
    try:
        return tracker.get_session(session_id)
    except Exception as e:
        raise _session_error(e)


@router.post("/edit-sessions/{session_id}/deltas", response_model=EditSession)
async def record_edit_delta(
    session_id: str,
    delta: Dict[str, Any] = Body(...),
    tracker: EditSessionTracker = Depends(get_session_tracker)
):
    """
    Append one edit delta

    The body is an insert, delete or replace record selected by its "kind".
    """
    try:
        return tracker.record_delta(session_id, delta)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid edit delta: {e.error_count()} validation errors"
        )
    except Exception as e:
        raise _session_error(e)


@router.post("/edit-sessions/{session_id}/complete", response_model=EditSession)
async def complete_edit_session(
    session_id: str,
    request: EditSessionCompleteRequest,
    tracker: EditSessionTracker = Depends(get_session_tracker)
):
    """Record the final note text and editor metrics"""
    try:
        return tracker.complete_session(session_id, request.final_content, request.metrics)
    except Exception as e:
        raise _session_error(e)


@router.post("/edit-sessions/{session_id}/analyze", response_model=EditAnalysisResult)
async def analyze_edit_session_endpoint(
    session_id: str,
    tracker: EditSessionTracker = Depends(get_session_tracker)
):
    """Analyze a completed session; repeated calls return the first result"""
    try:
        return tracker.analyze_session(session_id)
    except Exception as e:
        raise _session_error(e)
