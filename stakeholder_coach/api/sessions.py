"""
Interview Session API endpoints.

REST API for running practice stakeholder meetings.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from stakeholder_coach.core.exceptions import (
    ConcurrentTurnError,
    OracleUnavailableError,
    SessionClosedError,
    SessionNotFoundError,
    StageTransitionError,
    StakeholderCoachError,
    UnknownPersonaError,
    UnknownScenarioError,
    UnknownStageError,
)
from stakeholder_coach.models.session import (
    AcknowledgeRequest,
    AcknowledgeResponse,
    ContextMemory,
    InterviewSession,
    SessionDebrief,
    SessionListItem,
    SessionStatus,
    StageTransitionResponse,
    StartSessionRequest,
    SubmitQuestionRequest,
    TurnResult,
)
from stakeholder_coach.services.session_orchestrator import get_session_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


def _http_error(error: Exception) -> HTTPException:
    """Map a domain error onto an HTTP error."""
    if isinstance(error, (SessionNotFoundError, UnknownScenarioError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, ConcurrentTurnError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(error),
            headers={"Retry-After": str(error.retry_after_seconds)},
        )
    if isinstance(error, StageTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, SessionClosedError):
        return HTTPException(status_code=status.HTTP_410_GONE, detail=str(error))
    if isinstance(error, OracleUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    if isinstance(error, (UnknownStageError, UnknownPersonaError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    logger.error(f"Unhandled session error: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Session operation failed: {error}",
    )


@router.post("", response_model=InterviewSession, status_code=status.HTTP_201_CREATED)
async def start_session(request: StartSessionRequest):
    """
    Start a new practice meeting.

    Fails with 503 when the judgment oracle cannot be reached.
    """
    orchestrator = get_session_orchestrator()
    try:
        return await orchestrator.start_session(
            selected_persona_id=request.selected_persona_id,
            scenario_id=request.scenario_id,
            active_persona_ids=request.active_persona_ids,
            user_id=request.user_id,
        )
    except (StakeholderCoachError, ValueError) as e:
        raise _http_error(e)


@router.get("", response_model=List[SessionListItem])
async def list_sessions(
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
):
    """List sessions, most recently active first."""
    orchestrator = get_session_orchestrator()
    sessions = await orchestrator.list_sessions(status=status_filter, limit=limit)
    return [
        SessionListItem(
            id=s.id,
            scenario_id=s.scenario_id,
            status=s.status,
            current_stage=s.current_stage,
            turns=len(s.turns),
            information_layer=s.context_memory.information_layer,
            created_at=s.created_at,
            last_activity_at=s.last_activity_at,
        )
        for s in sessions
    ]


@router.get("/{session_id}", response_model=InterviewSession)
async def get_session(session_id: str):
    """Get full session details including every turn."""
    orchestrator = get_session_orchestrator()
    try:
        return await orchestrator.get_session(session_id)
    except SessionNotFoundError as e:
        raise _http_error(e)


@router.get("/{session_id}/context", response_model=ContextMemory)
async def get_context(session_id: str):
    """Get the session's context memory."""
    orchestrator = get_session_orchestrator()
    try:
        return await orchestrator.get_context(session_id)
    except SessionNotFoundError as e:
        raise _http_error(e)


@router.post("/{session_id}/questions", response_model=TurnResult)
async def submit_question(session_id: str, request: SubmitQuestionRequest):
    """
    Ask the stakeholders a question.

    Returns the evaluation, coaching and (unless the question was RED)
    the stakeholder's reply.
    """
    orchestrator = get_session_orchestrator()
    try:
        return await orchestrator.submit_question(session_id, request.question)
    except (StakeholderCoachError, ValueError) as e:
        raise _http_error(e)


@router.post("/{session_id}/acknowledge", response_model=AcknowledgeResponse)
async def acknowledge(session_id: str, request: Optional[AcknowledgeRequest] = None):
    """Acknowledge coaching, optionally submitting the suggested rewrite."""
    orchestrator = get_session_orchestrator()
    use_rewrite = request.use_rewrite if request else False
    try:
        return await orchestrator.acknowledge(session_id, use_rewrite=use_rewrite)
    except (StakeholderCoachError, ValueError) as e:
        raise _http_error(e)


@router.post("/{session_id}/advance", response_model=StageTransitionResponse)
async def advance_stage(session_id: str):
    """Move to the next interview stage once the current milestone is met."""
    orchestrator = get_session_orchestrator()
    try:
        return await orchestrator.advance_stage(session_id)
    except (StakeholderCoachError, ValueError) as e:
        raise _http_error(e)


@router.post("/{session_id}/end", response_model=SessionDebrief)
async def end_session(session_id: str):
    """End the meeting and get the debrief."""
    orchestrator = get_session_orchestrator()
    try:
        return await orchestrator.end_session(session_id)
    except (StakeholderCoachError, ValueError) as e:
        raise _http_error(e)
