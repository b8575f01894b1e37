"""
Live Quiz API Routes
Hosting, joining, answering and results for live quiz sessions
"""
import logging
from functools import lru_cache
from typing import List, NoReturn, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status

from lecture_qa.core.config import settings
from lecture_qa.db.memory_store import InMemoryLectureCatalog, InMemorySessionStore
from lecture_qa.db.session_store import LectureCatalog, SessionStore
from lecture_qa.models.live_quiz import (
    ActiveSessionResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    ErrorResponse,
    JoinSessionRequest,
    JoinSessionResponse,
    SubmitLiveAnswerRequest,
    SubmitLiveAnswerResponse,
)
from lecture_qa.models.live_session import (
    LiveAnswer,
    LiveSession,
    LiveSessionWithLecture,
    SessionResults,
)
from lecture_qa.services.live_session_service import (
    AccessCodeGenerationError,
    AlreadyJoinedError,
    InvalidSessionStateError,
    LiveSessionService,
    LiveSessionServiceError,
    NotFoundError,
)
from lecture_qa.services.results_aggregator import ResultsAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/live")


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

@lru_cache
def get_memory_backend() -> Tuple[InMemorySessionStore, InMemoryLectureCatalog]:
    """Process-wide in-memory store, used when storage_backend is "memory" """
    return InMemorySessionStore(), InMemoryLectureCatalog()


def get_session_store() -> SessionStore:
    """Dependency to get the configured session store"""
    if settings.storage_backend == "memory":
        return get_memory_backend()[0]
    from lecture_qa.db.live_session_db import MongoSessionStore
    from lecture_qa.db.mongodb import get_database
    return MongoSessionStore(get_database(), use_transactions=settings.mongodb_use_transactions)


def get_lecture_catalog() -> LectureCatalog:
    """Dependency to get the configured lecture catalog"""
    if settings.storage_backend == "memory":
        return get_memory_backend()[1]
    from lecture_qa.db.live_session_db import MongoLectureCatalog
    from lecture_qa.db.mongodb import get_database
    return MongoLectureCatalog(get_database())


def get_live_session_service(
    store: SessionStore = Depends(get_session_store),
    lectures: LectureCatalog = Depends(get_lecture_catalog)
) -> LiveSessionService:
    """Dependency to get LiveSessionService instance"""
    return LiveSessionService(store=store, lectures=lectures)


def get_results_aggregator(
    store: SessionStore = Depends(get_session_store)
) -> ResultsAggregator:
    """Dependency to get ResultsAggregator instance"""
    return ResultsAggregator(store)


# ============================================================================
# ERROR MAPPING
# ============================================================================

ERROR_RESPONSES = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    404: {"description": "Session, lecture or question not found", "model": ErrorResponse},
    409: {"description": "Already joined or invalid session state", "model": ErrorResponse},
    500: {"description": "Internal server error", "model": ErrorResponse},
    503: {"description": "No free access code", "model": ErrorResponse},
}


def raise_http_error(e: Exception) -> NoReturn:
    """Translate a service failure into an HTTPException with a distinct error kind"""
    if isinstance(e, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (AlreadyJoinedError, InvalidSessionStateError)):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(e, AccessCodeGenerationError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(e, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_request", "detail": str(e)}
        )
    elif isinstance(e, LiveSessionServiceError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        logger.error(f"Unexpected live quiz error: {e}", exc_info=e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "internal_error", "detail": "An unexpected error occurred"}
        )

    logger.warning(f"Live quiz request failed ({e.error_code}): {e}")
    raise HTTPException(status_code=status_code, detail={"error": e.error_code, "detail": str(e)})


# ============================================================================
# HOST ENDPOINTS
# ============================================================================

@router.post(
    "/sessions",
    response_model=CreateSessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Create a live quiz session",
    description="""
    Create a session for a lecture. The session starts in `waiting` status
    with a fresh 6-character access code that participants use to join.
    """
)
async def create_live_session(
    request: CreateSessionRequest,
    service: LiveSessionService = Depends(get_live_session_service)
) -> CreateSessionResponse:
    try:
        session = await service.create_session(
            title=request.title,
            lecture_id=request.lectureId,
            host_id=request.hostId
        )
        return CreateSessionResponse(sessionId=session.sessionId, accessCode=session.accessCode)
    except Exception as e:
        raise_http_error(e)


@router.post(
    "/sessions/{session_id}/start",
    response_model=LiveSession,
    responses=ERROR_RESPONSES,
    summary="Start a waiting session"
)
async def start_live_session(
    session_id: str,
    service: LiveSessionService = Depends(get_live_session_service)
) -> LiveSession:
    try:
        return await service.start_session(session_id)
    except Exception as e:
        raise_http_error(e)


@router.post(
    "/sessions/{session_id}/next",
    response_model=LiveSession,
    responses=ERROR_RESPONSES,
    summary="Advance to the next question",
    description="""
    Moves the session to the next question of its lecture. Advancing past
    the last question ends the session; the response then has
    `status: "ended"`.
    """
)
async def advance_live_session(
    session_id: str,
    service: LiveSessionService = Depends(get_live_session_service)
) -> LiveSession:
    try:
        return await service.next_question(session_id)
    except Exception as e:
        raise_http_error(e)


@router.post(
    "/sessions/{session_id}/end",
    response_model=LiveSession,
    responses=ERROR_RESPONSES,
    summary="End a session early"
)
async def end_live_session(
    session_id: str,
    service: LiveSessionService = Depends(get_live_session_service)
) -> LiveSession:
    try:
        return await service.end_session(session_id)
    except Exception as e:
        raise_http_error(e)


@router.get(
    "/hosts/{host_id}/sessions",
    response_model=List[LiveSessionWithLecture],
    responses=ERROR_RESPONSES,
    summary="Recent sessions of a host"
)
async def list_host_sessions(
    host_id: str,
    service: LiveSessionService = Depends(get_live_session_service)
) -> List[LiveSessionWithLecture]:
    try:
        return await service.get_host_sessions(host_id)
    except Exception as e:
        raise_http_error(e)


# ============================================================================
# PARTICIPANT ENDPOINTS
# ============================================================================

@router.post(
    "/sessions/join",
    response_model=JoinSessionResponse,
    responses=ERROR_RESPONSES,
    summary="Join a session by access code"
)
async def join_live_session(
    request: JoinSessionRequest,
    service: LiveSessionService = Depends(get_live_session_service)
) -> JoinSessionResponse:
    try:
        session_id = await service.join_session(
            access_code=request.accessCode,
            participant_id=request.participantId,
            participant_name=request.participantName
        )
        return JoinSessionResponse(sessionId=session_id)
    except Exception as e:
        raise_http_error(e)


@router.post(
    "/sessions/{session_id}/answers",
    response_model=SubmitLiveAnswerResponse,
    responses=ERROR_RESPONSES,
    summary="Submit an answer",
    description="""
    Scores the answer (trimmed, case-insensitive match) and records it.
    Only correctness is returned; scores and ranks are read from the
    session or results endpoints.
    """
)
async def submit_live_answer(
    session_id: str,
    request: SubmitLiveAnswerRequest,
    service: LiveSessionService = Depends(get_live_session_service)
) -> SubmitLiveAnswerResponse:
    try:
        result = await service.submit_live_answer(
            session_id=session_id,
            participant_id=request.participantId,
            question_index=request.questionIndex,
            answer_text=request.answer,
            time_spent=request.timeSpent
        )
        return SubmitLiveAnswerResponse(**result)
    except Exception as e:
        raise_http_error(e)


# ============================================================================
# READ ENDPOINTS
# ============================================================================

@router.get(
    "/sessions/{session_id}",
    response_model=Optional[ActiveSessionResponse],
    responses={500: ERROR_RESPONSES[500]},
    summary="Session with lecture and current question",
    description="""
    Returns `null` when the session does not exist yet. The current
    question's answer is only included with `includeAnswer=true`.
    """
)
async def get_live_session(
    session_id: str,
    include_answer: bool = Query(default=False, alias="includeAnswer"),
    service: LiveSessionService = Depends(get_live_session_service)
) -> Optional[ActiveSessionResponse]:
    try:
        detail = await service.get_active_session(session_id)
    except Exception as e:
        raise_http_error(e)

    if detail is None:
        return None
    return ActiveSessionResponse.from_detail(detail, include_answer=include_answer)


@router.get(
    "/sessions/{session_id}/answers",
    response_model=List[LiveAnswer],
    responses={500: ERROR_RESPONSES[500]},
    summary="Answers submitted for one question"
)
async def list_question_answers(
    session_id: str,
    question_index: int = Query(..., ge=0, alias="questionIndex"),
    aggregator: ResultsAggregator = Depends(get_results_aggregator)
) -> List[LiveAnswer]:
    try:
        return await aggregator.get_current_question_answers(session_id, question_index)
    except Exception as e:
        raise_http_error(e)


@router.get(
    "/sessions/{session_id}/results",
    response_model=Optional[SessionResults],
    responses={500: ERROR_RESPONSES[500]},
    summary="Participant ranking",
    description="Returns `null` when the session does not exist."
)
async def get_live_session_results(
    session_id: str,
    aggregator: ResultsAggregator = Depends(get_results_aggregator)
) -> Optional[SessionResults]:
    try:
        return await aggregator.get_session_results(session_id)
    except Exception as e:
        raise_http_error(e)
