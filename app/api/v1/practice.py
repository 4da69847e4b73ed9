# ============================================================================
# Practice Session Endpoints
# ============================================================================
from fastapi import APIRouter, Depends, status
from typing import Optional
import logging

from app.api.deps import get_learner_id, get_owned_session_id, get_practice_service
from app.models.practice import PracticeSession
from app.schemas.practice import (
    SessionCreate, SessionResponse, QuestionResponse, HintRequest, HintResponse,
    RunCodeRequest, RunCodeResponse, SubmitSolutionRequest, SubmitSolutionResponse
)
from app.services.practice.session_service import PracticeSessionService

router = APIRouter(prefix="/practice", tags=["practice"])
logger = logging.getLogger(__name__)

def _session_response(session: PracticeSession, max_hints: int) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        learner_id=session.learner_id,
        course_id=session.course_id,
        questions=[QuestionResponse.from_question(q, max_hints) for q in session.questions],
        created_at=session.created_at,
        updated_at=session.updated_at,
    )

@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: SessionCreate,
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_practice_service)
):
    """Start a practice session for the calling learner"""
    session = await service.initialize_session({
        **request.model_dump(),
        "learner_id": learner_id,
    })
    return _session_response(session, service.max_hints)

@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_practice_service)
):
    session = await service.get_session(session_id, learner_id)
    return _session_response(session, service.max_hints)

@router.post("/sessions/{session_id}/questions/{question_id}/hint", response_model=HintResponse)
async def request_hint(
    question_id: str,
    request: Optional[HintRequest] = None,
    session_id: str = Depends(get_owned_session_id),
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_practice_service)
):
    """Get the next hint; 429 once the hint limit is reached"""
    return await service.request_hint(
        session_id, question_id, learner_id=learner_id, context=request.context if request else None
    )

@router.post("/sessions/{session_id}/questions/{question_id}/run", response_model=RunCodeResponse)
async def run_code(
    question_id: str,
    request: RunCodeRequest,
    session_id: str = Depends(get_owned_session_id),
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_practice_service)
):
    """Run code against ad hoc stdin without recording a submission"""
    return await service.run_code(
        session_id,
        question_id,
        request.code,
        language=request.language,
        stdin=request.stdin,
        learner_id=learner_id
    )

@router.post("/sessions/{session_id}/questions/{question_id}/submit", response_model=SubmitSolutionResponse)
async def submit_solution(
    question_id: str,
    request: SubmitSolutionRequest,
    session_id: str = Depends(get_owned_session_id),
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_practice_service)
):
    return await service.submit_solution(
        session_id,
        question_id,
        request.code,
        language=request.language,
        learner_id=learner_id,
        mode=request.mode
    )
