# ============================================================================
# API Dependencies
# ============================================================================
from typing import Optional
from fastapi import Depends, Header, HTTPException, status, Request
import logging

from app.config import get_settings
from app.services.judge.client import JudgeClient
from app.services.judge.grading import GradingEngine
from app.services.practice.session_service import PracticeSessionService

settings = get_settings()
logger = logging.getLogger(__name__)


# ============================================================================
# Service Dependencies
# ============================================================================
def _from_state(request: Request, name: str):
    """
    Get a component from app state.

    Components are built once in the application lifespan and shared by
    every request.
    """
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name.replace('_', ' ').capitalize()} not initialized"
        )
    return component


async def get_judge_client(request: Request) -> JudgeClient:
    return _from_state(request, "judge_client")


async def get_grading_engine(request: Request) -> GradingEngine:
    return _from_state(request, "grading_engine")


async def get_practice_service(request: Request) -> PracticeSessionService:
    return _from_state(request, "practice_service")


# ============================================================================
# Caller Identity
# ============================================================================
async def get_learner_id(
    x_learner_id: Optional[str] = Header(None, alias="X-Learner-Id")
) -> str:
    """Identify the calling learner; authentication happens upstream"""
    if not x_learner_id or not x_learner_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Learner-Id header"
        )
    return x_learner_id.strip()


async def get_owned_session_id(
    session_id: str,
    learner_id: str = Depends(get_learner_id),
    service: PracticeSessionService = Depends(get_practice_service)
) -> str:
    """Ensure the session exists and belongs to the caller before any mutation"""
    await service.get_session(session_id, learner_id)
    return session_id
