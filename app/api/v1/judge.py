# ============================================================================
# Code Execution Endpoints
# ============================================================================
from fastapi import APIRouter, Depends
import logging

from app.api.deps import get_judge_client, get_grading_engine
from app.schemas.judge import (
    ExecuteRequest, ExecuteResponse, TestCasesRequest, GradingResponse,
    HealthResponse, LanguagesResponse
)
from app.services.judge.client import JudgeClient
from app.services.judge.grading import GradingEngine
from app.services.judge.harness import canonical_text
from app.services.judge.models import GradingMode

router = APIRouter(prefix="/judge", tags=["judge"])
logger = logging.getLogger(__name__)

@router.get("/health", response_model=HealthResponse)
async def judge_health(judge: JudgeClient = Depends(get_judge_client)):
    """Probe the execution service"""
    available = await judge.check_availability()
    return {"available": available}

@router.get("/languages", response_model=LanguagesResponse)
async def list_languages(judge: JudgeClient = Depends(get_judge_client)):
    return {"languages": judge.supported_languages()}

@router.post("/execute", response_model=ExecuteResponse)
async def execute_code(
    request: ExecuteRequest,
    judge: JudgeClient = Depends(get_judge_client),
    grading: GradingEngine = Depends(get_grading_engine)
):
    """Run code once with optional stdin and expected output"""
    grading.validate(request.code, request.language)
    expected = None
    if request.expected_output is not None:
        expected = canonical_text(request.expected_output)

    result = await judge.execute_single(
        request.code,
        request.language,
        stdin=request.stdin,
        expected_output=expected
    )
    return result.to_dict()

@router.post("/test-cases", response_model=GradingResponse)
async def run_test_cases(
    request: TestCasesRequest,
    grading: GradingEngine = Depends(get_grading_engine)
):
    """Grade code against test cases (batch unless another mode is asked for)"""
    report = await grading.grade(
        request.code, request.language, request.test_cases, request.mode
    )
    return report.to_dict(reveal_hidden=True)

@router.post("/test-cases-sequential", response_model=GradingResponse)
async def run_test_cases_sequential(
    request: TestCasesRequest,
    grading: GradingEngine = Depends(get_grading_engine)
):
    report = await grading.grade(
        request.code, request.language, request.test_cases, GradingMode.SEQUENTIAL
    )
    return report.to_dict(reveal_hidden=True)
