# ============================================================================
# Test Configuration & Fixtures
# ============================================================================
import pytest
import json
import re
from collections import defaultdict
from typing import AsyncGenerator, Any, Callable, Dict, List
import httpx
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, MagicMock

from app.main import app
from app.api.deps import get_judge_client, get_grading_engine, get_practice_service
from app.config import Settings
from app.models.practice import PracticeSession, Question, TestCase
from app.services.judge.client import JudgeClient
from app.services.judge.grading import GradingEngine
from app.services.practice.repository import InMemorySessionRepository
from app.services.practice.session_service import PracticeSessionService


# ============================================================================
# Fake Judge0 Service
# ============================================================================
def echo_runner(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Program that prints its stdin"""
    return {"status_id": 3, "stdout": payload.get("stdin") or ""}


def add_runner(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Stands in for running an `add(a, b)` solution.

    Harnessed sources print one RESULT line per call; raw sources read
    "[a, b]" from stdin.
    """
    calls = re.findall(r"add\((-?\d+), (-?\d+)\)", payload["source_code"])
    if "RESULT: " in payload["source_code"] and calls:
        stdout = "".join(f"RESULT: {int(a) + int(b)}\n" for a, b in calls)
        return {"status_id": 3, "stdout": stdout}
    values = json.loads(payload.get("stdin") or "[0, 0]")
    return {"status_id": 3, "stdout": f"{sum(values)}\n"}


class FakeJudge0:
    """In-process Judge0 served through httpx.MockTransport"""

    def __init__(self, runner: Callable[[Dict[str, Any]], Dict[str, Any]] = echo_runner):
        self.runner = runner
        self.submissions: Dict[str, Dict[str, Any]] = {}
        self.poll_counts: Dict[str, int] = defaultdict(int)
        self.requests: List[httpx.Request] = []
        self.completed: List[str] = []  # tokens in the order their results were served
        self.pending_polls = 0          # polls answered "Processing" before the result
        self.token_pending: Dict[str, int] = {}  # per-token override of pending_polls
        self.failing_tokens = set()     # tokens whose polls always fail with 500
        self.raw_bodies: Dict[str, Any] = {}     # token -> JSON body returned as-is on poll
        self.batch_status = 201         # >= 400 refuses /submissions/batch
        self.submit_failures = 0        # leading POST /submissions answered with 503
        self.languages_status = 200
        self.offline = False

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def _create(self, payload: Dict[str, Any]) -> str:
        token = f"token-{len(self.submissions) + 1}"
        self.submissions[token] = payload
        return token

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if request.method == "GET" and path == "/languages":
            return httpx.Response(self.languages_status, json=[{"id": 71, "name": "Python"}])

        if request.method == "POST" and path == "/submissions/batch":
            if self.batch_status >= 400:
                return httpx.Response(self.batch_status, json={"error": "batch disabled"})
            body = json.loads(request.content)
            return httpx.Response(201, json=[{"token": self._create(p)} for p in body["submissions"]])

        if request.method == "POST" and path == "/submissions":
            if self.submit_failures > 0:
                self.submit_failures -= 1
                return httpx.Response(503, json={"error": "busy"})
            return httpx.Response(201, json={"token": self._create(json.loads(request.content))})

        if request.method == "GET" and path.startswith("/submissions/"):
            token = path.rsplit("/", 1)[-1]
            self.poll_counts[token] += 1
            if token in self.failing_tokens:
                return httpx.Response(500, json={"error": "internal"})
            if token in self.raw_bodies:
                return httpx.Response(200, json=self.raw_bodies[token])
            if self.poll_counts[token] <= self.token_pending.get(token, self.pending_polls):
                return httpx.Response(200, json={"token": token, "status": {"id": 2, "description": "Processing"}})
            outcome = self.runner(self.submissions[token])
            self.completed.append(token)
            return httpx.Response(200, json={
                "token": token,
                "status": {"id": outcome.get("status_id", 3)},
                "stdout": outcome.get("stdout", ""),
                "stderr": outcome.get("stderr"),
                "compile_output": outcome.get("compile_output"),
                "time": "0.01",
                "memory": 1024,
            })

        return httpx.Response(404, json={"error": "not found"})


# ============================================================================
# Fixtures
# ============================================================================
@pytest.fixture
def settings() -> Settings:
    """Settings tuned for fast tests"""
    return Settings(
        JUDGE0_API_URL="https://judge0.test",
        JUDGE0_API_KEY="test-key",
        JUDGE0_POLL_INTERVAL=0,
        JUDGE0_MAX_POLL_ATTEMPTS=5,
        JUDGE0_SUBMIT_RETRIES=2,
        JUDGE0_RETRY_DELAY=0,
        JUDGE0_POLL_CONCURRENCY=1,
        JUDGE0_SEQUENTIAL_FALLBACK=True,
        GEMINI_API_KEY="",
        LEARNING_ANALYTICS_URL="",
    )

@pytest.fixture
def fake_judge() -> FakeJudge0:
    return FakeJudge0(runner=add_runner)

@pytest.fixture
def echo_judge() -> FakeJudge0:
    return FakeJudge0(runner=echo_runner)

@pytest.fixture
def judge_client(settings: Settings, fake_judge: FakeJudge0) -> JudgeClient:
    return JudgeClient(settings, transport=fake_judge.transport)

@pytest.fixture
def grading_engine(judge_client: JudgeClient, settings: Settings) -> GradingEngine:
    return GradingEngine(judge_client, settings=settings)

@pytest.fixture
def mock_evaluator():
    """Mock AI evaluator"""
    evaluator = MagicMock()
    evaluator.generate_hint = AsyncMock(side_effect=lambda context: {
        "hint": f"Hint number {context['hints_used'] + 1}",
        "reasoning": "Nudges toward the next step",
        "id": "hint-id",
    })
    evaluator.evaluate_solution = AsyncMock(return_value={
        "correct": True,
        "ai_suspected": False,
        "feedback": "Looks good",
        "diagnostics": {"issues": []},
    })
    return evaluator

@pytest.fixture
def repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()

@pytest.fixture
def practice_service(repository, mock_evaluator, judge_client, grading_engine, settings) -> PracticeSessionService:
    return PracticeSessionService(
        repository=repository,
        evaluator=mock_evaluator,
        judge=judge_client,
        grading=grading_engine,
        settings=settings,
    )

@pytest.fixture
def sample_session() -> PracticeSession:
    """Session with one `add(a, b)` question"""
    return PracticeSession(
        id="session-1",
        learner_id="learner-1",
        course_id="course-1",
        questions=[
            Question(
                id="q1",
                stem="Implement add(a, b) to return their sum.",
                language="python",
                tests=[
                    TestCase(input=[1, 2], expected_output=3),
                    TestCase(input=[0, 0], expected_output=0),
                    TestCase(input=[-5, 7], expected_output=2, hidden=True),
                ],
            ),
            Question(id="q2", stem="Explain recursion.", language="python"),
        ],
    )

@pytest.fixture
def add_source() -> str:
    return "def add(a, b):\n    return a + b\n"

@pytest.fixture
async def client(judge_client, grading_engine, practice_service) -> AsyncGenerator[AsyncClient, None]:
    """API client with services overridden"""
    app.dependency_overrides[get_judge_client] = lambda: judge_client
    app.dependency_overrides[get_grading_engine] = lambda: grading_engine
    app.dependency_overrides[get_practice_service] = lambda: practice_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
