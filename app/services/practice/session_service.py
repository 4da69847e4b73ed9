# ============================================================================
# Practice Session Service
# ============================================================================
"""
Owns practice session state around code grading.

Each question moves from Fresh (no hints) through Hinted(n) to LimitReached
once ``max_hints`` hints have been granted. Hint grants and submission
appends for one question run under a per-question lock, and the repository
updater re-checks the quota so a shared store cannot overshoot it either.

Ownership is checked by the route layer. ``learner_id`` is optional here and
only enforced when given.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from app.config import Settings, get_settings
from app.core.exceptions import (
    HintLimitReached,
    QuestionNotFound,
    SessionForbidden,
    SessionNotFound,
    ValidationFailed,
)
from app.models.practice import PracticeSession, Question, SubmissionRecord
from app.services.analytics.exporter import LearningAnalyticsExporter
from app.services.judge.client import JudgeClient
from app.services.judge.grading import GradingEngine
from app.services.judge.models import GradingMode
from app.services.practice.evaluator import AIEvaluator
from app.services.practice.repository import SessionRepository

logger = logging.getLogger(__name__)


class PracticeSessionService:
    """Session lifecycle, hint quota and submission history"""

    def __init__(
        self,
        repository: SessionRepository,
        evaluator: AIEvaluator,
        judge: JudgeClient,
        grading: Optional[GradingEngine] = None,
        exporter: Optional[LearningAnalyticsExporter] = None,
        max_hints: Optional[int] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.repository = repository
        self.evaluator = evaluator
        self.judge = judge
        self.grading = grading or GradingEngine(judge, settings=self.settings)
        self.exporter = exporter
        self.max_hints = max_hints if max_hints is not None else self.settings.MAX_HINTS_PER_QUESTION
        # (session_id, question_id) -> lock, present only while held or awaited
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._lock_users: Dict[Tuple[str, str], int] = {}

    # ==================== Session Lifecycle ====================

    async def initialize_session(
        self,
        session_input: Union[PracticeSession, Dict[str, Any]]
    ) -> PracticeSession:
        """Normalize counters, persist and return a copy of a new session"""
        try:
            if isinstance(session_input, PracticeSession):
                session = session_input.model_copy(deep=True)
            else:
                session = PracticeSession.model_validate(session_input)
        except ValidationError as e:
            raise ValidationFailed(f"Invalid session: {e.errors()[0].get('msg', 'bad shape')}")

        if not session.id.strip() or not session.learner_id.strip():
            raise ValidationFailed("Session id and learner id are required")

        seen = set()
        for question in session.questions:
            if question.id in seen:
                raise ValidationFailed(f"Duplicate question id: {question.id}")
            seen.add(question.id)
            if len(question.hints) > self.max_hints:
                raise ValidationFailed(
                    f"Question {question.id} already has more than {self.max_hints} hints"
                )
            question.hints_used = len(question.hints)
            question.last_hint_at = None
            question.last_submission_at = None

        session.updated_at = datetime.utcnow()
        saved = await self.repository.save_session(session)
        logger.info(
            f"📚 Practice session {saved.id} initialized for learner {saved.learner_id} "
            f"({len(saved.questions)} question(s))"
        )
        return saved

    async def get_session(self, session_id: str, learner_id: Optional[str] = None) -> PracticeSession:
        session = await self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        if learner_id and session.learner_id != learner_id:
            raise SessionForbidden(session_id)
        return session

    # ==================== Hints ====================

    async def request_hint(
        self,
        session_id: str,
        question_id: str,
        learner_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Grant the next hint.

        Raises:
            HintLimitReached: quota used up; nothing is mutated
        """
        async with self._lock_for(session_id, question_id):
            session = await self.get_session(session_id, learner_id)
            question = self._find_question(session, question_id)

            if question.hints_used >= self.max_hints:
                raise HintLimitReached(self.max_hints)

            generated = await self.evaluator.generate_hint({
                "question": {
                    "id": question.id,
                    "stem": question.stem,
                    "language": question.language,
                },
                "session": {
                    "id": session.id,
                    "course_id": session.course_id,
                    "learner_id": session.learner_id,
                },
                "previous_hints": list(question.hints),
                "hints_used": question.hints_used,
                "context": context or {},
            })
            hint_text = generated.get("hint", "")

            def grant(current: Question) -> None:
                if current.hints_used >= self.max_hints:
                    raise HintLimitReached(self.max_hints)
                current.hints.append(hint_text)
                current.hints_used += 1
                current.last_hint_at = datetime.utcnow()

            updated = await self.repository.update_question(session_id, question_id, grant)
            if updated is None:
                raise QuestionNotFound(question_id)

        remaining = max(0, self.max_hints - updated.hints_used)
        logger.info(
            f"💡 Hint {updated.hints_used}/{self.max_hints} granted for "
            f"{session_id}/{question_id}"
        )
        return {
            "hint": hint_text,
            "reasoning": generated.get("reasoning", ""),
            "remaining_hints": remaining,
            "hints_used": updated.hints_used,
        }

    # ==================== Submissions ====================

    async def submit_solution(
        self,
        session_id: str,
        question_id: str,
        code: str,
        language: Optional[str] = None,
        learner_id: Optional[str] = None,
        mode: Optional[Union[GradingMode, str]] = None
    ) -> Dict[str, Any]:
        """
        Grade (when the question has tests), evaluate and record a submission.

        The evaluator's verdict is returned untouched; ``correct`` and
        ``ai_suspected`` are never reinterpreted here.
        """
        session = await self.get_session(session_id, learner_id)
        question = self._find_question(session, question_id)
        language = language or question.language

        report = None
        test_results = None
        if question.tests:
            report = await self.grading.grade(code, language, question.tests, mode)
            test_results = [v.to_dict(reveal_hidden=True) for v in report.verdicts]
        else:
            self.grading.validate(code, language)

        evaluation = await self.evaluator.evaluate_solution(code, question, test_results)
        record = SubmissionRecord(code=code, language=language, evaluation=dict(evaluation))

        async with self._lock_for(session_id, question_id):
            updated = await self.repository.record_submission(session_id, question_id, record)
        if updated is None:
            raise QuestionNotFound(question_id)

        logger.info(
            f"📝 Submission recorded for {session_id}/{question_id}: "
            f"correct={evaluation.get('correct')}, ai_suspected={evaluation.get('ai_suspected')}"
        )

        if self.exporter is not None:
            await self.exporter.export({
                "event": "practice.submission",
                "session_id": session_id,
                "question_id": question_id,
                "learner_id": session.learner_id,
                "course_id": session.course_id,
                "language": language,
                "correct": evaluation.get("correct"),
                "ai_suspected": evaluation.get("ai_suspected"),
                "passed_tests": report.passed_count if report else None,
                "total_tests": report.total if report else None,
                "submitted_at": record.timestamp.isoformat(),
            })

        return {
            **evaluation,
            "test_results": report.to_dict() if report else None,
            "submission_count": len(updated.submissions),
        }

    async def run_code(
        self,
        session_id: str,
        question_id: str,
        code: str,
        language: Optional[str] = None,
        stdin: str = "",
        learner_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Execute code once against ad hoc input; history is left untouched"""
        session = await self.get_session(session_id, learner_id)
        question = self._find_question(session, question_id)
        language = language or question.language
        self.grading.validate(code, language)

        result = await self.judge.execute_single(code, language, stdin=stdin or "")
        logger.info(f"▶️ Ran code for {session_id}/{question_id}: {result.status_text}")
        return {
            "stdout": result.stdout,
            "stderr": result.stderr,
            "compile_output": result.compile_output,
            "status": result.status_text,
            "time": result.time,
            "memory": result.memory,
        }

    # ==================== Helpers ====================

    @asynccontextmanager
    async def _lock_for(self, session_id: str, question_id: str) -> AsyncIterator[None]:
        key = (session_id, question_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    @staticmethod
    def _find_question(session: PracticeSession, question_id: str) -> Question:
        question = session.find_question(question_id)
        if question is None:
            raise QuestionNotFound(question_id)
        return question
