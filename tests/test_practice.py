# ============================================================================
# Practice System Tests
# ============================================================================
import pytest
import asyncio
from unittest.mock import AsyncMock
from app.core.exceptions import (
    HintLimitReached, QuestionNotFound, SessionForbidden, SessionNotFound, ValidationFailed
)
from app.models.practice import Question, SubmissionRecord
from app.services.practice.evaluator import GeminiEvaluator
from app.services.practice.repository import InMemorySessionRepository

class TestSessionLifecycle:
    """Tests for session creation and lookup"""

    @pytest.mark.asyncio
    async def test_initialize_normalizes_counters(self, practice_service, sample_session):
        sample_session.questions[0].hints_used = 2
        session = await practice_service.initialize_session(sample_session)

        assert session.questions[0].hints_used == 0
        assert session.questions[0].hints == []
        assert session.questions[0].last_hint_at is None

    @pytest.mark.asyncio
    async def test_initialize_from_dict(self, practice_service):
        session = await practice_service.initialize_session({
            "id": "s-dict",
            "learner_id": "learner-9",
            "questions": [{"id": "q", "tests": [{"input": [1, 2], "expectedOutput": 3}]}],
        })

        assert session.questions[0].tests[0].expected_output == 3

    @pytest.mark.asyncio
    async def test_initialize_rejects_bad_shape(self, practice_service):
        with pytest.raises(ValidationFailed):
            await practice_service.initialize_session({"id": "s-bad"})

    @pytest.mark.asyncio
    async def test_initialize_rejects_duplicate_questions(self, practice_service):
        with pytest.raises(ValidationFailed):
            await practice_service.initialize_session({
                "id": "s-dup", "learner_id": "l", "questions": [{"id": "q"}, {"id": "q"}]
            })

    @pytest.mark.asyncio
    async def test_get_session_checks_owner(self, practice_service, sample_session):
        await practice_service.initialize_session(sample_session)

        assert (await practice_service.get_session("session-1", "learner-1")).id == "session-1"
        with pytest.raises(SessionForbidden):
            await practice_service.get_session("session-1", "someone-else")
        with pytest.raises(SessionNotFound):
            await practice_service.get_session("missing")

    @pytest.mark.asyncio
    async def test_returned_sessions_are_copies(self, practice_service, sample_session):
        session = await practice_service.initialize_session(sample_session)
        session.questions[0].hints_used = 99

        stored = await practice_service.get_session("session-1")
        assert stored.questions[0].hints_used == 0

class TestHints:
    """Tests for the hint quota state machine"""

    @pytest.mark.asyncio
    async def test_three_hints_then_limit(self, practice_service, sample_session):
        await practice_service.initialize_session(sample_session)

        remaining = []
        for _ in range(3):
            response = await practice_service.request_hint("session-1", "q1")
            remaining.append(response["remaining_hints"])
        assert remaining == [2, 1, 0]

        with pytest.raises(HintLimitReached):
            await practice_service.request_hint("session-1", "q1")

        question = (await practice_service.get_session("session-1")).find_question("q1")
        assert question.hints_used == 3
        assert question.hints == ["Hint number 1", "Hint number 2", "Hint number 3"]

    @pytest.mark.asyncio
    async def test_concurrent_hints_never_exceed_limit(self, practice_service, sample_session):
        await practice_service.initialize_session(sample_session)

        results = await asyncio.gather(
            *[practice_service.request_hint("session-1", "q1") for _ in range(6)],
            return_exceptions=True
        )

        granted = [r for r in results if isinstance(r, dict)]
        refused = [r for r in results if isinstance(r, HintLimitReached)]
        assert len(granted) == 3
        assert len(refused) == 3
        question = (await practice_service.get_session("session-1")).find_question("q1")
        assert question.hints_used == 3
        assert len(question.hints) == 3

    @pytest.mark.asyncio
    async def test_hint_for_unknown_question(self, practice_service, sample_session):
        await practice_service.initialize_session(sample_session)
        with pytest.raises(QuestionNotFound):
            await practice_service.request_hint("session-1", "nope")

    @pytest.mark.asyncio
    async def test_hint_context_passed_to_evaluator(self, practice_service, sample_session, mock_evaluator):
        await practice_service.initialize_session(sample_session)
        await practice_service.request_hint("session-1", "q1", context={"code": "def add(a, b): pass"})

        context = mock_evaluator.generate_hint.call_args.args[0]
        assert context["question"]["id"] == "q1"
        assert context["previous_hints"] == []
        assert context["context"] == {"code": "def add(a, b): pass"}

    @pytest.mark.asyncio
    async def test_question_locks_released_after_use(self, practice_service, sample_session):
        for i in range(50):
            session = sample_session.model_copy(update={"id": f"session-{i}"}, deep=True)
            await practice_service.initialize_session(session)
            await practice_service.request_hint(f"session-{i}", "q1")

        assert practice_service._locks == {}
        assert practice_service._lock_users == {}

    @pytest.mark.asyncio
    async def test_question_locks_released_after_errors(self, practice_service, sample_session):
        await practice_service.initialize_session(sample_session)
        await asyncio.gather(
            *[practice_service.request_hint("session-1", "q1") for _ in range(5)],
            practice_service.request_hint("session-1", "nope"),
            practice_service.submit_solution("session-1", "q2", "print('hi')"),
            return_exceptions=True
        )

        assert practice_service._locks == {}
        assert practice_service._lock_users == {}

class TestSubmissions:
    """Tests for grading and recording submissions"""

    @pytest.mark.asyncio
    async def test_submit_grades_and_records(self, practice_service, sample_session, mock_evaluator, add_source):
        await practice_service.initialize_session(sample_session)

        result = await practice_service.submit_solution("session-1", "q1", add_source)

        assert result["correct"] is True
        assert result["submission_count"] == 1
        assert result["test_results"]["passed_tests"] == 3
        test_results = mock_evaluator.evaluate_solution.call_args.args[2]
        assert len(test_results) == 3

    @pytest.mark.asyncio
    async def test_evaluator_verdict_passes_through(self, practice_service, sample_session, mock_evaluator, add_source):
        mock_evaluator.evaluate_solution = AsyncMock(return_value={
            "correct": False, "ai_suspected": True, "feedback": "Suspicious", "diagnostics": None
        })
        await practice_service.initialize_session(sample_session)

        result = await practice_service.submit_solution("session-1", "q1", add_source)

        # All tests pass, but the evaluator's flags are returned untouched
        assert result["test_results"]["all_passed"] is True
        assert result["correct"] is False
        assert result["ai_suspected"] is True

    @pytest.mark.asyncio
    async def test_question_without_tests_skips_grading(self, practice_service, sample_session, fake_judge):
        await practice_service.initialize_session(sample_session)

        result = await practice_service.submit_solution("session-1", "q2", "Recursion is...")

        assert result["test_results"] is None
        assert fake_judge.requests == []

    @pytest.mark.asyncio
    async def test_concurrent_submissions_are_all_recorded(self, practice_service, sample_session):
        await practice_service.initialize_session(sample_session)

        await asyncio.gather(*[
            practice_service.submit_solution("session-1", "q2", f"answer {i}") for i in range(10)
        ])

        question = (await practice_service.get_session("session-1")).find_question("q2")
        assert len(question.submissions) == 10
        assert {s.code for s in question.submissions} == {f"answer {i}" for i in range(10)}

    @pytest.mark.asyncio
    async def test_evaluator_error_propagates_without_record(self, practice_service, sample_session, mock_evaluator):
        mock_evaluator.evaluate_solution = AsyncMock(side_effect=RuntimeError("model down"))
        await practice_service.initialize_session(sample_session)

        with pytest.raises(RuntimeError):
            await practice_service.submit_solution("session-1", "q2", "answer")

        question = (await practice_service.get_session("session-1")).find_question("q2")
        assert question.submissions == []

    @pytest.mark.asyncio
    async def test_submission_exported(self, practice_service, sample_session):
        exporter = AsyncMock()
        practice_service.exporter = exporter
        await practice_service.initialize_session(sample_session)

        await practice_service.submit_solution("session-1", "q2", "answer")

        payload = exporter.export.call_args.args[0]
        assert payload["event"] == "practice.submission"
        assert payload["learner_id"] == "learner-1"

class TestRunCode:
    """Tests for ad hoc execution"""

    @pytest.mark.asyncio
    async def test_run_code_does_not_touch_history(self, practice_service, sample_session):
        await practice_service.initialize_session(sample_session)

        result = await practice_service.run_code(
            "session-1", "q1", "import json\nprint(sum(json.loads(input())))", stdin="[2, 3]"
        )

        assert result["status"] == "Accepted"
        assert result["stdout"].strip() == "5"
        question = (await practice_service.get_session("session-1")).find_question("q1")
        assert question.submissions == []

class TestRepository:
    """Tests for the in-memory repository"""

    @pytest.mark.asyncio
    async def test_failed_updater_persists_nothing(self, sample_session):
        repository = InMemorySessionRepository()
        await repository.save_session(sample_session)

        def explode(question: Question) -> None:
            question.hints_used = 3
            raise HintLimitReached(3)

        with pytest.raises(HintLimitReached):
            await repository.update_question("session-1", "q1", explode)

        stored = await repository.get_session("session-1")
        assert stored.find_question("q1").hints_used == 0

    @pytest.mark.asyncio
    async def test_missing_targets_return_none(self, sample_session):
        repository = InMemorySessionRepository()
        await repository.save_session(sample_session)
        record = SubmissionRecord(code="x", language="python")

        assert await repository.get_session("missing") is None
        assert await repository.record_submission("missing", "q1", record) is None
        assert await repository.record_submission("session-1", "missing", record) is None

class TestGeminiEvaluator:
    """Tests for evaluator fallbacks when Gemini is not configured"""

    @pytest.mark.asyncio
    async def test_fallback_hint(self):
        evaluator = GeminiEvaluator(api_key="")
        hint = await evaluator.generate_hint({"question": {"stem": "Add"}, "previous_hints": []})

        assert hint["hint"]
        assert hint["id"]

    @pytest.mark.asyncio
    async def test_fallback_evaluation_uses_test_results(self):
        evaluator = GeminiEvaluator(api_key="")
        question = Question(id="q", stem="Add")

        passing = await evaluator.evaluate_solution("code", question, [{"passed": True}])
        failing = await evaluator.evaluate_solution("code", question, [{"passed": False}])

        assert passing["correct"] is True
        assert failing["correct"] is False
        assert passing["ai_suspected"] is False

    def test_parse_json_from_reply(self):
        reply = 'Sure!\n```json\n{"hint": "Try a loop", "reasoning": "iteration"}\n```'
        assert GeminiEvaluator._parse_json(reply) == {"hint": "Try a loop", "reasoning": "iteration"}
        assert GeminiEvaluator._parse_json("no json here") is None
