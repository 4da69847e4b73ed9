# ============================================================================
# Judge0 Client Tests
# ============================================================================
import pytest
import json
from app.core.exceptions import JudgeTransportError, SubmissionTimeout, UnsupportedLanguage
from app.models.practice import TestCase
from app.services.judge.client import JudgeClient, outputs_match
from app.services.judge.models import Submission

class TestNormalization:
    """Tests for mapping raw Judge0 records"""

    def test_status_text_map(self):
        assert JudgeClient.normalize({"status": {"id": 5}}).status_text == "Time Limit Exceeded"
        assert JudgeClient.normalize({"status": {"id": 11}}).status_text == "Runtime Error (Other)"
        assert JudgeClient.normalize({"status": {"id": 99}}).status_text == "Unknown"

    def test_passed_requires_accepted_and_matching_output(self):
        accepted = {"status": {"id": 3}, "stdout": "3\n"}
        assert JudgeClient.normalize(accepted, "3").passed is True
        assert JudgeClient.normalize(accepted, "4").passed is False
        assert JudgeClient.normalize(accepted, None).passed is True
        assert JudgeClient.normalize({"status": {"id": 4}, "stdout": "3"}, "3").passed is False

    def test_outputs_match_is_case_sensitive_and_trimmed(self):
        assert outputs_match("  Hello \n", "Hello")
        assert not outputs_match("hello", "Hello")
        assert outputs_match("[1,2]", [1, 2])

class TestJudgeClient:
    """Tests for submit/poll behaviour against a fake Judge0"""

    @pytest.mark.asyncio
    async def test_execute_single_polls_until_terminal(self, settings, echo_judge):
        fake = echo_judge
        fake.pending_polls = 2
        client = JudgeClient(settings, transport=fake.transport)

        result = await client.execute_single("print(input())", "python", stdin="hi", expected_output="hi")

        assert result.status_text == "Accepted"
        assert result.passed is True
        assert result.token == "token-1"
        assert fake.poll_counts["token-1"] == 3

    @pytest.mark.asyncio
    async def test_submission_payload_and_headers(self, settings, echo_judge):
        fake = echo_judge
        client = JudgeClient(settings, transport=fake.transport)

        await client.execute_single("print(1)", "python")

        request = fake.requests[0]
        payload = json.loads(request.content)
        assert request.headers["X-RapidAPI-Key"] == "test-key"
        assert request.url.params["base64_encoded"] == "false"
        assert request.url.params["wait"] == "false"
        assert payload["language_id"] == 71
        assert payload["cpu_time_limit"] == 2.0
        assert payload["memory_limit"] == 128000
        assert payload["wall_time_limit"] == 5.0

    @pytest.mark.asyncio
    async def test_poll_timeout(self, settings, echo_judge):
        fake = echo_judge
        fake.pending_polls = 100
        client = JudgeClient(settings, transport=fake.transport)

        with pytest.raises(SubmissionTimeout) as exc_info:
            await client.execute_single("print(1)", "python")

        assert exc_info.value.attempts == settings.JUDGE0_MAX_POLL_ATTEMPTS
        assert fake.poll_counts["token-1"] == settings.JUDGE0_MAX_POLL_ATTEMPTS

    @pytest.mark.asyncio
    async def test_poll_transport_errors_count_as_attempts(self, settings, echo_judge):
        fake = echo_judge
        fake.failing_tokens.add("token-1")
        client = JudgeClient(settings, transport=fake.transport)

        with pytest.raises(SubmissionTimeout):
            await client.execute_single("print(1)", "python")
        assert fake.poll_counts["token-1"] == settings.JUDGE0_MAX_POLL_ATTEMPTS

    @pytest.mark.asyncio
    async def test_submit_retried_then_succeeds(self, settings, echo_judge):
        fake = echo_judge
        fake.submit_failures = 1
        client = JudgeClient(settings, transport=fake.transport)

        result = await client.execute_single("print(1)", "python", stdin="x")

        assert result.stdout == "x"
        assert client.is_available is True

    @pytest.mark.asyncio
    async def test_submit_exhaustion_marks_unavailable(self, settings, echo_judge):
        fake = echo_judge
        fake.submit_failures = 10
        client = JudgeClient(settings, transport=fake.transport)

        with pytest.raises(JudgeTransportError):
            await client.execute_single("print(1)", "python")
        assert client.is_available is False

    @pytest.mark.asyncio
    async def test_unsupported_language_is_not_sent(self, settings, echo_judge):
        fake = echo_judge
        client = JudgeClient(settings, transport=fake.transport)

        with pytest.raises(UnsupportedLanguage):
            await client.execute_single("code", "klingon")
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_check_availability(self, settings, echo_judge):
        fake = echo_judge
        client = JudgeClient(settings, transport=fake.transport)
        assert await client.check_availability() is True

        fake.languages_status = 503
        assert await client.check_availability() is False
        assert client.is_available is False

        fake.languages_status = 200
        assert await client.check_availability() is True

        fake.offline = True
        assert await client.check_availability() is False

    @pytest.mark.asyncio
    async def test_add_scenario(self, judge_client):
        """Raw add program reading "[1,2]" from stdin prints 3"""
        results = await judge_client.execute_sequential(
            "import json\na, b = json.loads(input())\nprint(a + b)",
            "python",
            [TestCase(input=[1, 2], expected_output="3")]
        )

        assert results[0].passed is True
        assert results[0].status_text == "Accepted"
        assert results[0].stdout.strip() == "3"

class TestBatchExecution:
    """Tests for batch fan-out and partial failure isolation"""

    @pytest.mark.asyncio
    async def test_batch_is_index_aligned(self, judge_client, fake_judge):
        tests = [TestCase(input=[i, i], expected_output=2 * i) for i in range(4)]
        results = await judge_client.execute_batch("code", "python", tests)

        assert len(results) == 4
        assert [r.stdout.strip() for r in results] == ["0", "2", "4", "6"]
        assert all(r.passed for r in results)
        batch_requests = [r for r in fake_judge.requests if r.url.path == "/submissions/batch"]
        assert len(batch_requests) == 1

    @pytest.mark.asyncio
    async def test_one_failing_token_does_not_abort_siblings(self, judge_client, fake_judge):
        fake_judge.failing_tokens.add("token-2")
        tests = [TestCase(input=[1, 1], expected_output=2) for _ in range(3)]

        results = await judge_client.execute_batch("code", "python", tests)

        assert len(results) == 3
        assert results[0].passed and results[2].passed
        assert results[1].is_failure
        assert results[1].status_text == "Error"

    @pytest.mark.asyncio
    async def test_concurrent_polling_keeps_order(self, settings, fake_judge):
        settings.JUDGE0_POLL_CONCURRENCY = 4
        client = JudgeClient(settings, transport=fake_judge.transport)
        # Earlier tokens stay "Processing" longer, so later ones finish first
        fake_judge.token_pending = {"token-1": 3, "token-2": 2, "token-3": 1}
        submissions = [
            Submission(source_code="code", language="python", stdin=f"[{i}, 1]") for i in range(5)
        ]

        results = await client.submit_batch(submissions)

        assert fake_judge.completed != sorted(fake_judge.completed)
        assert fake_judge.completed[-1] == "token-1"
        assert [r.stdout.strip() for r in results] == ["1", "2", "3", "4", "5"]
        assert [r.token for r in results] == [f"token-{i}" for i in range(1, 6)]

    @pytest.mark.asyncio
    async def test_sequential_keeps_order_with_slow_jobs(self, judge_client, fake_judge):
        fake_judge.token_pending = {"token-1": 3}
        tests = [TestCase(input=[i, 1], expected_output=i + 1) for i in range(3)]

        results = await judge_client.execute_sequential("code", "python", tests)

        assert [r.stdout.strip() for r in results] == ["1", "2", "3"]
        assert all(r.passed for r in results)

    @pytest.mark.asyncio
    async def test_non_object_poll_body_only_fails_its_token(self, judge_client, fake_judge):
        fake_judge.raw_bodies["token-2"] = []
        tests = [TestCase(input=[1, 1], expected_output=2) for _ in range(3)]

        results = await judge_client.execute_batch("code", "python", tests)

        assert len(results) == 3
        assert results[0].passed and results[2].passed
        assert results[1].is_failure
        assert fake_judge.poll_counts["token-2"] == 5

    @pytest.mark.asyncio
    async def test_non_object_poll_body_in_sequential_mode(self, judge_client, fake_judge):
        fake_judge.raw_bodies["token-1"] = "oops"
        tests = [TestCase(input=[1, 1], expected_output=2) for _ in range(2)]

        results = await judge_client.execute_sequential("code", "python", tests)

        assert results[0].is_failure
        assert results[1].passed

    @pytest.mark.asyncio
    async def test_non_object_status_keeps_polling(self, judge_client, fake_judge):
        fake_judge.raw_bodies["token-1"] = {"token": "token-1", "status": "done"}

        with pytest.raises(SubmissionTimeout):
            await judge_client.execute_single("code", "python", "[1, 1]")

    @pytest.mark.asyncio
    async def test_batch_rejection_raises(self, judge_client, fake_judge):
        fake_judge.batch_status = 400
        with pytest.raises(JudgeTransportError):
            await judge_client.execute_batch("code", "python", [TestCase(input=[1, 2], expected_output=3)])

    @pytest.mark.asyncio
    async def test_sequential_isolates_failures(self, judge_client, fake_judge):
        fake_judge.failing_tokens.add("token-1")
        tests = [TestCase(input=[1, 2], expected_output=3), TestCase(input=[2, 2], expected_output=4)]

        results = await judge_client.execute_sequential("code", "python", tests)

        assert results[0].is_failure
        assert results[1].passed is True
