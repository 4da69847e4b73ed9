# ============================================================================
# Judge0 API Client
# ============================================================================
"""
Async client for a Judge0-compatible sandbox.

Jobs are submitted without waiting and then polled on a fixed interval up to a
bounded number of attempts. Transport failures while polling count against
that ceiling instead of aborting. Batch runs poll every token independently,
so one failing token only costs its own test case.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.config import Settings, get_settings
from app.core.exceptions import (
    JudgeTransportError,
    PracticeException,
    SubmissionTimeout,
    UnsupportedLanguage,
)
from app.models.practice import TestCase
from app.services.judge.harness import canonical_text
from app.services.judge.languages import LANGUAGE_IDS, runtime_id
from app.services.judge.models import JudgeResult, Submission

logger = logging.getLogger(__name__)

STATUS_TEXT: Dict[int, str] = {
    1: "In Queue",
    2: "Processing",
    3: "Accepted",
    4: "Wrong Answer",
    5: "Time Limit Exceeded",
    6: "Compilation Error",
    7: "Runtime Error (SIGSEGV)",
    8: "Runtime Error (SIGFPE)",
    9: "Runtime Error (SIGABRT)",
    10: "Runtime Error (NZEC)",
    11: "Runtime Error (Other)",
    12: "Internal Error",
    13: "Exec Format Error",
}
PENDING_STATUSES = frozenset({1, 2})
ACCEPTED = 3

RESULT_FIELDS = "token,status,stdout,stderr,compile_output,message,time,memory"


def outputs_match(actual: Optional[str], expected: Any) -> bool:
    """Exact, case-sensitive comparison after trimming both sides"""
    if expected is None:
        return True
    return (actual or "").strip() == canonical_text(expected).strip()


def status_id_of(data: Dict[str, Any]) -> Optional[int]:
    status = data.get("status")
    if not isinstance(status, dict):
        return None
    status_id = status.get("id")
    return status_id if isinstance(status_id, int) else None


def stdin_for(test_case: TestCase) -> str:
    if test_case.input is None:
        return ""
    return canonical_text(test_case.input)


def expected_for(test_case: TestCase) -> Optional[str]:
    if test_case.expected_output is None:
        return None
    return canonical_text(test_case.expected_output)


class JudgeClient:
    """Judge0 sandbox client with bounded polling"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.JUDGE0_API_URL.rstrip("/")
        self.poll_interval = self.settings.JUDGE0_POLL_INTERVAL
        self.max_poll_attempts = self.settings.JUDGE0_MAX_POLL_ATTEMPTS
        self.submit_retries = max(1, self.settings.JUDGE0_SUBMIT_RETRIES)
        self.retry_delay = self.settings.JUDGE0_RETRY_DELAY
        self.poll_concurrency = max(1, self.settings.JUDGE0_POLL_CONCURRENCY)
        self._transport = transport

        # Health state, updated by check_availability and failed submissions
        self.is_available = True

    # ==================== Plumbing ====================

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.JUDGE0_API_KEY:
            headers["X-RapidAPI-Key"] = self.settings.JUDGE0_API_KEY
            headers["X-RapidAPI-Host"] = self.settings.JUDGE0_API_HOST
        if self.settings.JUDGE0_AUTH_TOKEN:
            headers["X-Auth-Token"] = self.settings.JUDGE0_AUTH_TOKEN
        return headers

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.settings.JUDGE0_REQUEST_TIMEOUT,
            transport=self._transport,
        )

    def build_payload(self, submission: Submission, language_id: int) -> Dict[str, Any]:
        return {
            "source_code": submission.source_code,
            "language_id": language_id,
            "stdin": submission.stdin or "",
            "expected_output": submission.expected_output,
            "cpu_time_limit": self.settings.JUDGE0_CPU_TIME_LIMIT,
            "memory_limit": self.settings.JUDGE0_MEMORY_LIMIT,
            "wall_time_limit": self.settings.JUDGE0_WALL_TIME_LIMIT,
        }

    # ==================== Health & Languages ====================

    async def check_availability(self) -> bool:
        """Probe the judge; any failure counts as unavailable"""
        try:
            async with self._http() as client:
                response = await client.get("/languages")
            self.is_available = response.is_success
        except httpx.HTTPError as e:
            logger.error(f"Judge0 availability check failed: {e}")
            self.is_available = False
        return self.is_available

    @staticmethod
    def resolve_language_id(name: str) -> int:
        resolved = runtime_id(name)
        if resolved is None:
            raise UnsupportedLanguage(name)
        return resolved

    @staticmethod
    def supported_languages() -> Dict[str, int]:
        return dict(LANGUAGE_IDS)

    # ==================== Single Execution ====================

    async def execute_single(
        self,
        code: str,
        language: str,
        stdin: str = "",
        expected_output: Optional[str] = None
    ) -> JudgeResult:
        """Submit one job and poll it to a terminal status"""
        return await self.execute_submission(
            Submission(source_code=code, language=language, stdin=stdin, expected_output=expected_output)
        )

    async def execute_submission(self, submission: Submission) -> JudgeResult:
        language_id = self.resolve_language_id(submission.language)
        payload = self.build_payload(submission, language_id)

        async with self._http() as client:
            created = await self._post(client, "/submissions", payload)
            token = created.get("token") if isinstance(created, dict) else None
            if not token:
                raise JudgeTransportError(f"Judge0 returned no submission token: {created}")
            logger.debug(f"Submitted {submission.language} job {token}")
            return await self.poll(client, token, submission.expected_output)

    async def poll(
        self,
        client: httpx.AsyncClient,
        token: str,
        expected_output: Optional[str] = None
    ) -> JudgeResult:
        """Poll a token until the job leaves the queue or attempts run out"""
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_poll_attempts + 1):
            try:
                response = await client.get(
                    f"/submissions/{token}",
                    params={"base64_encoded": "false", "fields": RESULT_FIELDS},
                )
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(
                    f"Polling {token} failed (attempt {attempt}/{self.max_poll_attempts}): {e}"
                )
            else:
                status_id = status_id_of(data)
                if status_id is not None and status_id not in PENDING_STATUSES:
                    return self.normalize(data, expected_output, token)

            if attempt < self.max_poll_attempts:
                await asyncio.sleep(self.poll_interval)

        # The remote job is left running; nothing to clean up server-side
        raise SubmissionTimeout(token, self.max_poll_attempts) from last_error

    @staticmethod
    def normalize(
        data: Dict[str, Any],
        expected_output: Optional[str] = None,
        token: Optional[str] = None
    ) -> JudgeResult:
        """Map a raw Judge0 record onto a JudgeResult"""
        status_id = status_id_of(data)
        stdout = data.get("stdout") or ""
        return JudgeResult(
            status_id=status_id,
            status_text=STATUS_TEXT.get(status_id, "Unknown"),
            stdout=stdout,
            stderr=data.get("stderr") or "",
            compile_output=data.get("compile_output") or "",
            time=str(data.get("time") or "0.000"),
            memory=int(data.get("memory") or 0),
            passed=status_id == ACCEPTED and outputs_match(stdout, expected_output),
            token=token or data.get("token"),
        )

    # ==================== Test Case Fan-out ====================

    async def execute_batch(
        self,
        code: str,
        language: str,
        test_cases: Sequence[TestCase]
    ) -> List[JudgeResult]:
        """Run every test case from one batched submission"""
        return await self.submit_batch(self._stdin_submissions(code, language, test_cases))

    async def execute_sequential(
        self,
        code: str,
        language: str,
        test_cases: Sequence[TestCase]
    ) -> List[JudgeResult]:
        """Run every test case with its own submit and poll cycle"""
        return await self.submit_sequential(self._stdin_submissions(code, language, test_cases))

    async def submit_batch(self, submissions: Sequence[Submission]) -> List[JudgeResult]:
        """
        One POST for all submissions, then poll each token.

        Raises JudgeTransportError when the batch itself is refused; failures
        of individual tokens come back as failed results at their index.
        """
        if not submissions:
            return []
        payloads = [
            self.build_payload(s, self.resolve_language_id(s.language)) for s in submissions
        ]

        async with self._http() as client:
            created = await self._post(client, "/submissions/batch", {"submissions": payloads})
            if not isinstance(created, list):
                raise JudgeTransportError(f"Unexpected batch response from Judge0: {created}")

            tokens: List[Optional[str]] = [
                entry.get("token") if isinstance(entry, dict) else None for entry in created
            ]
            tokens.extend([None] * (len(submissions) - len(tokens)))
            logger.info(f"Submitted batch of {len(submissions)} job(s) to Judge0")

            semaphore = asyncio.Semaphore(self.poll_concurrency)

            async def poll_one(index: int) -> JudgeResult:
                token = tokens[index]
                if not token:
                    entry = created[index] if index < len(created) else "missing"
                    return JudgeResult.failed(f"Judge0 did not accept test case {index + 1}: {entry}")
                async with semaphore:
                    try:
                        return await self.poll(client, token, submissions[index].expected_output)
                    except PracticeException as e:
                        logger.error(f"Test case {index + 1} ({token}) failed: {e.detail}")
                        return JudgeResult.failed(e.detail, token)

            return list(await asyncio.gather(*[poll_one(i) for i in range(len(submissions))]))

    async def submit_sequential(self, submissions: Sequence[Submission]) -> List[JudgeResult]:
        for submission in submissions:
            self.resolve_language_id(submission.language)

        results: List[JudgeResult] = []
        for index, submission in enumerate(submissions):
            try:
                results.append(await self.execute_submission(submission))
            except (JudgeTransportError, SubmissionTimeout) as e:
                logger.error(f"Test case {index + 1} failed: {e.detail}")
                results.append(JudgeResult.failed(e.detail))
        return results

    # ==================== Helpers ====================

    @staticmethod
    def _stdin_submissions(
        code: str,
        language: str,
        test_cases: Sequence[TestCase]
    ) -> List[Submission]:
        return [
            Submission(
                source_code=code,
                language=language,
                stdin=stdin_for(tc),
                expected_output=expected_for(tc),
            )
            for tc in test_cases
        ]

    async def _post(self, client: httpx.AsyncClient, path: str, body: Dict[str, Any]) -> Any:
        """POST with exponential backoff on transport and 5xx/429 failures"""
        last_error: Optional[Exception] = None

        for attempt in range(self.submit_retries):
            try:
                response = await client.post(
                    path,
                    json=body,
                    params={"base64_encoded": "false", "wait": "false"},
                )
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status < 500 and status != 429:
                    logger.error(f"Judge0 rejected {path}: {status} {e.response.text}")
                    raise JudgeTransportError(f"Judge0 API error: {status} {e.response.reason_phrase}") from e
                last_error = e
            except (httpx.TransportError, ValueError) as e:
                last_error = e

            if attempt < self.submit_retries - 1:
                delay = self.retry_delay * (2 ** attempt)
                logger.warning(
                    f"Judge0 {path} attempt {attempt + 1} failed: {last_error}. "
                    f"Retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

        self.is_available = False
        raise JudgeTransportError(
            f"Judge0 {path} failed after {self.submit_retries} attempts: {last_error}"
        ) from last_error
