# ============================================================================
# Grading Engine
# ============================================================================
"""
Runs a submission against its test cases and assembles verdicts.

Each test case is harnessed on its own (batch and sequential modes) or all
of them go through one harnessed program (combined mode). When a harness
applies, the judge is not given an expected output: the program prints
``RESULT: <value>`` and the value is compared here. Unharnessed sources get
the test input on stdin and the judge's own comparison stands.

Verdicts are always index-aligned to the test cases, and a failure of one
test case never aborts the others.
"""
import logging
from typing import List, Optional, Sequence, Tuple, Union

from app.config import Settings, get_settings
from app.core.exceptions import JudgeTransportError, SubmissionTimeout, ValidationFailed
from app.models.practice import TestCase
from app.services.judge.client import (
    ACCEPTED,
    JudgeClient,
    expected_for,
    outputs_match,
    stdin_for,
)
from app.services.judge.harness import HarnessGenerator, extract_results
from app.services.judge.models import (
    GradingMode,
    GradingReport,
    JudgeResult,
    Submission,
    Verdict,
)

logger = logging.getLogger(__name__)


class GradingEngine:
    """Harness, execute and compare"""

    def __init__(
        self,
        judge: JudgeClient,
        harness: Optional[HarnessGenerator] = None,
        settings: Optional[Settings] = None
    ):
        self.judge = judge
        self.harness = harness or HarnessGenerator()
        self.settings = settings or get_settings()

    # ==================== Entry Point ====================

    async def grade(
        self,
        code: str,
        language: str,
        test_cases: Sequence[TestCase],
        mode: Optional[Union[GradingMode, str]] = None
    ) -> GradingReport:
        """
        Grade code against every test case.

        Raises:
            ValidationFailed: empty code, missing language, oversized code or bad mode
            UnsupportedLanguage: language has no runtime id
            JudgeTransportError: batch refused and sequential fallback disabled
        """
        self.validate(code, language)
        self.judge.resolve_language_id(language)
        grading_mode = self._parse_mode(mode)
        test_cases = list(test_cases)

        if not test_cases:
            return GradingReport(verdicts=[], mode=grading_mode)

        if grading_mode == GradingMode.COMBINED:
            report = await self._grade_combined(code, language, test_cases)
            if report is not None:
                return report
            grading_mode = GradingMode.BATCH

        submissions, harnessed, warnings = self._prepare(code, language, test_cases)
        results, grading_mode = await self._run(submissions, grading_mode, warnings)

        outputs = None
        if harnessed:
            outputs = [self._first_result(r) for r in results]
        verdicts = self.assemble(test_cases, results, outputs)

        report = GradingReport(verdicts=verdicts, mode=grading_mode, warnings=warnings)
        logger.info(
            f"Graded {language} submission ({grading_mode.value}): "
            f"{report.passed_count}/{report.total} passed"
        )
        return report

    def validate(self, code: str, language: str) -> None:
        if not code or not code.strip():
            raise ValidationFailed("Code is required")
        if not language or not language.strip():
            raise ValidationFailed("Language is required")
        if len(code) > self.settings.MAX_CODE_SIZE:
            raise ValidationFailed(
                f"Code exceeds maximum size of {self.settings.MAX_CODE_SIZE} characters"
            )

    # ==================== Execution ====================

    def _prepare(
        self,
        code: str,
        language: str,
        test_cases: List[TestCase]
    ) -> Tuple[List[Submission], bool, List[str]]:
        """One submission per test; harness detection is identical for every test"""
        first = self.harness.generate(code, language, test_cases[:1])
        warnings = [first.warning] if first.warning else []

        if not first.applied:
            submissions = [
                Submission(
                    source_code=code,
                    language=language,
                    stdin=stdin_for(tc),
                    expected_output=expected_for(tc),
                )
                for tc in test_cases
            ]
            return submissions, False, warnings

        submissions = [Submission(source_code=first.source, language=language)]
        for tc in test_cases[1:]:
            wrapped = self.harness.generate(code, language, [tc])
            submissions.append(Submission(source_code=wrapped.source, language=language))
        return submissions, True, warnings

    async def _run(
        self,
        submissions: List[Submission],
        mode: GradingMode,
        warnings: List[str]
    ) -> Tuple[List[JudgeResult], GradingMode]:
        if mode == GradingMode.SEQUENTIAL:
            return await self.judge.submit_sequential(submissions), mode

        try:
            return await self.judge.submit_batch(submissions), mode
        except JudgeTransportError as e:
            if not self.settings.JUDGE0_SEQUENTIAL_FALLBACK:
                raise
            message = f"Batch submission rejected ({e.detail}), falling back to sequential"
            logger.warning(f"⚠️ {message}")
            warnings.append(message)
            return await self.judge.submit_sequential(submissions), GradingMode.SEQUENTIAL

    async def _grade_combined(
        self,
        code: str,
        language: str,
        test_cases: List[TestCase]
    ) -> Optional[GradingReport]:
        """Single program for all tests; None when the source cannot be harnessed"""
        wrapped = self.harness.generate(code, language, test_cases)
        if not wrapped.applied:
            logger.info("Combined grading needs a harness, using batch mode instead")
            return None

        try:
            result = await self.judge.execute_submission(
                Submission(source_code=wrapped.source, language=language)
            )
        except (JudgeTransportError, SubmissionTimeout) as e:
            logger.error(f"Combined run failed: {e.detail}")
            result = JudgeResult.failed(e.detail)

        values = extract_results(result.stdout)
        outputs: List[Optional[str]] = [
            values[i] if i < len(values) else None for i in range(len(test_cases))
        ]
        verdicts = self.assemble(test_cases, [result] * len(test_cases), outputs)
        return GradingReport(verdicts=verdicts, mode=GradingMode.COMBINED)

    # ==================== Verdicts ====================

    @staticmethod
    def assemble(
        test_cases: Sequence[TestCase],
        results: Sequence[Optional[JudgeResult]],
        outputs: Optional[Sequence[Optional[str]]] = None
    ) -> List[Verdict]:
        """
        Build one verdict per test case, in test-case order.

        ``outputs`` carries the extracted RESULT value per test when the
        program was harnessed; without it the judge's own verdict is used.
        """
        verdicts = []
        for index, test_case in enumerate(test_cases):
            result = results[index] if index < len(results) else None
            if result is None:
                result = JudgeResult.failed(f"No result returned for test case {index + 1}")

            if result.is_failure:
                verdicts.append(Verdict(
                    index=index,
                    input=test_case.input,
                    expected=test_case.expected_output,
                    actual_output=result.error,
                    passed=False,
                    status="Error",
                    error=True,
                    hidden=test_case.hidden,
                ))
                continue

            if outputs is None:
                actual = result.stdout.strip()
                passed = result.passed
            else:
                value = outputs[index] if index < len(outputs) else None
                actual = value if value is not None else result.stdout.strip()
                passed = (
                    value is not None
                    and result.status_id == ACCEPTED
                    and outputs_match(value, test_case.expected_output)
                )

            verdicts.append(Verdict(
                index=index,
                input=test_case.input,
                expected=test_case.expected_output,
                actual_output=actual,
                passed=passed,
                status=result.status_text,
                time=result.time,
                stderr=result.stderr,
                compile_output=result.compile_output,
                hidden=test_case.hidden,
            ))
        return verdicts

    @staticmethod
    def _first_result(result: JudgeResult) -> Optional[str]:
        values = extract_results(result.stdout)
        return values[0] if values else None

    @staticmethod
    def _parse_mode(mode: Optional[Union[GradingMode, str]]) -> GradingMode:
        if mode is None:
            return GradingMode.BATCH
        try:
            return GradingMode(mode)
        except ValueError:
            raise ValidationFailed(f"Unknown grading mode: {mode}")
