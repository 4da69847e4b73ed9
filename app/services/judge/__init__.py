from app.services.judge.client import JudgeClient
from app.services.judge.grading import GradingEngine
from app.services.judge.harness import HarnessGenerator, HarnessResult, extract_results
from app.services.judge.languages import Language, LANGUAGE_IDS
from app.services.judge.models import (
    GradingMode, GradingReport, JudgeResult, Submission, Verdict
)

__all__ = [
    "JudgeClient", "GradingEngine", "HarnessGenerator", "HarnessResult",
    "extract_results", "Language", "LANGUAGE_IDS", "GradingMode",
    "GradingReport", "JudgeResult", "Submission", "Verdict"
]
