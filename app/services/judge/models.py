# ============================================================================
# Judge Data Classes
# ============================================================================
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class GradingMode(str, Enum):
    """How test cases are fanned out to the judge"""
    BATCH = "batch"
    SEQUENTIAL = "sequential"
    COMBINED = "combined"


@dataclass
class Submission:
    """A single grading request; never persisted as-is"""
    source_code: str
    language: str
    stdin: str = ""
    expected_output: Optional[str] = None


@dataclass
class JudgeResult:
    """Normalized judge outcome for one job"""
    status_id: Optional[int]
    status_text: str
    stdout: str = ""
    stderr: str = ""
    compile_output: str = ""
    time: str = "0.000"
    memory: int = 0
    passed: bool = False
    token: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, message: str, token: Optional[str] = None) -> "JudgeResult":
        """Per-test transport or poll failure"""
        return cls(
            status_id=None,
            status_text="Error",
            stderr=message,
            token=token,
            error=message,
        )

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Verdict:
    """Index-aligned grading verdict for one test case"""
    index: int
    input: Any
    expected: Any
    actual_output: str
    passed: bool
    status: str
    error: bool = False
    time: str = "0.000"
    stderr: str = ""
    compile_output: str = ""
    hidden: bool = False

    def to_dict(self, reveal_hidden: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if self.hidden and not reveal_hidden:
            data["input"] = None
            data["expected"] = None
        return data


@dataclass
class GradingReport:
    verdicts: List[Verdict]
    mode: GradingMode
    warnings: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.verdicts)

    @property
    def passed_count(self) -> int:
        return sum(1 for v in self.verdicts if v.passed)

    @property
    def all_passed(self) -> bool:
        return self.total > 0 and self.passed_count == self.total

    @property
    def partial_failure(self) -> bool:
        """Some, but not necessarily all, test cases failed to execute"""
        return any(v.error and v.status == "Error" for v in self.verdicts)

    def to_dict(self, reveal_hidden: bool = False) -> Dict[str, Any]:
        return {
            "results": [v.to_dict(reveal_hidden) for v in self.verdicts],
            "total_tests": self.total,
            "passed_tests": self.passed_count,
            "all_passed": self.all_passed,
            "partial_failure": self.partial_failure,
            "mode": self.mode.value,
            "warnings": list(self.warnings),
        }
