# ============================================================================
# Judge Schemas
# ============================================================================
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from app.models.practice import TestCase
from app.services.judge.models import GradingMode

class ExecuteRequest(BaseModel):
    code: str
    language: str
    stdin: str = ""
    expected_output: Optional[Any] = None

class ExecuteResponse(BaseModel):
    status_id: Optional[int] = None
    status_text: str
    stdout: str = ""
    stderr: str = ""
    compile_output: str = ""
    time: str = "0.000"
    memory: int = 0
    passed: bool = False
    token: Optional[str] = None

class TestCasesRequest(BaseModel):
    __test__ = False

    code: str
    language: str
    test_cases: List[TestCase] = Field(..., min_length=1)
    mode: Optional[GradingMode] = None

class VerdictResponse(BaseModel):
    index: int
    input: Any = None
    expected: Any = None
    actual_output: Optional[str] = None
    passed: bool
    status: str
    error: bool = False
    time: str = "0.000"
    stderr: str = ""
    compile_output: str = ""
    hidden: bool = False

class GradingResponse(BaseModel):
    results: List[VerdictResponse]
    total_tests: int
    passed_tests: int
    all_passed: bool
    partial_failure: bool
    mode: GradingMode
    warnings: List[str] = Field(default_factory=list)

class HealthResponse(BaseModel):
    available: bool
    service: str = "judge0"

class LanguagesResponse(BaseModel):
    languages: Dict[str, int]
