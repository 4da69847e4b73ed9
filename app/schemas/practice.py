# ============================================================================
# Practice Schemas
# ============================================================================
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.practice import Question, TestCase
from app.services.judge.models import GradingMode

class QuestionCreate(BaseModel):
    id: str
    stem: str = ""
    language: str = "python"
    hints: List[str] = Field(default_factory=list)
    tests: List[TestCase] = Field(default_factory=list)

class SessionCreate(BaseModel):
    id: str = Field(..., min_length=1)
    course_id: Optional[str] = None
    questions: List[QuestionCreate] = Field(default_factory=list)

class TestCaseView(BaseModel):
    """Test case as shown to the learner; hidden cases are masked"""
    __test__ = False

    input: Any = None
    expected_output: Any = None
    hidden: bool = False

    @classmethod
    def from_test_case(cls, test_case: TestCase) -> "TestCaseView":
        if test_case.hidden:
            return cls(hidden=True)
        return cls(input=test_case.input, expected_output=test_case.expected_output)

class QuestionResponse(BaseModel):
    id: str
    stem: str
    language: str
    hints: List[str]
    hints_used: int
    remaining_hints: int
    tests: List[TestCaseView]
    submission_count: int
    last_hint_at: Optional[datetime] = None
    last_submission_at: Optional[datetime] = None

    @classmethod
    def from_question(cls, question: Question, max_hints: int) -> "QuestionResponse":
        return cls(
            id=question.id,
            stem=question.stem,
            language=question.language,
            hints=list(question.hints),
            hints_used=question.hints_used,
            remaining_hints=max(0, max_hints - question.hints_used),
            tests=[TestCaseView.from_test_case(t) for t in question.tests],
            submission_count=len(question.submissions),
            last_hint_at=question.last_hint_at,
            last_submission_at=question.last_submission_at,
        )

class SessionResponse(BaseModel):
    id: str
    learner_id: str
    course_id: Optional[str] = None
    questions: List[QuestionResponse]
    created_at: datetime
    updated_at: datetime

class HintRequest(BaseModel):
    context: Dict[str, Any] = Field(default_factory=dict)

class HintResponse(BaseModel):
    hint: str
    reasoning: str = ""
    remaining_hints: int
    hints_used: int

class RunCodeRequest(BaseModel):
    code: str
    language: Optional[str] = None
    stdin: str = ""

class RunCodeResponse(BaseModel):
    stdout: str
    stderr: str
    compile_output: str
    status: str
    time: str
    memory: int

class SubmitSolutionRequest(BaseModel):
    code: str
    language: Optional[str] = None
    mode: Optional[GradingMode] = None

class SubmitSolutionResponse(BaseModel):
    correct: bool
    ai_suspected: bool
    feedback: str = ""
    diagnostics: Optional[Any] = None
    test_results: Optional[Dict[str, Any]] = None
    submission_count: int

    class Config:
        extra = "allow"
