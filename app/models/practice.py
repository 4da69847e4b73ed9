# ============================================================================
# Practice Session Domain Models
# ============================================================================
"""
Session, question and test-case state owned by the practice session service.

Models are plain pydantic objects so the repository can persist JSON
snapshots and hand out deep copies (``model_copy(deep=True)``) instead of
live references.
"""
from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, List, Dict, Any
from datetime import datetime


class TestCase(BaseModel):
    """One input/expected-output pair attached to a question"""
    __test__ = False  # not a pytest class

    input: Any = None
    expected_output: Any = Field(
        None,
        validation_alias=AliasChoices("expected_output", "expectedOutput", "output")
    )
    hidden: bool = False

    class Config:
        frozen = True
        populate_by_name = True


class SubmissionRecord(BaseModel):
    """Append-only history entry for a graded submission"""
    code: str
    language: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    evaluation: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True


class Question(BaseModel):
    id: str
    stem: str = ""
    language: str = "python"
    hints: List[str] = Field(default_factory=list)
    hints_used: int = 0
    tests: List[TestCase] = Field(default_factory=list)
    submissions: List[SubmissionRecord] = Field(default_factory=list)
    last_hint_at: Optional[datetime] = None
    last_submission_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def visible_tests(self) -> List[TestCase]:
        return [t for t in self.tests if not t.hidden]


class PracticeSession(BaseModel):
    id: str
    learner_id: str
    course_id: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def find_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None
