# ============================================================================
# Custom Exceptions
# ============================================================================
from typing import Optional

class PracticeException(Exception):
    """Base exception for the code practice grader"""
    def __init__(
        self,
        detail: str,
        status_code: int = 400,
        error_code: Optional[str] = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or "PRACTICE_ERROR"
        super().__init__(self.detail)

class ValidationFailed(PracticeException):
    def __init__(self, message: str = "Invalid request"):
        super().__init__(
            detail=message,
            status_code=400,
            error_code="VALIDATION_ERROR"
        )

class UnsupportedLanguage(PracticeException):
    def __init__(self, language: str):
        super().__init__(
            detail=f"Unsupported language: {language}",
            status_code=400,
            error_code="UNSUPPORTED_LANGUAGE"
        )
        self.language = language

class JudgeTransportError(PracticeException):
    def __init__(self, message: str):
        super().__init__(
            detail=message,
            status_code=502,
            error_code="JUDGE_TRANSPORT_ERROR"
        )

class SubmissionTimeout(PracticeException):
    def __init__(self, token: str, attempts: int):
        super().__init__(
            detail=f"Submission timeout - result for {token} not available after {attempts} polls",
            status_code=504,
            error_code="SUBMISSION_TIMEOUT"
        )
        self.token = token
        self.attempts = attempts

class HintLimitReached(PracticeException):
    def __init__(self, max_hints: int):
        super().__init__(
            detail=f"No hints remaining (limit of {max_hints} reached)",
            status_code=429,
            error_code="HINT_LIMIT_REACHED"
        )
        self.max_hints = max_hints

class SessionNotFound(PracticeException):
    def __init__(self, session_id: str):
        super().__init__(
            detail=f"Practice session not found: {session_id}",
            status_code=404,
            error_code="SESSION_NOT_FOUND"
        )

class QuestionNotFound(PracticeException):
    def __init__(self, question_id: str):
        super().__init__(
            detail=f"Question not found: {question_id}",
            status_code=404,
            error_code="QUESTION_NOT_FOUND"
        )

class SessionForbidden(PracticeException):
    def __init__(self, session_id: str):
        super().__init__(
            detail=f"Practice session {session_id} belongs to another learner",
            status_code=403,
            error_code="SESSION_FORBIDDEN"
        )
