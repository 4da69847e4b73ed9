from app.models.practice import TestCase, SubmissionRecord, Question, PracticeSession

__all__ = [
    "TestCase", "SubmissionRecord", "Question", "PracticeSession"
]
