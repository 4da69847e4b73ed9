# ============================================================================
# Practice Session Repository
# ============================================================================
"""
Storage for practice sessions.

Both implementations persist snapshots and only ever hand out deep copies,
so callers can never mutate stored state behind the service's back. All
question mutations go through ``update_question``, which applies the updater
to a fresh copy while holding the store's lock and only persists the result
if the updater returns without raising.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Protocol

import redis.asyncio as redis

from app.models.practice import PracticeSession, Question, SubmissionRecord

logger = logging.getLogger(__name__)

QuestionUpdater = Callable[[Question], None]


class SessionRepository(Protocol):
    """Storage contract used by the practice session service"""

    async def save_session(self, session: PracticeSession) -> PracticeSession:
        ...

    async def get_session(self, session_id: str) -> Optional[PracticeSession]:
        ...

    async def update_question(
        self,
        session_id: str,
        question_id: str,
        updater: QuestionUpdater
    ) -> Optional[Question]:
        ...

    async def record_submission(
        self,
        session_id: str,
        question_id: str,
        record: SubmissionRecord
    ) -> Optional[Question]:
        ...


def _append_submission(record: SubmissionRecord) -> QuestionUpdater:
    def apply(question: Question) -> None:
        question.submissions.append(record)
        question.last_submission_at = record.timestamp
    return apply


def _apply(session: PracticeSession, question_id: str, updater: QuestionUpdater) -> Optional[Question]:
    question = session.find_question(question_id)
    if question is None:
        return None
    updater(question)
    session.updated_at = datetime.utcnow()
    return question


# ============================================================================
# In-Memory Store
# ============================================================================
class InMemorySessionRepository:
    """Process-local store; one lock serializes every write"""

    def __init__(self):
        self._sessions: Dict[str, PracticeSession] = {}
        self._lock = asyncio.Lock()

    async def save_session(self, session: PracticeSession) -> PracticeSession:
        async with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def get_session(self, session_id: str) -> Optional[PracticeSession]:
        stored = self._sessions.get(session_id)
        return stored.model_copy(deep=True) if stored else None

    async def update_question(
        self,
        session_id: str,
        question_id: str,
        updater: QuestionUpdater
    ) -> Optional[Question]:
        async with self._lock:
            stored = self._sessions.get(session_id)
            if stored is None:
                return None

            working = stored.model_copy(deep=True)
            question = _apply(working, question_id, updater)
            if question is None:
                return None

            self._sessions[session_id] = working
            return question.model_copy(deep=True)

    async def record_submission(
        self,
        session_id: str,
        question_id: str,
        record: SubmissionRecord
    ) -> Optional[Question]:
        return await self.update_question(session_id, question_id, _append_submission(record))


# ============================================================================
# Redis Store
# ============================================================================
class RedisSessionRepository:
    """
    JSON snapshots in Redis.

    Updates are read-modify-write under a per-session Redis lock, which keeps
    several API workers from losing each other's hint or submission writes.
    """

    KEY_PREFIX = "practice:session:"

    def __init__(
        self,
        client: redis.Redis,
        ttl: Optional[int] = None,
        lock_timeout: float = 10.0
    ):
        self.client = client
        self.ttl = ttl
        self.lock_timeout = lock_timeout

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def _write(self, session: PracticeSession) -> None:
        await self.client.set(self._key(session.id), session.model_dump_json(), ex=self.ttl)

    async def _read(self, session_id: str) -> Optional[PracticeSession]:
        data = await self.client.get(self._key(session_id))
        if not data:
            return None
        return PracticeSession.model_validate_json(data)

    async def save_session(self, session: PracticeSession) -> PracticeSession:
        await self._write(session)
        return session.model_copy(deep=True)

    async def get_session(self, session_id: str) -> Optional[PracticeSession]:
        return await self._read(session_id)

    async def update_question(
        self,
        session_id: str,
        question_id: str,
        updater: QuestionUpdater
    ) -> Optional[Question]:
        lock = self.client.lock(
            f"{self._key(session_id)}:lock",
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout,
        )
        async with lock:
            session = await self._read(session_id)
            if session is None:
                return None

            question = _apply(session, question_id, updater)
            if question is None:
                return None

            await self._write(session)
            logger.debug(f"Updated question {question_id} in session {session_id}")
            return question.model_copy(deep=True)

    async def record_submission(
        self,
        session_id: str,
        question_id: str,
        record: SubmissionRecord
    ) -> Optional[Question]:
        return await self.update_question(session_id, question_id, _append_submission(record))
