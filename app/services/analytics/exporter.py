# ============================================================================
# Learning Analytics Exporter
# ============================================================================
"""
Pushes practice events to an external learning-analytics endpoint.

The first attempt runs inline. A failed attempt is rescheduled with a
quadratic backoff, ``min(base_delay * attempts**2, max_delay)``, until
``max_attempts`` attempts have been made, after which the job is dropped
with an error log. Export failures never propagate to the caller.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

Transport = Callable[[Dict[str, Any]], Awaitable[Any]]
ScheduleFn = Callable[[Callable[[], Awaitable[None]], float], Any]


@dataclass
class ExportJob:
    id: str
    payload: Dict[str, Any]
    attempts: int = 0
    last_error: Optional[str] = None
    timer: Any = None


class LearningAnalyticsExporter:
    """Retrying exporter for practice events"""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        schedule_fn: Optional[ScheduleFn] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.transport = transport or self._http_transport
        self.schedule = schedule_fn or self._schedule_later
        self.max_attempts = max_attempts or self.settings.ANALYTICS_MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else self.settings.ANALYTICS_BASE_DELAY
        self.max_delay = max_delay if max_delay is not None else self.settings.ANALYTICS_MAX_DELAY

        self._queue: Dict[str, ExportJob] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._stats = {"succeeded": 0, "retried": 0, "given_up": 0}

    # ==================== Public API ====================

    async def export(self, payload: Dict[str, Any]) -> bool:
        """Send a payload now; schedule retries on failure. True when sent inline."""
        job = ExportJob(id=str(uuid.uuid4()), payload=payload)
        return await self._send(job)

    @property
    def pending_jobs(self) -> int:
        return len(self._queue)

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "pending": self.pending_jobs}

    async def flush(self) -> None:
        """Retry every queued job right away, ignoring its backoff"""
        jobs = list(self._queue.values())
        self._queue.clear()
        for job in jobs:
            self._cancel_timer(job)
            job.attempts = min(job.attempts, self.max_attempts - 1)
        await asyncio.gather(*[self._send(job) for job in jobs])

    async def close(self) -> None:
        for job in self._queue.values():
            self._cancel_timer(job)
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def retry_delay(self, attempts: int) -> float:
        return min(self.base_delay * attempts ** 2, self.max_delay)

    # ==================== Internals ====================

    async def _send(self, job: ExportJob) -> bool:
        try:
            await self.transport(job.payload)
        except Exception as e:
            job.attempts += 1
            job.last_error = str(e)

            if job.attempts >= self.max_attempts:
                self._queue.pop(job.id, None)
                self._stats["given_up"] += 1
                logger.error(
                    f"❌ Analytics export {job.id} gave up after {job.attempts} attempt(s): {e}"
                )
                return False

            delay = self.retry_delay(job.attempts)
            self._stats["retried"] += 1
            logger.warning(
                f"Analytics export {job.id} failed (attempt {job.attempts}/{self.max_attempts}): {e}. "
                f"Retrying in {delay:.0f}s"
            )
            self._queue[job.id] = job
            job.timer = self.schedule(lambda: self._retry(job), delay)
            return False

        self._queue.pop(job.id, None)
        self._stats["succeeded"] += 1
        logger.info(f"✅ Analytics export {job.id} succeeded after {job.attempts + 1} attempt(s)")
        return True

    async def _retry(self, job: ExportJob) -> None:
        if self._queue.get(job.id) is not job:
            return  # flushed or closed meanwhile
        job.timer = None
        await self._send(job)

    def _schedule_later(self, callback: Callable[[], Awaitable[None]], delay: float) -> asyncio.Task:
        async def run() -> None:
            await asyncio.sleep(delay)
            await callback()

        task = asyncio.create_task(run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    def _cancel_timer(job: ExportJob) -> None:
        cancel = getattr(job.timer, "cancel", None)
        if callable(cancel):
            cancel()
        job.timer = None

    async def _http_transport(self, payload: Dict[str, Any]) -> None:
        url = self.settings.LEARNING_ANALYTICS_URL
        if not url:
            logger.debug("No LEARNING_ANALYTICS_URL configured, skipping export")
            return

        headers = {"Content-Type": "application/json"}
        if self.settings.LEARNING_ANALYTICS_TOKEN:
            headers["Authorization"] = f"Bearer {self.settings.LEARNING_ANALYTICS_TOKEN}"

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
