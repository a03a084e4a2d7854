"""Completion poller: waits for a crawl to finish, then extracts its assets.

Best-effort. Each watched job gets its own task that ticks at a fixed interval
until the job is terminal, the attempt budget runs out, or the deadline
passes. The poller never changes a job record.
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from app.config import settings
from app.jobs.manager import JobManager
from app.jobs.models import JobStatus

logger = logging.getLogger(__name__)


class PollOutcome(str, Enum):
    EXTRACTED = "extracted"
    EXTRACTION_FAILED = "extraction_failed"
    JOB_FAILED = "job_failed"
    JOB_MISSING = "job_missing"
    TIMED_OUT = "timed_out"


class CompletionPoller:
    def __init__(
        self,
        manager: JobManager,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        self._manager = manager
        self._interval = interval if interval is not None else settings.poll_interval_seconds
        self._max_attempts = max_attempts if max_attempts is not None else settings.poll_max_attempts
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def max_duration(self) -> float:
        return self._interval * self._max_attempts

    def watch(self, job_id: str) -> asyncio.Task:
        """Start watching a job in the background; returns the watcher task."""
        existing = self._tasks.get(job_id)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(self._run(job_id))
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        return task

    def is_watching(self, job_id: str) -> bool:
        return job_id in self._tasks

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, job_id: str) -> Optional[PollOutcome]:
        try:
            return await self.poll(job_id)
        except asyncio.CancelledError:
            raise
        except Exception:
            # One broken watcher must not take the others down
            logger.exception("Completion poller crashed for job %s", job_id, extra={"job_id": job_id})
            return None

    async def poll(self, job_id: str) -> PollOutcome:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_duration

        for _ in range(self._max_attempts):
            await asyncio.sleep(self._interval)

            job = self._manager.get_job_status(job_id)
            if job is None:
                return PollOutcome.JOB_MISSING

            if job.status == JobStatus.COMPLETED:
                try:
                    await self._manager.extract_assets(job_id)
                except Exception as exc:
                    logger.error(
                        "Asset extraction failed for job %s: %s", job_id, exc,
                        extra={"job_id": job_id},
                    )
                    return PollOutcome.EXTRACTION_FAILED
                logger.info("Assets extracted for job %s", job_id, extra={"job_id": job_id})
                return PollOutcome.EXTRACTED

            if job.status == JobStatus.FAILED:
                return PollOutcome.JOB_FAILED

            if loop.time() >= deadline:
                break

        logger.warning("Asset extraction polling timed out for job %s", job_id, extra={"job_id": job_id})
        return PollOutcome.TIMED_OUT
