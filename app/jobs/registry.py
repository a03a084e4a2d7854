"""In-memory job registry.

The registry is the only place Job records live. Every read-modify-write runs
under one lock, and status changes must follow ALLOWED_TRANSITIONS, so a
late-arriving failure can never overwrite a cancellation (or vice versa).
Callers only ever receive deep copies.
"""

import logging
import threading
from typing import Dict, List, Optional

from app.jobs.models import ALLOWED_TRANSITIONS, Job, JobStatus, utcnow

logger = logging.getLogger(__name__)


class JobRegistry:
    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()

    def add(self, job: Job) -> Job:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already registered")
            self._jobs[job.id] = job.model_copy(deep=True)
            return job.model_copy(deep=True)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def list(self) -> List[Job]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._jobs.values()]

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def transition(
        self,
        job_id: str,
        status: JobStatus,
        *,
        serving_url: Optional[str] = None,
        output_location: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """Move a job to status, setting the fields that state requires.

        Returns False (and changes nothing) when the job is unknown or the move
        is not allowed from its current state.
        """
        if status == JobStatus.COMPLETED and not serving_url:
            raise ValueError("completed jobs need a serving_url")
        if status == JobStatus.FAILED and not error:
            raise ValueError("failed jobs need an error message")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            if status not in ALLOWED_TRANSITIONS[job.status]:
                logger.debug(
                    "Ignoring transition %s -> %s for job %s",
                    job.status.value, status.value, job_id,
                )
                return False

            now = utcnow()
            job.status = status
            job.updated_at = now
            if status == JobStatus.RUNNING:
                job.started_at = now
            elif status == JobStatus.COMPLETED:
                job.serving_url = serving_url
                job.output_location = output_location
                job.finished_at = now
            elif status == JobStatus.FAILED:
                job.error = error
                job.finished_at = now
            return True
