"""Crawl job data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Legal forward moves of the lifecycle; terminal states have none
ALLOWED_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}

CANCELLED_MESSAGE = "cancelled by user"


class JobProgress(BaseModel):
    """Progress view exposed on running jobs."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    files_downloaded: int = 0
    total_files: int = 0
    current_url: str = ""


class Job(BaseModel):
    """Tracks the lifecycle of one crawl-to-serve job."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="jobId")
    target_url: str
    project_name: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    progress: Optional[JobProgress] = None
    output_location: Optional[str] = None
    serving_url: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
