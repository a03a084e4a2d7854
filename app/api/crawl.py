"""Crawl job API: start crawls, poll status, cancel, list."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.deps import get_job_manager, get_poller, get_supervisor
from app.api.errors import validation_error
from app.crawler.supervisor import CrawlSupervisor
from app.crawler.urls import is_valid_target_url
from app.errors import JobNotFoundError
from app.jobs.manager import JobManager
from app.jobs.models import JobStatus
from app.jobs.poller import CompletionPoller

router = APIRouter()


class CrawlRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target_url: Optional[str] = None
    project_name: Optional[str] = None


class CrawlResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    status: JobStatus
    message: str


def _validated_url(request: CrawlRequest) -> str:
    url = (request.target_url or "").strip()
    if not url:
        raise validation_error("targetUrl is required")
    if not is_valid_target_url(url):
        raise validation_error("Invalid URL format")
    return url


@router.post("/crawl", status_code=201, response_model=CrawlResponse)
async def create_crawl(request: CrawlRequest, manager: JobManager = Depends(get_job_manager)):
    """Start a new crawl job. Poll GET /api/status/{jobId} for progress."""
    url = _validated_url(request)
    job_id = await manager.create_job(url, request.project_name)
    return CrawlResponse(
        job_id=job_id,
        status=JobStatus.QUEUED,
        message="Crawl job created successfully",
    )


@router.post("/crawl-and-extract", status_code=201, response_model=CrawlResponse)
async def crawl_and_extract(
    request: CrawlRequest,
    manager: JobManager = Depends(get_job_manager),
    poller: CompletionPoller = Depends(get_poller),
):
    """Start a crawl and extract brand assets automatically once it completes.

    Returns immediately; poll GET /api/assets/{jobId} for the results.
    """
    url = _validated_url(request)
    job_id = await manager.create_job(url, request.project_name)
    poller.watch(job_id)
    return CrawlResponse(
        job_id=job_id,
        status=JobStatus.QUEUED,
        message="Crawl job started. Asset extraction will run automatically after crawl completes.",
    )


@router.get("/status/{job_id}")
async def get_job_status(job_id: str, manager: JobManager = Depends(get_job_manager)):
    job = manager.get_job_status(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return job.to_response()


@router.delete("/crawl/{job_id}")
async def cancel_crawl(job_id: str, manager: JobManager = Depends(get_job_manager)):
    """Cancel a queued or running job. Finished jobs are left as they are."""
    manager.cancel_job(job_id)
    return {"jobId": job_id, "message": f"Job {job_id} cancelled successfully"}


@router.get("/jobs")
async def list_jobs(manager: JobManager = Depends(get_job_manager)):
    return {"jobs": [job.to_response() for job in manager.list_jobs()]}


@router.get("/check-httrack")
async def check_httrack(supervisor: CrawlSupervisor = Depends(get_supervisor)):
    installed = await supervisor.check_installation()
    return {
        "httrackInstalled": installed,
        "message": "HTTrack is available" if installed else "HTTrack is not installed or not in PATH",
    }
