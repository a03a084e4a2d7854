from fastapi import Request

from app.api.errors import ApiError, ErrorCode
from app.crawler.supervisor import CrawlSupervisor
from app.jobs.manager import JobManager
from app.jobs.poller import CompletionPoller


def _state(request: Request, name: str):
    # Populated by the lifespan in app.main
    value = getattr(request.app.state, name, None)
    if value is None:
        raise ApiError(503, ErrorCode.SERVICE_UNAVAILABLE, f"{name} not initialized")
    return value


def get_job_manager(request: Request) -> JobManager:
    return _state(request, "job_manager")


def get_poller(request: Request) -> CompletionPoller:
    return _state(request, "poller")


def get_supervisor(request: Request) -> CrawlSupervisor:
    return _state(request, "supervisor")
