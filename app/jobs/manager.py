"""Crawl job lifecycle manager.

Sequences each job through crawl -> serve -> (optional) extract. Every job
runs as its own asyncio task so create_job returns immediately; the registry
is the only place records change, and this class is its only writer.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from app.crawler.supervisor import CrawlOptions, CrawlSupervisor
from app.errors import (
    ContentNotFoundError,
    ExtractionError,
    InvalidJobStateError,
    JobNotFoundError,
    SiteMirrorError,
)
from app.extraction.extractor import extract_assets as default_extractor
from app.extraction.models import BrandAssets
from app.jobs.models import CANCELLED_MESSAGE, Job, JobProgress, JobStatus
from app.jobs.registry import JobRegistry
from app.serving.content_server import ContentServer

logger = logging.getLogger(__name__)

# fn(output_dir, target_url) -> BrandAssets; called in a worker thread
Extractor = Callable[[str, str], BrandAssets]


class JobManager:
    """Owns crawl jobs from creation to a terminal state."""

    def __init__(
        self,
        registry: JobRegistry,
        supervisor: CrawlSupervisor,
        content_server: ContentServer,
        extractor: Optional[Extractor] = None,
        crawl_options: Optional[CrawlOptions] = None,
    ):
        self._registry = registry
        self._supervisor = supervisor
        self._content_server = content_server
        self._extractor = extractor or default_extractor
        self._crawl_options = crawl_options
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}
        self._assets: Dict[str, BrandAssets] = {}
        self._extract_locks: Dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Job operations
    # ------------------------------------------------------------------

    async def create_job(self, target_url: str, project_name: Optional[str] = None) -> str:
        """Record a queued job and start its crawl in the background."""
        job = self._registry.add(Job(target_url=target_url, project_name=project_name))
        cancel_event = asyncio.Event()
        self._cancel_events[job.id] = cancel_event

        task = asyncio.create_task(self._run_job(job.id, target_url, cancel_event))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))

        logger.info("Created crawl job %s for %s", job.id, target_url, extra={"job_id": job.id})
        return job.id

    def get_job_status(self, job_id: str) -> Optional[Job]:
        job = self._registry.get(job_id)
        if job is None:
            return None
        return self._with_progress(job)

    def list_jobs(self) -> List[Job]:
        return [self._with_progress(job) for job in self._registry.list()]

    def cancel_job(self, job_id: str) -> None:
        """Cancel a queued or running job; terminal jobs are left untouched.

        Raises:
            JobNotFoundError: job_id is unknown.
        """
        job = self._registry.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        cancel_event = self._cancel_events.get(job_id)
        if job.status.is_terminal:
            return

        if cancel_event is not None:
            cancel_event.set()

        if job.status == JobStatus.RUNNING:
            self._supervisor.stop_crawl(job_id)
            if self._registry.transition(job_id, JobStatus.FAILED, error=CANCELLED_MESSAGE):
                logger.info("Job %s cancelled by user", job_id, extra={"job_id": job_id})
        else:
            # The crawl chain sees the event before spawning HTTrack
            logger.info("Job %s cancelled before start", job_id, extra={"job_id": job_id})

    # ------------------------------------------------------------------
    # Asset extraction
    # ------------------------------------------------------------------

    async def extract_assets(self, job_id: str) -> BrandAssets:
        """Extract (once) and return the brand assets of a completed job.

        Raises:
            JobNotFoundError: job_id is unknown.
            InvalidJobStateError: the job has not completed.
            ExtractionError: the extractor failed.
        """
        job = self._registry.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != JobStatus.COMPLETED:
            raise InvalidJobStateError(job_id, job.status.value, "extract assets")

        cached = self._assets.get(job_id)
        if cached is not None:
            return cached

        lock = self._extract_locks.setdefault(job_id, asyncio.Lock())
        async with lock:
            cached = self._assets.get(job_id)
            if cached is not None:
                return cached

            output_dir = job.output_location or self._content_server.get_project_directory(job_id)
            if output_dir is None:
                raise ExtractionError(f"Project directory not found for job {job_id}")

            logger.info("Extracting assets for job %s", job_id, extra={"job_id": job_id})
            loop = asyncio.get_running_loop()
            try:
                assets = await loop.run_in_executor(
                    None, self._extractor, str(output_dir), job.target_url
                )
            except ExtractionError:
                raise
            except Exception as exc:
                raise ExtractionError(f"Asset extraction failed: {exc}") from exc

            self._assets[job_id] = assets
            return assets

    def get_extracted_assets(self, job_id: str) -> Optional[BrandAssets]:
        return self._assets.get(job_id)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Stop every crawl and wait for the job tasks to settle."""
        for event in self._cancel_events.values():
            event.set()
        await self._supervisor.stop_all()

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Crawl chain
    # ------------------------------------------------------------------

    async def _run_job(self, job_id: str, target_url: str, cancel_event: asyncio.Event) -> None:
        """Background chain for one job. Never raises."""
        try:
            await self._crawl_and_serve(job_id, target_url, cancel_event)
        except asyncio.CancelledError:
            self._fail(job_id, "Service shutting down")
            raise
        except SiteMirrorError as exc:
            self._fail(job_id, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error in crawl job %s", job_id, extra={"job_id": job_id})
            self._fail(job_id, str(exc) or type(exc).__name__)

    async def _crawl_and_serve(self, job_id: str, target_url: str, cancel_event: asyncio.Event) -> None:
        if not self._registry.transition(job_id, JobStatus.RUNNING):
            return

        if cancel_event.is_set():
            self._fail(job_id, CANCELLED_MESSAGE)
            return

        logger.info("Starting crawl for job %s: %s", job_id, target_url, extra={"job_id": job_id})
        crawl = asyncio.ensure_future(
            self._supervisor.start_crawl(job_id, target_url, self._crawl_options)
        )
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({crawl, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not crawl.done():
                # Cancelled by the user or by shutdown: stop the crawl task too
                crawl.cancel()
                await asyncio.gather(crawl, return_exceptions=True)
            cancelled.cancel()

        if cancel_event.is_set():
            if not crawl.cancelled():
                # Exit status of a process we terminated ourselves
                crawl.exception()
            # cancel_job has normally failed the job already; this is a no-op then
            self._fail(job_id, CANCELLED_MESSAGE)
            return

        # Raises CrawlError on failure
        crawl.result()

        if not self._content_server.is_project_ready(job_id):
            raise ContentNotFoundError("Project files not found after crawl completion")

        serving_url = self._content_server.serve_project(job_id)
        output_dir = self._content_server.get_project_directory(job_id)
        if self._registry.transition(
            job_id,
            JobStatus.COMPLETED,
            serving_url=serving_url,
            output_location=str(output_dir) if output_dir else None,
        ):
            logger.info(
                "Job %s completed successfully. Available at: %s",
                job_id, serving_url, extra={"job_id": job_id},
            )

    def _fail(self, job_id: str, error: str) -> None:
        if self._registry.transition(job_id, JobStatus.FAILED, error=error):
            logger.warning("Crawl failed for job %s: %s", job_id, error, extra={"job_id": job_id})

    def _with_progress(self, job: Job) -> Job:
        if job.status != JobStatus.RUNNING:
            return job
        snapshot = self._supervisor.get_progress(job.id)
        if snapshot is not None:
            job.progress = JobProgress(
                files_downloaded=snapshot.files_downloaded,
                total_files=snapshot.total_files,
                current_url=snapshot.current_url,
            )
            job.updated_at = max(job.updated_at, snapshot.updated_at)
        return job
