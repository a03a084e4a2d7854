"""HTTrack process supervisor.

Owns at most one child process per job id, streams its output into a
progress snapshot, and reports exactly one outcome per crawl.
"""

import asyncio
import logging
from collections import deque
from pathlib import Path
from typing import Deque, Dict, List, Optional

from pydantic import BaseModel, Field

from app.config import settings
from app.crawler.progress import ProgressSnapshot, apply_progress_lines, split_lines
from app.crawler.urls import is_valid_target_url
from app.errors import InvalidUrlError, ProcessFailedError, ProcessSpawnError
from app.storage.downloads import DownloadStore

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 4096

# Grace period between SIGTERM and SIGKILL when reaping a child we stopped
_REAP_TIMEOUT_SECONDS = 5.0


class CrawlOptions(BaseModel):
    """Mirror settings passed to HTTrack for one crawl."""
    depth: int = Field(default_factory=lambda: settings.crawl_depth, ge=1)
    max_files: int = Field(default_factory=lambda: settings.crawl_max_files, ge=1)
    respect_robots: bool = Field(default_factory=lambda: settings.crawl_respect_robots)
    quiet: bool = Field(default_factory=lambda: settings.crawl_quiet)


def build_httrack_args(target_url: str, output_path: Path, options: CrawlOptions) -> List[str]:
    args = [
        target_url,
        "--mirror",
        f"--path={output_path}",
        f"--depth={options.depth}",
        f"--max-files={options.max_files}",
        "--robots=1" if options.respect_robots else "--robots=0",
    ]
    if options.quiet:
        args.append("--quiet")
    args += ["--keep-alive", "--display"]
    return args


class CrawlSupervisor:
    """Runs HTTrack as a child process, one per job id."""

    def __init__(
        self,
        store: DownloadStore,
        binary: Optional[str] = None,
        stderr_tail_lines: Optional[int] = None,
        install_check_timeout: Optional[float] = None,
    ):
        self._store = store
        self._binary = binary or settings.httrack_path
        self._stderr_tail_lines = stderr_tail_lines or settings.stderr_tail_lines
        self._install_check_timeout = install_check_timeout or settings.install_check_timeout_seconds
        self._processes: Dict[str, asyncio.subprocess.Process] = {}
        self._progress: Dict[str, ProgressSnapshot] = {}

    async def start_crawl(
        self,
        job_id: str,
        target_url: str,
        options: Optional[CrawlOptions] = None,
    ) -> None:
        """Mirror target_url into the job's directory; return when HTTrack exits.

        Raises:
            InvalidUrlError: target_url is not an absolute http(s) URL.
            ProcessSpawnError: the binary could not be launched.
            ProcessFailedError: the process exited with a non-zero code.
        """
        if not is_valid_target_url(target_url):
            raise InvalidUrlError(target_url)

        options = options or CrawlOptions()
        output_path = self._store.ensure_job_dir(job_id)
        args = build_httrack_args(target_url, output_path, options)

        logger.info("Starting HTTrack for job %s: %s", job_id, target_url, extra={"job_id": job_id})
        logger.debug("HTTrack command: %s %s", self._binary, " ".join(args))

        try:
            process = await asyncio.create_subprocess_exec(
                self._binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("HTTrack process error for job %s: %s", job_id, exc, extra={"job_id": job_id})
            raise ProcessSpawnError(self._binary, str(exc)) from exc

        self._processes[job_id] = process
        stderr_tail: Deque[str] = deque(maxlen=self._stderr_tail_lines)

        try:
            await asyncio.gather(
                self._read_stdout(job_id, target_url, process.stdout),
                self._read_stderr(job_id, process.stderr, stderr_tail),
            )
            exit_code = await process.wait()
        finally:
            if process.returncode is None:
                # Caller was cancelled while HTTrack was still running
                self._terminate(process)
                await self._reap(process)
            self._deregister(job_id, process)

        if exit_code != 0:
            error = ProcessFailedError(exit_code, "\n".join(stderr_tail).strip())
            logger.error("HTTrack failed for job %s: %s", job_id, error, extra={"job_id": job_id})
            raise error

        logger.info("HTTrack completed successfully for job %s", job_id, extra={"job_id": job_id})

    def stop_crawl(self, job_id: str) -> None:
        """Send SIGTERM to the job's process, if any, and forget it."""
        process = self._processes.pop(job_id, None)
        self._progress.pop(job_id, None)
        if process is None:
            return
        logger.info("Stopping HTTrack process for job %s", job_id, extra={"job_id": job_id})
        self._terminate(process)

    async def stop_all(self) -> None:
        """Stop every registered process and wait for each to exit."""
        processes = list(self._processes.values())
        for job_id in list(self._processes):
            self.stop_crawl(job_id)
        if processes:
            await asyncio.gather(*(self._reap(process) for process in processes))

    def get_progress(self, job_id: str) -> Optional[ProgressSnapshot]:
        return self._progress.get(job_id)

    def is_running(self, job_id: str) -> bool:
        return job_id in self._processes

    def active_jobs(self) -> List[str]:
        return list(self._processes)

    async def check_installation(self) -> bool:
        """Whether `httrack --version` launches and exits cleanly. Never raises."""
        try:
            process = await asyncio.create_subprocess_exec(
                self._binary,
                "--version",
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.info("HTTrack not available at %s: %s", self._binary, exc)
            return False

        try:
            exit_code = await asyncio.wait_for(process.wait(), timeout=self._install_check_timeout)
        except asyncio.TimeoutError:
            logger.warning("HTTrack version check timed out after %ss", self._install_check_timeout)
            self._terminate(process)
            await self._reap(process)
            return False
        return exit_code == 0

    async def _read_stdout(
        self,
        job_id: str,
        target_url: str,
        stream: Optional[asyncio.StreamReader],
    ) -> None:
        if stream is None:
            return
        pending = ""
        while True:
            chunk = await stream.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            lines, pending = split_lines(pending + chunk.decode("utf-8", errors="replace"))
            self._update_progress(job_id, target_url, lines)
        if pending:
            self._update_progress(job_id, target_url, [pending])

    async def _read_stderr(
        self,
        job_id: str,
        stream: Optional[asyncio.StreamReader],
        tail: Deque[str],
    ) -> None:
        if stream is None:
            return
        pending = ""
        while True:
            chunk = await stream.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            lines, pending = split_lines(pending + chunk.decode("utf-8", errors="replace"))
            self._record_stderr(job_id, lines, tail)
        if pending:
            self._record_stderr(job_id, [pending], tail)

    @staticmethod
    def _record_stderr(job_id: str, lines: List[str], tail: Deque[str]) -> None:
        for line in lines:
            line = line.rstrip()
            if not line:
                continue
            tail.append(line)
            logger.warning("HTTrack stderr for job %s: %s", job_id, line, extra={"job_id": job_id})

    def _update_progress(self, job_id: str, target_url: str, lines: List[str]) -> None:
        for line in lines:
            if line.strip():
                logger.debug("[httrack %s] %s", job_id, line)
        # A stopped job has been deregistered; late output is dropped
        if job_id not in self._processes:
            return
        current = self._progress.get(job_id) or ProgressSnapshot(current_url=target_url)
        self._progress[job_id] = apply_progress_lines(current, lines)

    def _deregister(self, job_id: str, process: asyncio.subprocess.Process) -> None:
        if self._processes.get(job_id) is process:
            del self._processes[job_id]
            self._progress.pop(job_id, None)

    @staticmethod
    async def _reap(process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(process.wait(), timeout=_REAP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("HTTrack process %s ignored SIGTERM, killing it", process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    @staticmethod
    def _terminate(process: asyncio.subprocess.Process) -> None:
        try:
            process.terminate()
        except ProcessLookupError:
            # Already exited
            pass
