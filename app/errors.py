"""Exceptions raised by the crawl, serving and extraction layers."""

from __future__ import annotations

from typing import Optional


class SiteMirrorError(Exception):
    """Base exception for all service failures."""


class CrawlError(SiteMirrorError):
    """Base exception for mirroring-tool failures."""


class InvalidUrlError(CrawlError):
    """Raised when a target URL is not an absolute http(s) URL."""

    def __init__(self, url: str):
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class ProcessSpawnError(CrawlError):
    """Raised when the mirroring binary cannot be launched at all."""

    def __init__(self, binary: str, reason: str):
        super().__init__(f"Could not launch HTTrack ({binary}): {reason}")
        self.binary = binary
        self.reason = reason


class ProcessFailedError(CrawlError):
    """Raised when the mirroring process exits with a non-zero code."""

    def __init__(self, exit_code: Optional[int], stderr_tail: str = ""):
        message = f"HTTrack failed with code {exit_code}"
        if stderr_tail:
            message = f"{message}. Error output: {stderr_tail}"
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail


class ContentNotFoundError(SiteMirrorError):
    """Raised when a job's output directory or entry HTML file is missing."""


class JobNotFoundError(SiteMirrorError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class AssetsNotFoundError(SiteMirrorError):
    def __init__(self, job_id: str):
        super().__init__(
            f"No assets found for job {job_id}. Run asset extraction first."
        )
        self.job_id = job_id


class InvalidJobStateError(SiteMirrorError):
    """Raised when an operation needs a job in a different lifecycle stage."""

    def __init__(self, job_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} for job {job_id} - job status is {status}")
        self.job_id = job_id
        self.status = status


class ExtractionError(SiteMirrorError):
    """Raised when brand-asset extraction fails."""
