"""On-disk layout of mirrored sites: one directory per crawl job."""

import os
from pathlib import Path
from typing import Optional, Union

from app.config import settings

# Entry documents the content server looks for, in priority order
ENTRY_HTML_FILES = ["index.html", "default.html", "main.html", "home.html"]

# Entry documents the asset extractor looks for, in priority order
INDEX_FILES = ["index.html", "index.htm", "default.html", "default.htm"]


class DownloadStore:
    """Maps job ids to output directories under a single downloads root."""

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        self._base_dir = Path(base_dir or settings.downloads_dir).resolve()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def job_dir(self, job_id: str) -> Path:
        """Path of a job's output directory (not created)."""
        return self._base_dir / job_id

    def ensure_job_dir(self, job_id: str) -> Path:
        """Get or create the output directory for a job."""
        path = self.job_dir(job_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def exists(self, job_id: str) -> bool:
        return self.job_dir(job_id).is_dir()


def find_entry_html(directory: Path) -> Optional[str]:
    """Return the name of the main HTML file in the top level of directory.

    Prefers the well-known names in ENTRY_HTML_FILES, then falls back to the
    first .html file in sorted order.
    """
    if not directory.is_dir():
        return None
    files = sorted(os.listdir(directory))

    for name in ENTRY_HTML_FILES:
        if name in files and (directory / name).is_file():
            return name

    for name in files:
        if name.endswith(".html") and (directory / name).is_file():
            return name
    return None


def find_index_file(directory: Path) -> Optional[Path]:
    """Locate the index document of a mirrored site.

    Checks INDEX_FILES at the top level first, then walks the tree for the
    first index.html / index.htm.
    """
    for name in INDEX_FILES:
        candidate = directory / name
        if candidate.is_file():
            return candidate

    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            if name.lower() in ("index.html", "index.htm"):
                return Path(root) / name
    return None


def resolve_within(directory: Path, relative: str) -> Optional[Path]:
    """Resolve relative against directory, refusing paths that escape it."""
    root = directory.resolve()
    candidate = (root / relative.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    return candidate
