"""Progress snapshots parsed from HTTrack's text output.

HTTrack does not emit structured progress, so these helpers match a few known
line shapes and ignore everything else. They do no I/O: text in, snapshot out.
"""

import re
from datetime import datetime
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.jobs.models import utcnow

FILES_RE = re.compile(r"(\d+)/(\d+)\s+files")
DOWNLOADING_RE = re.compile(r"Downloading:\s+(.+)")
RATE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*KB/s")

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


class ProgressSnapshot(BaseModel):
    """Latest structured reading of one crawl's output."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    files_downloaded: int = Field(default=0, ge=0)
    total_files: int = Field(default=0, ge=0)
    current_url: str = ""
    bytes_downloaded: int = Field(default=0, ge=0)
    transfer_rate_kbps: float = Field(default=0.0, ge=0, alias="transferRateKBps")
    estimated_seconds_remaining: float = Field(default=0.0, ge=0)
    # When a line last changed this snapshot
    updated_at: datetime = Field(default_factory=utcnow, exclude=True)


def parse_progress_line(line: str) -> Dict[str, object]:
    """Return the snapshot fields a single output line reports (maybe none)."""
    updates: Dict[str, object] = {}

    match = FILES_RE.search(line)
    if match:
        updates["files_downloaded"] = int(match.group(1))
        updates["total_files"] = int(match.group(2))

    match = DOWNLOADING_RE.search(line)
    if match:
        url = match.group(1).strip()
        if url:
            updates["current_url"] = url

    match = RATE_RE.search(line)
    if match:
        updates["transfer_rate_kbps"] = float(match.group(1))

    return updates


def split_lines(buffer: str) -> Tuple[List[str], str]:
    """Split buffered output into complete lines plus the unterminated rest."""
    parts = _LINE_SPLIT_RE.split(buffer)
    return parts[:-1], parts[-1]


def apply_progress_lines(snapshot: ProgressSnapshot, lines: List[str]) -> ProgressSnapshot:
    """Fold parsed lines into a new snapshot; later lines win.

    Returns the original object untouched when no line matched.
    """
    updates: Dict[str, object] = {}
    for line in lines:
        updates.update(parse_progress_line(line))
    if not updates:
        return snapshot
    updates["updated_at"] = utcnow()
    return snapshot.model_copy(update=updates)


def apply_progress_chunk(snapshot: ProgressSnapshot, chunk: str) -> ProgressSnapshot:
    """Parse a whole text chunk (every line, including an unterminated tail)."""
    return apply_progress_lines(snapshot, _LINE_SPLIT_RE.split(chunk))
