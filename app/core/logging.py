"""
Logging configuration.

Two output modes:
- text: human-readable lines for local use
- json: one JSON object per line for log shippers

The mode comes from the LOG_FORMAT setting.
"""

import json
import logging
import sys
from typing import Any, Dict


class JSONFormatter(logging.Formatter):
    """Formatter that renders each record as a JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
        }

        # Crawl-related records carry the job id as an extra
        if hasattr(record, "job_id"):
            log_record["job_id"] = record.job_id

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """Install a single stdout handler on the root logger.

    Calling it again is a no-op so the app factory can be invoked repeatedly
    (tests create several apps in one process).
    """
    root_logger = logging.getLogger()

    if root_logger.handlers:
        return

    root_logger.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger.addHandler(handler)

    # Request logs are noisy while clients poll job status
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
