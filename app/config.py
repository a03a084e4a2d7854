"""Application configuration via environment variables."""

import sys
from functools import lru_cache
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


def _default_httrack_path() -> str:
    if sys.platform == "win32":
        return r"C:\Program Files (x86)\WinHTTrack\httrack.exe"
    return "httrack"


class Settings(BaseSettings):
    # API server
    api_host: str = "0.0.0.0"
    api_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("HTTRACK_MCP_PORT", "API_PORT", "api_port"),
    )
    app_version: str = "1.0.0"
    cors_origins: List[str] = ["*"]

    # Content server (serves mirrored sites)
    content_server_enabled: bool = True
    content_host: str = "0.0.0.0"
    content_port: int = 8080
    content_public_url: str = ""  # defaults to http://localhost:<content_port>

    # Mirroring tool
    downloads_dir: str = "downloads"
    httrack_path: str = Field(default_factory=_default_httrack_path)
    crawl_depth: int = 2
    crawl_max_files: int = 1000
    crawl_respect_robots: bool = True
    crawl_quiet: bool = True
    stderr_tail_lines: int = 20
    install_check_timeout_seconds: float = 10.0

    # Completion poller
    poll_interval_seconds: float = 5.0
    poll_max_attempts: int = 240  # 20 minutes at the default interval

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def content_base_url(self) -> str:
        if self.content_public_url:
            return self.content_public_url.rstrip("/")
        return f"http://localhost:{self.content_port}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
