"""Local HTTP server for mirrored sites.

Each served job is reachable at <base_url>/<job_id>/ and maps onto the job's
output directory. The server is a small FastAPI app run by its own uvicorn
instance on a separate port.
"""

import asyncio
import contextlib
import logging
import os
import socket
from pathlib import Path
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel

from app.config import settings
from app.errors import ContentNotFoundError
from app.storage.downloads import DownloadStore, find_entry_html, resolve_within

logger = logging.getLogger(__name__)


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves process signals to the API server."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


class ProjectInfo(BaseModel):
    exists: bool
    html_file: Optional[str] = None
    file_count: Optional[int] = None


class ContentServer:
    """Serves completed crawl output directories over HTTP."""

    def __init__(
        self,
        store: DownloadStore,
        port: Optional[int] = None,
        host: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self._store = store
        self._port = port or settings.content_port
        self._host = host or settings.content_host
        self._base_url = (base_url or settings.content_base_url).rstrip("/")
        # job_id -> (project directory, entry html filename)
        self._projects: Dict[str, tuple] = {}
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None
        self.app = self._build_app()

    def serve_project(self, job_id: str) -> str:
        """Publish a job's output directory and return its public URL."""
        project_path = self._store.job_dir(job_id)
        if not project_path.is_dir():
            raise ContentNotFoundError(f"Project directory not found: {project_path}")

        html_file = find_entry_html(project_path)
        if not html_file:
            raise ContentNotFoundError(f"No HTML file found in project directory: {project_path}")

        self._projects[job_id] = (project_path, html_file)
        url = f"{self._base_url}/{job_id}"
        logger.info("Project %s available at: %s", job_id, url, extra={"job_id": job_id})
        return url

    def is_project_ready(self, job_id: str) -> bool:
        return find_entry_html(self._store.job_dir(job_id)) is not None

    def is_serving(self, job_id: str) -> bool:
        return job_id in self._projects

    def get_project_directory(self, job_id: str) -> Optional[Path]:
        path = self._store.job_dir(job_id)
        return path if path.is_dir() else None

    def get_project_info(self, job_id: str) -> ProjectInfo:
        path = self._store.job_dir(job_id)
        if not path.is_dir():
            return ProjectInfo(exists=False)
        return ProjectInfo(
            exists=True,
            html_file=find_entry_html(path),
            file_count=len(os.listdir(path)),
        )

    async def start(self) -> bool:
        """Start serving in the background.

        Returns False, with the server left off, when the port cannot be bound.
        """
        if self._task is not None:
            logger.info("Local server is already running")
            return True
        try:
            sock = _bind_socket(self._host, self._port)
        except OSError as exc:
            logger.error(
                "Local server disabled: cannot bind %s:%s (%s)", self._host, self._port, exc
            )
            return False

        config = uvicorn.Config(
            self.app,
            host=self._host,
            port=self._port,
            log_config=None,
            lifespan="off",
        )
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))
        logger.info("Local server running on port %s", self._port)
        return True

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        try:
            await self._task
        except Exception:
            logger.exception("Local server stopped with an error")
        self._server = None
        self._task = None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Mirrored Sites", docs_url=None, redoc_url=None, openapi_url=None)

        @app.get("/{job_id}")
        @app.get("/{job_id}/")
        async def project_root(job_id: str):
            project = self._projects.get(job_id)
            if project is None:
                raise HTTPException(status_code=404, detail="Project not found")
            project_path, html_file = project
            return FileResponse(project_path / html_file)

        @app.get("/{job_id}/{file_path:path}")
        async def project_file(job_id: str, file_path: str):
            project = self._projects.get(job_id)
            if project is None:
                raise HTTPException(status_code=404, detail="Project not found")
            project_path = project[0]
            path = resolve_within(project_path, file_path)
            if path is None:
                raise HTTPException(status_code=404, detail="File not found")
            if path.is_dir():
                entry = find_entry_html(path)
                if entry is None:
                    raise HTTPException(status_code=404, detail="File not found")
                path = path / entry
            if not path.is_file():
                raise HTTPException(status_code=404, detail="File not found")
            return FileResponse(path)

        return app
