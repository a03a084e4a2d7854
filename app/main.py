"""Site Mirror Service - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.router import api_router, root_router
from app.config import Settings, settings as default_settings
from app.core.logging import setup_logging
from app.crawler.supervisor import CrawlSupervisor
from app.jobs.manager import JobManager
from app.jobs.poller import CompletionPoller
from app.jobs.registry import JobRegistry
from app.serving.content_server import ContentServer
from app.storage.downloads import DownloadStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        logger.info("Starting Site Mirror Service on port %s", settings.api_port)

        store = DownloadStore(settings.downloads_dir)
        supervisor = CrawlSupervisor(
            store,
            binary=settings.httrack_path,
            stderr_tail_lines=settings.stderr_tail_lines,
            install_check_timeout=settings.install_check_timeout_seconds,
        )
        content_server = ContentServer(
            store,
            port=settings.content_port,
            host=settings.content_host,
            base_url=settings.content_base_url,
        )
        if settings.content_server_enabled:
            await content_server.start()

        registry = JobRegistry()
        manager = JobManager(registry, supervisor, content_server)
        poller = CompletionPoller(
            manager,
            interval=settings.poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
        )

        # Wire services into the API dependencies
        app.state.store = store
        app.state.supervisor = supervisor
        app.state.content_server = content_server
        app.state.registry = registry
        app.state.job_manager = manager
        app.state.poller = poller

        logger.info("Downloads dir: %s", store.base_dir)
        logger.info("HTTrack binary: %s", settings.httrack_path)
        logger.info("Mirrored sites served at: %s", settings.content_base_url)
        logger.info("Endpoints:")
        logger.info("  POST   /api/crawl              - start a crawl job")
        logger.info("  POST   /api/crawl-and-extract  - crawl, then extract assets")
        logger.info("  GET    /api/status/{jobId}     - job status")
        logger.info("  DELETE /api/crawl/{jobId}      - cancel a job")
        logger.info("  GET    /api/jobs               - list jobs")
        logger.info("  POST   /api/extract-assets     - extract assets of a completed job")
        logger.info("  GET    /api/assets/{jobId}     - extracted assets")
        logger.info("  GET    /api/check-httrack      - HTTrack availability")
        logger.info("  GET    /health                 - health check")

        yield

        # Shutdown
        logger.info("Shutting down Site Mirror Service")
        await poller.stop()
        await manager.shutdown()
        await content_server.stop()

    app = FastAPI(
        title="Site Mirror Service",
        description="Website mirroring with HTTrack, local serving and brand-asset extraction",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Mount routers
    app.include_router(root_router)  # GET /health at root
    app.include_router(api_router)  # All /api/* endpoints
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=default_settings.api_host, port=default_settings.api_port)
