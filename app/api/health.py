"""Health check endpoint."""

from fastapi import APIRouter

from app.config import settings
from app.jobs.models import utcnow

router = APIRouter()


@router.get("/health")
async def health_check():
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "version": settings.app_version,
    }
