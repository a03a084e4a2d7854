"""Brand-asset extraction API."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.deps import get_job_manager
from app.api.errors import validation_error
from app.errors import AssetsNotFoundError
from app.jobs.manager import JobManager

router = APIRouter()


class ExtractRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: Optional[str] = None


@router.post("/extract-assets")
async def extract_assets(request: ExtractRequest, manager: JobManager = Depends(get_job_manager)):
    """Extract brand assets from a completed crawl (cached after the first run)."""
    job_id = (request.job_id or "").strip()
    if not job_id:
        raise validation_error("jobId is required")

    existing = manager.get_extracted_assets(job_id)
    if existing is not None:
        return {
            "jobId": job_id,
            "status": "completed",
            "assets": existing.to_response(),
            "message": "Assets already extracted",
        }

    assets = await manager.extract_assets(job_id)
    return {
        "jobId": job_id,
        "status": "completed",
        "assets": assets.to_response(),
        "message": "Asset extraction completed successfully",
    }


@router.get("/assets/{job_id}")
async def get_assets(job_id: str, manager: JobManager = Depends(get_job_manager)):
    assets = manager.get_extracted_assets(job_id)
    if assets is None:
        raise AssetsNotFoundError(job_id)
    return assets.to_response()
