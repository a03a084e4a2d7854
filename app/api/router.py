"""Aggregate all API routers."""

from fastapi import APIRouter

from app.api.assets import router as assets_router
from app.api.crawl import router as crawl_router
from app.api.health import router as health_router

api_router = APIRouter(prefix="/api")
api_router.include_router(crawl_router, tags=["crawl"])
api_router.include_router(assets_router, tags=["assets"])

# GET /health lives at the root, outside /api
root_router = APIRouter()
root_router.include_router(health_router, tags=["health"])
