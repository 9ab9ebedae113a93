"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from jobsync.api.v1.health import router as health_router
from jobsync.api.v1.scraper import router as scraper_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(scraper_router, tags=["scraper"])
