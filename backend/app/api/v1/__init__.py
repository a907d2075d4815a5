"""
Tubely API v1 Router Aggregator.

This module combines the v1 endpoint routers into a single APIRouter for
registration with the main FastAPI application under /api/v1.

Router Structure:
    - /videos: Video record endpoints (create, list, get)
    - /upload: Video and thumbnail upload endpoints
"""

from fastapi import APIRouter

from app.api.v1.upload import router as upload_router
from app.api.v1.videos import router as videos_router


# Create the main API v1 router
api_router = APIRouter()

api_router.include_router(videos_router, prefix="/videos")
api_router.include_router(upload_router, prefix="/upload")


__all__ = ["api_router"]
