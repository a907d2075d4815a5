"""
FastAPI Upload Router for Tubely

Two multipart upload endpoints, both keyed by a video record id and both
requiring a bearer token:

- POST /video/{video_id} - form field ``video``: the full ingestion pipeline
  (validate, stage, inspect aspect ratio, remux for fast start, upload to
  object storage, record the reference)
- POST /thumbnail/{video_id} - form field ``thumbnail``: JPEG/PNG stored in
  the local assets directory

Both return the updated video record with ``video_url`` signed for reading.
Errors are raised as TubelyError subclasses and rendered by the application
exception handler.
"""

import logging

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from pydantic import BaseModel, Field

from app.api.dependencies import (
    get_ingestion_service,
    get_storage_service,
    get_thumbnail_service,
    valid_video_id,
)
from app.core.auth import get_current_user_id
from app.core.exceptions import MissingFormFile
from app.models.video import Video
from app.services.ingestion_service import VideoIngestionService
from app.services.storage_service import StorageService
from app.services.thumbnail_service import ThumbnailService


# Configure module logger
logger = logging.getLogger(__name__)

# Multipart field names
VIDEO_FORM_FIELD = "video"
THUMBNAIL_FORM_FIELD = "thumbnail"


# ============================================================================
# Response Models
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str = Field(..., description="Error type/code")
    message: str = Field(..., description="Human-readable error message")
    status_code: int = Field(..., description="HTTP status code")
    stage: Optional[str] = Field(default=None, description="Pipeline stage that failed")


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid id, content type or upload"},
    401: {"model": ErrorResponse, "description": "Missing/invalid token or not the owner"},
    404: {"model": ErrorResponse, "description": "Video not found"},
    500: {"model": ErrorResponse, "description": "Processing or storage failure"},
}


# ============================================================================
# Router Definition
# ============================================================================

router = APIRouter(tags=["upload"], responses=ERROR_RESPONSES)


# ============================================================================
# Upload Endpoints
# ============================================================================


@router.post(
    "/video/{video_id}",
    response_model=Video,
    status_code=status.HTTP_200_OK,
    summary="Upload a video",
    description=(
        "Upload an MP4 for an existing video record. The video is remuxed for "
        "fast start and stored under an aspect-ratio prefix."
    ),
)
async def upload_video(
    video_id: str = Depends(valid_video_id),
    user_id: str = Depends(get_current_user_id),
    video: Optional[UploadFile] = File(default=None, description="MP4 video file"),
    ingestion: VideoIngestionService = Depends(get_ingestion_service),
) -> Video:
    """
    Run the ingestion pipeline for one video upload.

    Raises:
        InvalidInput: Bad id, missing form field, bad content type, too large
        Unauthenticated / Forbidden: Bad token or not the owner
        ProcessingFailure / StorageFailure: Remux, upload or record failed
    """
    if video is None:
        raise MissingFormFile(f"Couldn't get '{VIDEO_FORM_FIELD}' file from form")

    logger.info("Uploading video", extra={"video_id": video_id, "user_id": user_id})
    try:
        return await ingestion.ingest_video(video_id, user_id, video)
    finally:
        await video.close()


@router.post(
    "/thumbnail/{video_id}",
    response_model=Video,
    status_code=status.HTTP_200_OK,
    summary="Upload a thumbnail",
    description="Upload a JPEG or PNG thumbnail for an existing video record.",
)
async def upload_thumbnail(
    video_id: str = Depends(valid_video_id),
    user_id: str = Depends(get_current_user_id),
    thumbnail: Optional[UploadFile] = File(default=None, description="JPEG or PNG image"),
    thumbnails: ThumbnailService = Depends(get_thumbnail_service),
    storage: StorageService = Depends(get_storage_service),
) -> Video:
    """Store a thumbnail and return the updated record."""
    if thumbnail is None:
        raise MissingFormFile(f"Couldn't get '{THUMBNAIL_FORM_FIELD}' file from form")

    logger.info("Uploading thumbnail", extra={"video_id": video_id, "user_id": user_id})
    try:
        updated = await thumbnails.upload_thumbnail(video_id, user_id, thumbnail)
    finally:
        await thumbnail.close()
    return await storage.sign_video(updated)
