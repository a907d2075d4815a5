"""
FastAPI Video Router for Tubely

Video record endpoints:
- POST / - create a draft record owned by the caller
- GET / - list the caller's records, newest first
- GET /{video_id} - fetch one record

Returned records have ``video_url`` resolved through the storage service, so
presigned URLs are minted at read time and expire relative to the read.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_storage_service, get_video_store, valid_video_id
from app.api.v1.upload import ERROR_RESPONSES
from app.core.auth import get_current_user_id
from app.core.exceptions import Forbidden
from app.models.video import Video, VideoCreate
from app.services.storage_service import StorageService
from app.services.video_store import VideoStore


logger = logging.getLogger(__name__)

router = APIRouter(tags=["videos"], responses=ERROR_RESPONSES)


@router.post(
    "",
    response_model=Video,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft video",
)
async def create_video(
    body: VideoCreate,
    user_id: str = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
) -> Video:
    """Create a record with no video or thumbnail yet."""
    return await store.create_video(user_id, body)


@router.get("", response_model=list[Video], summary="List my videos")
async def list_videos(
    user_id: str = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
    storage: StorageService = Depends(get_storage_service),
) -> list[Video]:
    """List the caller's records with readable video URLs."""
    videos = await store.list_videos(user_id)
    return list(await asyncio.gather(*(storage.sign_video(v) for v in videos)))


@router.get("/{video_id}", response_model=Video, summary="Get a video")
async def get_video(
    video_id: str = Depends(valid_video_id),
    user_id: str = Depends(get_current_user_id),
    store: VideoStore = Depends(get_video_store),
    storage: StorageService = Depends(get_storage_service),
) -> Video:
    """
    Fetch one record owned by the caller.

    Raises:
        VideoNotFound: No such record
        Forbidden: The record belongs to another user
        ReferenceMalformed: The stored video reference can't be decoded
    """
    video = await store.get_video(video_id)
    if video.user_id != user_id:
        raise Forbidden("Not authorized to view this video")
    return await storage.sign_video(video)
