"""
FastAPI dependency providers shared by the v1 routers.

Each service is built from the injected Settings, so tests can replace any
single collaborator through ``app.dependency_overrides``.
"""

import uuid

from fastapi import Depends, Path, Request

from app.config import Settings, get_settings
from app.core.database import get_db_client
from app.core.exceptions import InvalidIdentifier
from app.services.ingestion_service import VideoIngestionService
from app.services.media_processing import (
    FFmpegRemuxer,
    FFprobeInspector,
    StreamProbe,
    VideoRemuxer,
)
from app.services.storage_service import StorageService
from app.services.thumbnail_service import ThumbnailService
from app.services.video_store import VideoStore


def valid_video_id(video_id: str = Path(..., description="Video UUID")) -> str:
    """
    Parse the ``video_id`` path segment.

    Raises:
        InvalidIdentifier: The segment is not a UUID.
    """
    try:
        return str(uuid.UUID(video_id))
    except ValueError as e:
        raise InvalidIdentifier(details={"video_id": video_id}) from e


def get_video_store() -> VideoStore:
    """VideoStore over the process-wide MongoDB client."""
    return VideoStore(get_db_client().get_videos_collection())


def get_storage_service(
    request: Request, settings: Settings = Depends(get_settings)
) -> StorageService:
    """Storage service built at startup, or a fresh one if startup did not create it."""
    service = getattr(request.app.state, "storage_service", None)
    if service is None:
        service = StorageService(settings)
        request.app.state.storage_service = service
    return service


def get_stream_probe(settings: Settings = Depends(get_settings)) -> StreamProbe:
    return FFprobeInspector(settings)


def get_video_remuxer(settings: Settings = Depends(get_settings)) -> VideoRemuxer:
    return FFmpegRemuxer(settings)


def get_ingestion_service(
    settings: Settings = Depends(get_settings),
    storage: StorageService = Depends(get_storage_service),
    store: VideoStore = Depends(get_video_store),
    probe: StreamProbe = Depends(get_stream_probe),
    remuxer: VideoRemuxer = Depends(get_video_remuxer),
) -> VideoIngestionService:
    return VideoIngestionService(
        settings=settings, storage=storage, store=store, probe=probe, remuxer=remuxer
    )


def get_thumbnail_service(
    settings: Settings = Depends(get_settings),
    store: VideoStore = Depends(get_video_store),
) -> ThumbnailService:
    return ThumbnailService(settings=settings, store=store)
