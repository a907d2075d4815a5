"""
Thumbnail upload service.

Thumbnails take the simple path: validate the image type, check ownership,
write the bytes to ``<assets_root>/<video_id>.<ext>`` (served under
``/assets``) and point the record's ``thumbnail_url`` at it. There is no
processing and no object storage involved.
"""

import logging

from pathlib import Path

import aiofiles

from fastapi import UploadFile

from app.config import Settings
from app.core.exceptions import Forbidden, InvalidInput, StorageFailure
from app.models.video import Video
from app.services.video_store import VideoStore
from app.utils.assets import get_asset_disk_path, get_asset_path, get_asset_url
from app.utils.file_validator import (
    ALLOWED_THUMBNAIL_MEDIA_TYPES,
    parse_media_type,
    validate_upload_size,
)


logger = logging.getLogger(__name__)


class ThumbnailService:
    """Stores thumbnails in the local assets directory."""

    def __init__(self, settings: Settings, store: VideoStore) -> None:
        self._settings = settings
        self._store = store

    async def upload_thumbnail(self, video_id: str, user_id: str, upload: UploadFile) -> Video:
        """
        Validate, store and record a thumbnail for ``video_id``.

        The content type is checked before anything is written, so a rejected
        upload leaves no file behind.

        Raises:
            InvalidContentType, UnsupportedMediaType: Not a JPEG or PNG
            UploadTooLarge: Body exceeds ``max_thumbnail_upload_mb``
            VideoNotFound, Forbidden: Missing record or not the owner
            StorageFailure: The asset file couldn't be written
        """
        media_type = parse_media_type(upload.content_type, ALLOWED_THUMBNAIL_MEDIA_TYPES)

        video = await self._store.get_video(video_id)
        if video.user_id != user_id:
            raise Forbidden(details={"owner_id": video.user_id})

        data = await upload.read(self._settings.max_thumbnail_upload_bytes + 1)
        validate_upload_size(len(data), self._settings.max_thumbnail_upload_bytes)
        if not data:
            raise InvalidInput("Uploaded thumbnail is empty")

        asset_path = get_asset_path(video_id, media_type)
        await self._write_asset(get_asset_disk_path(self._settings, asset_path), data)
        self._remove_stale_assets(video_id, media_type)

        video.thumbnail_url = get_asset_url(self._settings, asset_path)
        video.touch()
        await self._store.update_video(video)

        logger.info(
            "Stored thumbnail",
            extra={"video_id": video_id, "asset_path": asset_path, "size": len(data)},
        )
        return video

    def _remove_stale_assets(self, video_id: str, media_type: str) -> None:
        """Delete thumbnails left from an earlier upload of another image type."""
        for other in ALLOWED_THUMBNAIL_MEDIA_TYPES - {media_type}:
            stale = get_asset_disk_path(self._settings, get_asset_path(video_id, other))
            try:
                stale.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(
                    f"Failed to remove stale thumbnail '{stale}': {e}",
                    extra={"video_id": video_id},
                )

    async def _write_asset(self, path: Path, data: bytes) -> None:
        try:
            async with aiofiles.open(path, "wb") as asset:
                await asset.write(data)
        except OSError as e:
            raise StorageFailure(
                "Failed to create thumbnail file", details={"error": str(e)}
            ) from e
