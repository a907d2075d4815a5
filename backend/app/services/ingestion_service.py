"""
Video ingestion orchestrator for Tubely.

This module sequences one video upload through the pipeline, strictly in
order and without branching back:

    Received -> Authorized -> Validated -> Staged -> Inspected -> Remuxed
             -> Uploaded -> Recorded -> Responded

Any failure moves the upload to Failed:
- the raised TubelyError is tagged with the stage that failed and carries its
  HTTP status class
- every local file created so far is removed
- remote state is left alone: an object uploaded before a later failure stays
  in the bucket, and the record update is the final write

Aspect-ratio inspection is the one step allowed to fail softly. If the probe
fails the video is classified "other" and ingestion continues.

Local files live in a per-upload working directory created only after the
ownership check and the content-type gate have passed. The original staged
file is deleted as soon as the remuxed copy exists; the working directory
(and the remuxed copy with it) is deleted when ingestion ends.
"""

import logging
import shutil
import tempfile

from enum import Enum
from pathlib import Path

import aiofiles

from fastapi import UploadFile

from app.config import Settings
from app.core.exceptions import (
    Forbidden,
    InvalidInput,
    NoStreamInfo,
    ProbeFailed,
    StorageFailure,
    TubelyError,
)
from app.models.video import AspectRatio, Video
from app.services.media_processing import StreamProbe, VideoRemuxer, classify_aspect_ratio
from app.services.storage_service import StorageService
from app.services.video_store import VideoStore
from app.utils.assets import (
    build_video_object_key,
    generate_asset_filename,
    media_type_to_extension,
)
from app.utils.file_validator import ALLOWED_VIDEO_MEDIA_TYPES, parse_media_type, validate_upload_size
from app.utils.logger import add_log_context


logger = logging.getLogger(__name__)

# Prefix of per-upload working directories
WORKDIR_PREFIX = "tubely-upload-"


class IngestionStage(str, Enum):
    """States of one video upload."""

    RECEIVED = "received"
    AUTHORIZED = "authorized"
    VALIDATED = "validated"
    STAGED = "staged"
    INSPECTED = "inspected"
    REMUXED = "remuxed"
    UPLOADED = "uploaded"
    RECORDED = "recorded"
    RESPONDED = "responded"
    FAILED = "failed"


class VideoIngestionService:
    """
    Orchestrates validation, staging, inspection, remuxing, upload and
    recording of one uploaded video.

    Collaborators are injected so tests can replace the media tools, the
    object store and the datastore independently.

    Attributes:
        _settings: Upload limits and temp directory
        _storage: Object store gateway
        _store: Video record datastore
        _probe: Stream inspector
        _remuxer: Container remuxer
    """

    def __init__(
        self,
        settings: Settings,
        storage: StorageService,
        store: VideoStore,
        probe: StreamProbe,
        remuxer: VideoRemuxer,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._store = store
        self._probe = probe
        self._remuxer = remuxer

    async def ingest_video(self, video_id: str, user_id: str, upload: UploadFile) -> Video:
        """
        Run one upload through the pipeline.

        Args:
            video_id: Identifier of the target video record
            user_id: Authenticated user making the request
            upload: Multipart file part carrying the video bytes

        Returns:
            The updated record, with ``video_url`` resolved for reading

        Raises:
            TubelyError: Any pipeline failure, tagged with the failing stage
        """
        log = add_log_context(logger, video_id=video_id, user_id=user_id)
        stage = IngestionStage.RECEIVED
        workdir: Path | None = None

        try:
            stage = IngestionStage.AUTHORIZED
            video = await self._authorize(video_id, user_id)

            stage = IngestionStage.VALIDATED
            media_type = parse_media_type(upload.content_type, ALLOWED_VIDEO_MEDIA_TYPES)

            stage = IngestionStage.STAGED
            workdir = self._create_workdir()
            staged = workdir / f"upload.{media_type_to_extension(media_type)}"
            size = await self._stage(upload, staged)
            log.info("Staged upload", extra={"stage": stage.value, "size": size})

            stage = IngestionStage.INSPECTED
            aspect = await self._inspect(staged, log)
            log.info("Classified aspect ratio", extra={"stage": stage.value, "aspect": aspect.value})

            stage = IngestionStage.REMUXED
            processed = await self._remuxer.remux(staged)
            staged.unlink(missing_ok=True)

            stage = IngestionStage.UPLOADED
            key = build_video_object_key(aspect.value, generate_asset_filename(media_type))
            await self._storage.put_file(processed, key, media_type)

            stage = IngestionStage.RECORDED
            video.video_url = self._storage.build_reference(key)
            video.touch()
            await self._store.update_video(video)
            log.info("Recorded video reference", extra={"stage": stage.value, "key": key})

            stage = IngestionStage.RESPONDED
            return await self._storage.sign_video(video)

        except TubelyError as e:
            e.with_stage(stage.value)
            log.error(
                f"Video ingestion failed: {e.message}",
                extra={
                    "stage": stage.value,
                    "state": IngestionStage.FAILED.value,
                    "error_code": e.error_code,
                    "details": e.details,
                },
            )
            raise

        finally:
            if workdir is not None:
                self._remove_workdir(workdir, log)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _authorize(self, video_id: str, user_id: str) -> Video:
        video = await self._store.get_video(video_id)
        if video.user_id != user_id:
            raise Forbidden(details={"owner_id": video.user_id})
        return video

    def _create_workdir(self) -> Path:
        try:
            return Path(tempfile.mkdtemp(prefix=WORKDIR_PREFIX, dir=self._settings.upload_temp_dir))
        except OSError as e:
            raise StorageFailure(
                "Couldn't create staging directory", details={"error": str(e)}
            ) from e

    async def _stage(self, upload: UploadFile, dest: Path) -> int:
        """
        Copy the upload body to ``dest`` in chunks, enforcing the size cap
        while reading so an oversized body is never fully buffered.
        """
        max_bytes = self._settings.max_video_upload_bytes
        chunk_size = self._settings.upload_chunk_size
        size = 0

        try:
            async with aiofiles.open(dest, "wb") as staged:
                while True:
                    chunk = await upload.read(chunk_size)
                    if not chunk:
                        break
                    size += len(chunk)
                    validate_upload_size(size, max_bytes)
                    await staged.write(chunk)
        except OSError as e:
            raise StorageFailure(
                "Couldn't write staged upload", details={"error": str(e)}
            ) from e

        if size == 0:
            raise InvalidInput("Uploaded video is empty")
        return size

    async def _inspect(self, staged: Path, log: logging.LoggerAdapter) -> AspectRatio:
        try:
            info = await self._probe.probe(staged)
        except (ProbeFailed, NoStreamInfo) as e:
            log.warning(
                f"Aspect ratio probe failed, classifying as other: {e.message}",
                extra={"stage": IngestionStage.INSPECTED.value, "details": e.details},
            )
            return AspectRatio.OTHER
        return classify_aspect_ratio(info.width, info.height)

    @staticmethod
    def _remove_workdir(workdir: Path, log: logging.LoggerAdapter) -> None:
        try:
            shutil.rmtree(workdir)
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning(f"Failed to clean up staging directory '{workdir}': {e}")
        else:
            log.debug("Cleaned up staging directory", extra={"workdir": str(workdir)})
