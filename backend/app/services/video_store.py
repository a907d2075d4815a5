"""
Video record datastore.

``VideoStore`` is the datastore collaborator of the ingestion pipeline: it
creates, reads, lists and replaces video records in the MongoDB ``videos``
collection. Each operation is a single-document command, which MongoDB
applies atomically. Driver errors surface as ``DatastoreUnavailable``.
"""

import logging

from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from app.core.exceptions import DatastoreUnavailable, VideoNotFound
from app.models.video import Video, VideoCreate


logger = logging.getLogger(__name__)

# Upper bound on records returned by a listing
MAX_LIST_LENGTH = 500


def _to_document(video: Video) -> dict[str, Any]:
    doc = video.model_dump()
    doc["_id"] = doc.pop("id")
    return doc


def _from_document(doc: dict[str, Any]) -> Video:
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return Video.model_validate(doc)


class VideoStore:
    """
    CRUD access to video records.

    Args:
        collection: Motor collection holding video documents
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def create_video(self, user_id: str, data: VideoCreate) -> Video:
        """Insert a new draft record owned by ``user_id``."""
        video = Video(user_id=user_id, title=data.title, description=data.description)
        try:
            await self._collection.insert_one(_to_document(video))
        except PyMongoError as e:
            raise DatastoreUnavailable("Couldn't create video", details={"error": str(e)}) from e
        logger.info("Created video record", extra={"video_id": video.id, "user_id": user_id})
        return video

    async def get_video(self, video_id: str) -> Video:
        """
        Fetch one record.

        Raises:
            VideoNotFound: No record has this id
            DatastoreUnavailable: Driver error
        """
        try:
            doc = await self._collection.find_one({"_id": video_id})
        except PyMongoError as e:
            raise DatastoreUnavailable("Couldn't get video", details={"error": str(e)}) from e
        if doc is None:
            raise VideoNotFound(details={"video_id": video_id})
        return _from_document(doc)

    async def list_videos(self, user_id: str) -> list[Video]:
        """Records owned by ``user_id``, newest first."""
        try:
            cursor = self._collection.find({"user_id": user_id}).sort("created_at", DESCENDING)
            docs = await cursor.to_list(length=MAX_LIST_LENGTH)
        except PyMongoError as e:
            raise DatastoreUnavailable("Couldn't list videos", details={"error": str(e)}) from e
        return [_from_document(doc) for doc in docs]

    async def update_video(self, video: Video) -> None:
        """
        Replace the stored record with ``video``.

        Raises:
            VideoNotFound: The record was deleted concurrently
            DatastoreUnavailable: Driver error
        """
        try:
            result = await self._collection.replace_one({"_id": video.id}, _to_document(video))
        except PyMongoError as e:
            raise DatastoreUnavailable("Couldn't update video", details={"error": str(e)}) from e
        if result.matched_count == 0:
            raise VideoNotFound(details={"video_id": video.id})
        logger.debug("Updated video record", extra={"video_id": video.id})
