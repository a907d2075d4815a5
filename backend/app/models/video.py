"""
Video Pydantic models for Tubely.

This module defines the persisted video record, the request body used to
create draft records, the aspect-ratio classification, and the models used to
parse ffprobe's JSON stream report.

The ingestion pipeline reads only ``user_id`` (for the ownership check) and
writes only ``video_url`` (the storage reference) on a record.
"""

import uuid

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class AspectRatio(str, Enum):
    """
    Aspect-ratio class of a video, used as the object key prefix.

    - PORTRAIT: within 1% of 9:16
    - LANDSCAPE: within 1% of 16:9
    - OTHER: anything else, or when the stream could not be inspected
    """

    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    OTHER = "other"


# =============================================================================
# VIDEO RECORD
# =============================================================================


class VideoCreate(BaseModel):
    """Request body for creating a draft video record."""

    title: str = Field(..., min_length=1, max_length=200, description="Video title")
    description: str = Field(default="", max_length=5000, description="Video description")


class Video(BaseModel):
    """
    Persisted video record.

    Attributes:
        id: UUID string, unique per record (stored as the document ``_id``)
        user_id: Identifier of the owning user
        title: Display title
        description: Free-form description
        thumbnail_url: Public URL of the locally served thumbnail, if any
        video_url: Storage reference of the processed video, if any. In
            presigned mode this is ``"<bucket>,<key>"`` when persisted and a
            signed URL when returned to a client.
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Video UUID")

    user_id: str = Field(..., min_length=1, description="Owning user's ID")

    title: str = Field(..., min_length=1, max_length=200)

    description: str = Field(default="", max_length=5000)

    thumbnail_url: str | None = Field(default=None, description="Thumbnail URL")

    video_url: str | None = Field(default=None, description="Video storage reference or URL")

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b0a0c8e-3f55-4c39-9a8b-1f6a3e5d2c11",
                "user_id": "4f9d3c62-2a6b-4a8e-9d2f-7c1b5e8a0d34",
                "title": "Boots unboxing",
                "description": "",
                "thumbnail_url": "http://localhost:8091/assets/0b0a0c8e-3f55-4c39-9a8b-1f6a3e5d2c11.png",
                "video_url": "https://tubely-videos.s3.amazonaws.com/landscape/x7Q.mp4?X-Amz-Signature=...",
                "created_at": "2026-01-15T10:30:00Z",
                "updated_at": "2026-01-15T10:32:00Z",
            }
        },
    )

    def touch(self) -> None:
        """Refresh ``updated_at``."""
        self.updated_at = datetime.now(UTC)


# =============================================================================
# STREAM PROBE
# =============================================================================


class StreamInfo(BaseModel):
    """Dimensions of the first video stream of a file."""

    width: int
    height: int


class ProbeStream(BaseModel):
    """One entry of ffprobe's ``streams`` array. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    index: int | None = None
    codec_type: str | None = None
    width: int | None = None
    height: int | None = None


class ProbeOutput(BaseModel):
    """Top-level ffprobe ``-print_format json -show_streams`` document."""

    model_config = ConfigDict(extra="ignore")

    streams: list[ProbeStream] = Field(default_factory=list)

    def first_video_stream(self) -> ProbeStream | None:
        """First stream tagged as video, else the first stream, else None."""
        for stream in self.streams:
            if stream.codec_type == "video":
                return stream
        return self.streams[0] if self.streams else None


__all__ = [
    "AspectRatio",
    "ProbeOutput",
    "ProbeStream",
    "StreamInfo",
    "Video",
    "VideoCreate",
]
