"""
Models Package for Tubely.

Pydantic models for video records and for the subset of ffprobe output the
ingestion pipeline reads.

Example Usage:
    ```python
    from app.models import AspectRatio, Video, VideoCreate

    video = Video(user_id="6a7c...", title="Boots demo")
    prefix = AspectRatio.LANDSCAPE.value
    ```
"""

from app.models.video import (
    AspectRatio,
    ProbeOutput,
    ProbeStream,
    StreamInfo,
    Video,
    VideoCreate,
)


__all__ = [
    "AspectRatio",
    "ProbeOutput",
    "ProbeStream",
    "StreamInfo",
    "Video",
    "VideoCreate",
]
