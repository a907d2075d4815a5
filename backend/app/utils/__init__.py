"""
Utilities Package for the Tubely Backend Application.

Modules:
--------
file_validator:
    Content-Type header parsing against allow-lists and upload size checks.

assets:
    Unguessable asset names, aspect-prefixed object keys and local asset
    paths/URLs for thumbnails.

logger:
    Structured logging configuration (JSON or human-readable), uvicorn
    integration and context-carrying logger adapters.
"""

from app.utils.assets import (
    build_video_object_key,
    generate_asset_filename,
    get_asset_path,
    get_asset_url,
    media_type_to_extension,
)
from app.utils.file_validator import (
    ALLOWED_THUMBNAIL_MEDIA_TYPES,
    ALLOWED_VIDEO_MEDIA_TYPES,
    parse_media_type,
    validate_upload_size,
)
from app.utils.logger import add_log_context, setup_logging


__all__ = [
    "ALLOWED_THUMBNAIL_MEDIA_TYPES",
    "ALLOWED_VIDEO_MEDIA_TYPES",
    "add_log_context",
    "build_video_object_key",
    "generate_asset_filename",
    "get_asset_path",
    "get_asset_url",
    "media_type_to_extension",
    "parse_media_type",
    "setup_logging",
    "validate_upload_size",
]
