"""
Asset naming and path helpers.

Object keys for processed videos are derived from 32 bytes of secure
randomness so they cannot be guessed or enumerated. Thumbnails use the stable
``<video_id>.<ext>`` name because re-uploading a thumbnail replaces it.
"""

import logging
import secrets

from pathlib import Path

from app.config import Settings
from app.core.exceptions import UnsupportedMediaType


logger = logging.getLogger(__name__)

# Bytes of randomness in generated asset names
ASSET_NAME_RANDOM_BYTES = 32

# Route prefix the local assets directory is mounted under
ASSETS_URL_PREFIX = "/assets"


def media_type_to_extension(media_type: str) -> str:
    """
    Return the file extension for a ``type/subtype`` media type.

    Raises:
        UnsupportedMediaType: If there is no slash-delimited subtype.
    """
    parts = media_type.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise UnsupportedMediaType(f"Media type '{media_type}' has no subtype")
    return parts[1]


def generate_asset_filename(media_type: str) -> str:
    """
    Generate an unguessable filename for a stored asset.

    The name is 32 random bytes, URL-safe base64 encoded without padding,
    followed by the extension derived from ``media_type``.

    Example:
        >>> generate_asset_filename("video/mp4")  # doctest: +SKIP
        'mBD3y7o2r5...QkE.mp4'
    """
    ext = media_type_to_extension(media_type)
    return f"{secrets.token_urlsafe(ASSET_NAME_RANDOM_BYTES)}.{ext}"


def get_asset_path(video_id: str, media_type: str) -> str:
    """Stable asset filename for a caller-supplied identifier."""
    return f"{video_id}.{media_type_to_extension(media_type)}"


def build_video_object_key(aspect: str, filename: str) -> str:
    """Object key for a processed video: the aspect class is the key prefix."""
    return f"{aspect}/{filename}"


def get_asset_disk_path(settings: Settings, asset_path: str) -> Path:
    """Location of an asset inside the local assets directory."""
    return Path(settings.assets_root) / asset_path


def get_asset_url(settings: Settings, asset_path: str) -> str:
    """Public URL of a locally served asset."""
    return f"{settings.public_assets_base_url}{ASSETS_URL_PREFIX}/{asset_path}"


def ensure_assets_dir(settings: Settings) -> Path:
    """Create the local assets directory if it does not exist."""
    root = Path(settings.assets_root)
    if not root.exists():
        root.mkdir(mode=0o755, parents=True)
        logger.info("Created assets directory", extra={"assets_root": str(root)})
    return root


__all__ = [
    "ASSETS_URL_PREFIX",
    "build_video_object_key",
    "ensure_assets_dir",
    "generate_asset_filename",
    "get_asset_disk_path",
    "get_asset_path",
    "get_asset_url",
    "media_type_to_extension",
]
