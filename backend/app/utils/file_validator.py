"""
Media Validation Utilities Module for Tubely

This module is the content-type gate for every upload path. It must run before
any byte of an upload is written to disk or sent to object storage:
- Parses a raw Content-Type header value into a canonical ``type/subtype``
- Strips and syntax-checks parameters (``; codecs=avc1``, ``; charset=...``)
- Checks the canonical media type against a caller-supplied allow-list
- Enforces upload size limits

Failures raise the InvalidInput family from app.core.exceptions, which the
HTTP layer maps to 400 responses.
"""

import re

from collections.abc import Collection

from app.core.exceptions import InvalidContentType, UnsupportedMediaType, UploadTooLarge


# =============================================================================
# CONSTANTS - Allow-lists
# =============================================================================

# Media types accepted by the video ingestion pipeline
ALLOWED_VIDEO_MEDIA_TYPES: frozenset[str] = frozenset({"video/mp4"})

# Media types accepted for thumbnails (no processing, served from local assets)
ALLOWED_THUMBNAIL_MEDIA_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/png"})


# =============================================================================
# CONSTANTS - Header grammar
# =============================================================================

# RFC 7230 token characters
_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"

MEDIA_TYPE_PATTERN = re.compile(rf"^({_TOKEN})/({_TOKEN})$")
PARAMETER_PATTERN = re.compile(rf'^({_TOKEN})=({_TOKEN}|"(?:[^"\\]|\\.)*")$')

BYTES_PER_KB: int = 1024


# =============================================================================
# MEDIA TYPE VALIDATION
# =============================================================================


def parse_media_type(content_type_header: str | None, allowed: Collection[str]) -> str:
    """
    Parse a Content-Type header and check it against an allow-list.

    Parameters are stripped; the type and subtype are lower-cased. The header
    must contain exactly one ``type/subtype`` pair, and every parameter must
    have the form ``key=value``.

    Args:
        content_type_header: Raw header value, possibly None when absent
        allowed: Permitted canonical media types (lower-case)

    Returns:
        The canonical media type, e.g. ``"video/mp4"``

    Raises:
        InvalidContentType: Header absent, empty or syntactically malformed
        UnsupportedMediaType: Parsed media type is not in ``allowed``

    Example:
        >>> parse_media_type("video/mp4; codecs=avc1", {"video/mp4"})
        'video/mp4'
    """
    if content_type_header is None or not content_type_header.strip():
        raise InvalidContentType("Missing Content-Type header")

    base, *params = content_type_header.split(";")
    match = MEDIA_TYPE_PATTERN.match(base.strip())
    if match is None:
        raise InvalidContentType(
            f"Couldn't parse media type from Content-Type '{content_type_header}'"
        )

    for param in params:
        param = param.strip()
        # A trailing ';' leaves an empty segment, which is tolerated
        if param and PARAMETER_PATTERN.match(param) is None:
            raise InvalidContentType(
                f"Malformed parameter '{param}' in Content-Type '{content_type_header}'"
            )

    media_type = f"{match.group(1)}/{match.group(2)}".lower()
    if media_type not in allowed:
        raise UnsupportedMediaType(
            f"Invalid media type '{media_type}'. Allowed: {', '.join(sorted(allowed))}",
            details={"media_type": media_type},
        )
    return media_type


# =============================================================================
# SIZE VALIDATION
# =============================================================================


def validate_upload_size(size: int, max_size: int) -> None:
    """
    Reject sizes above ``max_size``.

    Args:
        size: Number of bytes received (or declared) so far
        max_size: Inclusive upper bound in bytes

    Raises:
        UploadTooLarge: If ``size`` exceeds ``max_size``
    """
    if size > max_size:
        raise UploadTooLarge(
            f"Upload size ({format_file_size(size)}) exceeds maximum allowed "
            f"({format_file_size(max_size)})",
            details={"size": size, "max_size": max_size},
        )


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable string.

    Example:
        >>> format_file_size(1536)
        '1.50 KB'
        >>> format_file_size(1 << 30)
        '1.00 GB'
    """
    if size_bytes < 0:
        return "Invalid size"

    bytes_per_mb = BYTES_PER_KB * BYTES_PER_KB
    bytes_per_gb = bytes_per_mb * BYTES_PER_KB

    if size_bytes < BYTES_PER_KB:
        return f"{size_bytes} B"
    if size_bytes < bytes_per_mb:
        return f"{size_bytes / BYTES_PER_KB:.2f} KB"
    if size_bytes < bytes_per_gb:
        return f"{size_bytes / bytes_per_mb:.2f} MB"
    return f"{size_bytes / bytes_per_gb:.2f} GB"


__all__ = [
    "ALLOWED_THUMBNAIL_MEDIA_TYPES",
    "ALLOWED_VIDEO_MEDIA_TYPES",
    "format_file_size",
    "parse_media_type",
    "validate_upload_size",
]
