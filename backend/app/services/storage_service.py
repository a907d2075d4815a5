"""
S3-compatible object store gateway for Tubely.

This module wraps the boto3 S3 client for the two operations the video
pipeline needs, plus the persisted reference format that ties them together:

- Put: upload a local file under a key with a single-object PUT. S3 makes a
  single PUT atomic, so a failed upload never leaves a readable object.
- Sign: mint a short-lived presigned GET URL for a ``{bucket, key}`` pair.
- References: a processed video is recorded as ``"<bucket>,<key>"``
  (presigned mode) or as ``"<cdn distribution>/<key>"`` (cdn mode). Presigned
  references are signed lazily each time a record is read, so the expiry
  window always starts at read time.

Blocking boto3 calls run in a worker thread via ``async_wrap``. Works with
both MinIO (``s3_endpoint_url`` set) and AWS S3.
"""

import asyncio
import logging

from functools import wraps
from pathlib import Path
from typing import Any, Callable, TypeVar

import boto3

from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.core.exceptions import ReferenceMalformed, StoreUnavailable
from app.models.video import Video


logger = logging.getLogger(__name__)

# Type variable for generic async wrapper
T = TypeVar("T")

# Separator of the persisted "<bucket>,<key>" reference
REFERENCE_SEPARATOR = ","


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """
    Decorator to wrap synchronous boto3 operations for async execution.

    Uses asyncio.to_thread so S3 calls do not block the event loop.
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)

    return wrapper


# =============================================================================
# Reference format
# =============================================================================


def format_storage_reference(bucket: str, key: str) -> str:
    """Encode a bucket/key pair as ``"<bucket>,<key>"``."""
    return f"{bucket}{REFERENCE_SEPARATOR}{key}"


def parse_storage_reference(reference: str) -> tuple[str, str]:
    """
    Decode a ``"<bucket>,<key>"`` reference.

    Raises:
        ReferenceMalformed: Unless the reference splits into exactly two
            non-empty parts.
    """
    parts = reference.split(REFERENCE_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ReferenceMalformed(
            "Invalid video reference",
            details={"reference": reference},
        )
    return parts[0], parts[1]


def _describe_client_error(error: ClientError) -> str:
    err = error.response.get("Error", {})
    return f"{err.get('Code', 'Unknown')}: {err.get('Message', str(error))}"


# =============================================================================
# Storage service
# =============================================================================


class StorageService:
    """
    Object store gateway over a boto3 S3 client.

    Attributes:
        bucket_name: Bucket processed videos are written to
        reference_mode: ``"presigned"`` or ``"cdn"``
        expiration: Lifetime of presigned download URLs in seconds

    Example:
        >>> service = StorageService(Settings(s3_endpoint_url="http://localhost:9000"))
        >>> await service.put_file(Path("/tmp/v.mp4.processing"), "landscape/abc.mp4", "video/mp4")
        >>> service.build_reference("landscape/abc.mp4")
        'tubely-videos,landscape/abc.mp4'
    """

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        """
        Initialize the storage service.

        Args:
            settings: Settings with the S3 endpoint, credentials, bucket and
                reference mode
            client: Optional pre-built S3 client (tests pass a mock)
        """
        self.bucket_name = settings.s3_bucket_name
        self.reference_mode = settings.storage_reference_mode
        self.expiration = settings.presigned_url_expiration_seconds
        self._cf_distribution = settings.s3_cf_distribution

        if client is not None:
            self._client = client
            return

        client_config: dict[str, Any] = {
            "service_name": "s3",
            "region_name": settings.s3_region,
        }
        if settings.s3_endpoint_url:
            client_config["endpoint_url"] = settings.s3_endpoint_url
        # Otherwise boto3 falls back to its environment/IAM credential chain
        if settings.s3_access_key_id and settings.s3_secret_access_key:
            client_config["aws_access_key_id"] = settings.s3_access_key_id
            client_config["aws_secret_access_key"] = settings.s3_secret_access_key

        try:
            self._client = boto3.client(**client_config)
        except BotoCoreError as e:
            raise StoreUnavailable(
                "Failed to initialize S3 client", details={"error": str(e)}
            ) from e

        logger.info(
            "StorageService initialized",
            extra={
                "bucket": self.bucket_name,
                "endpoint": settings.s3_endpoint_url or "aws-default",
                "reference_mode": self.reference_mode,
            },
        )

    # -------------------------------------------------------------------------
    # Put
    # -------------------------------------------------------------------------

    async def put_file(self, path: Path, key: str, content_type: str) -> None:
        """
        Upload a local file under ``key`` in the configured bucket.

        Args:
            path: Local file to upload
            key: Destination object key
            content_type: Content-Type stored with the object

        Raises:
            StoreUnavailable: On S3 transport/auth errors or if the file
                cannot be read
        """

        @async_wrap
        def _put_object() -> dict[str, Any]:
            with path.open("rb") as body:
                return self._client.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )

        try:
            await _put_object()
        except ClientError as e:
            raise StoreUnavailable(
                "Failed to upload object",
                details={
                    "bucket": self.bucket_name,
                    "key": key,
                    "error": _describe_client_error(e),
                },
            ) from e
        except BotoCoreError as e:
            raise StoreUnavailable(
                "Storage error during upload",
                details={"bucket": self.bucket_name, "key": key, "error": str(e)},
            ) from e
        except OSError as e:
            raise StoreUnavailable(
                "Couldn't read staged file for upload",
                details={"path": str(path), "error": str(e)},
            ) from e

        logger.info("Uploaded object", extra={"bucket": self.bucket_name, "key": key})

    # -------------------------------------------------------------------------
    # Sign
    # -------------------------------------------------------------------------

    async def generate_presigned_download_url(
        self, bucket: str, key: str, expires_in: int | None = None
    ) -> str:
        """
        Generate a time-limited GET URL for ``bucket``/``key``.

        Signing is local and has no effect on the stored object.

        Raises:
            StoreUnavailable: If the client cannot sign (e.g. no credentials)
        """
        expiration = expires_in if expires_in is not None else self.expiration

        @async_wrap
        def _generate() -> str:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expiration,
            )

        try:
            return await _generate()
        except ClientError as e:
            raise StoreUnavailable(
                "Failed to presign URL",
                details={"bucket": bucket, "key": key, "error": _describe_client_error(e)},
            ) from e
        except BotoCoreError as e:
            raise StoreUnavailable(
                "Storage error while presigning",
                details={"bucket": bucket, "key": key, "error": str(e)},
            ) from e

    # -------------------------------------------------------------------------
    # References
    # -------------------------------------------------------------------------

    def build_reference(self, key: str) -> str:
        """Reference to persist for an object just written under ``key``."""
        if self.reference_mode == "cdn":
            return f"{self._cf_distribution}/{key}"
        return format_storage_reference(self.bucket_name, key)

    async def resolve_reference(self, reference: str) -> str:
        """
        Turn a persisted reference into a URL a client can fetch.

        Raises:
            ReferenceMalformed: Presigned mode and the reference is not
                ``"<bucket>,<key>"``
        """
        if self.reference_mode == "cdn":
            return reference
        bucket, key = parse_storage_reference(reference)
        return await self.generate_presigned_download_url(bucket, key)

    async def sign_video(self, video: Video) -> Video:
        """
        Return a copy of ``video`` with ``video_url`` resolved for reading.

        Records without a video reference are returned unchanged.
        """
        if not video.video_url:
            return video
        url = await self.resolve_reference(video.video_url)
        return video.model_copy(update={"video_url": url})


__all__ = [
    "StorageService",
    "async_wrap",
    "format_storage_reference",
    "parse_storage_reference",
]
