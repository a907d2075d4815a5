"""
Tubely Error Taxonomy

Every failure the ingestion pipeline and its collaborators can surface is a
subclass of TubelyError. Each error carries:
- the HTTP status class it maps to (400, 401, 404 or 500)
- a stable machine-readable error code
- the pipeline stage that failed, when raised inside the orchestrator
- optional server-side details (tool diagnostics, backend error codes)

The FastAPI exception handler in app.main renders these as a single JSON body.
Details are logged, never returned to the client.
"""

from typing import Any

from fastapi import status


class TubelyError(Exception):
    """
    Base exception for all Tubely errors.

    ``message`` is returned to clients. Tool output and backend error text
    go in ``details``, which is only logged.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        stage: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)

    def with_stage(self, stage: str) -> "TubelyError":
        """Tag the error with the failing stage unless one is already set."""
        if self.stage is None:
            self.stage = stage
        return self

    def to_response(self) -> dict[str, Any]:
        """Client-visible error body."""
        return {
            "error": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "stage": self.stage,
        }


# =============================================================================
# 400: Invalid input
# =============================================================================


class InvalidInput(TubelyError):
    """Raised when the request itself is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_input"
    default_message = "Invalid request"


class InvalidIdentifier(InvalidInput):
    """Raised when a path identifier is not a valid UUID."""

    error_code = "invalid_identifier"
    default_message = "Invalid ID"


class InvalidContentType(InvalidInput):
    """Raised when a Content-Type header is missing or cannot be parsed."""

    error_code = "invalid_content_type"
    default_message = "Missing or malformed Content-Type"


class UnsupportedMediaType(InvalidInput):
    """Raised when a parsed media type is not in the permitted set."""

    error_code = "unsupported_media_type"
    default_message = "Unsupported media type"


class MissingFormFile(InvalidInput):
    """Raised when the expected multipart file field is absent."""

    error_code = "missing_form_file"
    default_message = "Missing upload file"


class UploadTooLarge(InvalidInput):
    """Raised when an upload body exceeds the configured limit."""

    error_code = "upload_too_large"
    default_message = "Upload exceeds the maximum allowed size"


# =============================================================================
# 401: Authentication / authorization
# =============================================================================


class Unauthenticated(TubelyError):
    """Raised when the bearer token is missing or invalid."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "unauthenticated"
    default_message = "Couldn't validate JWT"


class Forbidden(TubelyError):
    """Raised when the authenticated user does not own the video."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "forbidden"
    default_message = "Not authorized to update this video"


# =============================================================================
# 404
# =============================================================================


class VideoNotFound(TubelyError):
    """Raised when no video record exists for an identifier."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "video_not_found"
    default_message = "Couldn't find video"


# =============================================================================
# 500: Processing failures (not retried)
# =============================================================================


class ProcessingFailure(TubelyError):
    """Base exception for external media tool failures."""

    error_code = "processing_failed"
    default_message = "Video processing failed"


class ProbeFailed(ProcessingFailure):
    """Raised when the stream probe exits non-zero, times out or emits bad JSON."""

    error_code = "probe_failed"
    default_message = "Couldn't inspect video streams"


class NoStreamInfo(ProcessingFailure):
    """Raised when the probe output has no streams or non-positive dimensions."""

    error_code = "no_stream_info"
    default_message = "Video has no usable stream information"


class RemuxFailed(ProcessingFailure):
    """Raised when the remux tool fails or produces an absent or empty file."""

    error_code = "remux_failed"
    default_message = "Couldn't process video for fast start"


# =============================================================================
# 500: Storage failures (safe to retry at the client)
# =============================================================================


class StorageFailure(TubelyError):
    """Base exception for object store and datastore failures."""

    error_code = "storage_failed"
    default_message = "Storage operation failed"


class StoreUnavailable(StorageFailure):
    """Raised on transport or auth errors from the object store."""

    error_code = "store_unavailable"
    default_message = "Couldn't reach object storage"


class DatastoreUnavailable(StorageFailure):
    """Raised when the video record datastore fails."""

    error_code = "datastore_unavailable"
    default_message = "Couldn't update video information"


class ReferenceMalformed(TubelyError):
    """Raised when a persisted storage reference is not '<bucket>,<key>'."""

    error_code = "reference_malformed"
    default_message = "Stored video reference is malformed"


__all__ = [
    "DatastoreUnavailable",
    "Forbidden",
    "InvalidContentType",
    "InvalidIdentifier",
    "InvalidInput",
    "MissingFormFile",
    "NoStreamInfo",
    "ProbeFailed",
    "ProcessingFailure",
    "ReferenceMalformed",
    "RemuxFailed",
    "StorageFailure",
    "StoreUnavailable",
    "TubelyError",
    "Unauthenticated",
    "UnsupportedMediaType",
    "UploadTooLarge",
    "VideoNotFound",
]
