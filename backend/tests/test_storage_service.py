"""
Storage Service Test Suite

Tests for the S3 gateway with a mocked boto3 client:
- "<bucket>,<key>" reference encoding and decoding
- Presigned download URLs and their expiry
- CDN reference mode
- Error mapping from botocore exceptions to StoreUnavailable
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from botocore.exceptions import ClientError, EndpointConnectionError

from app.config import Settings
from app.core.exceptions import ReferenceMalformed, StoreUnavailable
from app.models.video import Video
from app.services.storage_service import (
    StorageService,
    format_storage_reference,
    parse_storage_reference,
)


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


# =============================================================================
# Reference format
# =============================================================================


class TestStorageReference:
    """format_storage_reference / parse_storage_reference."""

    def test_round_trip(self) -> None:
        reference = format_storage_reference("tubely-videos", "landscape/abc.mp4")

        assert reference == "tubely-videos,landscape/abc.mp4"
        assert parse_storage_reference(reference) == ("tubely-videos", "landscape/abc.mp4")

    @pytest.mark.parametrize(
        "reference",
        [
            "",
            "tubely-videos",
            "tubely-videos,",
            ",landscape/abc.mp4",
            "a,b,c",
            "https://d111.cloudfront.net/landscape/abc.mp4",
        ],
    )
    def test_malformed_references_are_rejected(self, reference: str) -> None:
        with pytest.raises(ReferenceMalformed) as exc_info:
            parse_storage_reference(reference)

        assert exc_info.value.status_code == 500


# =============================================================================
# Put
# =============================================================================


class TestPutFile:
    """StorageService.put_file."""

    @pytest.mark.asyncio
    async def test_uploads_file_contents_with_content_type(
        self, storage_service: StorageService, mock_s3_client: MagicMock, tmp_path: Path
    ) -> None:
        seen: dict = {}

        def _put_object(**kwargs):
            seen.update(kwargs)
            seen["body"] = kwargs["Body"].read()
            return {}

        mock_s3_client.put_object.side_effect = _put_object
        path = tmp_path / "upload.mp4.processing"
        path.write_bytes(b"faststart-mp4")

        await storage_service.put_file(path, "portrait/xyz.mp4", "video/mp4")

        assert seen["Bucket"] == "test-bucket"
        assert seen["Key"] == "portrait/xyz.mp4"
        assert seen["ContentType"] == "video/mp4"
        assert seen["body"] == b"faststart-mp4"

    @pytest.mark.asyncio
    async def test_client_error_is_store_unavailable(
        self, storage_service: StorageService, mock_s3_client: MagicMock, tmp_path: Path
    ) -> None:
        mock_s3_client.put_object.side_effect = _client_error("AccessDenied", "PutObject")
        path = tmp_path / "v.mp4"
        path.write_bytes(b"data")

        with pytest.raises(StoreUnavailable) as exc_info:
            await storage_service.put_file(path, "other/v.mp4", "video/mp4")

        assert exc_info.value.message == "Failed to upload object"
        assert exc_info.value.details == {
            "bucket": "test-bucket",
            "key": "other/v.mp4",
            "error": "AccessDenied: AccessDenied message",
        }
        assert "AccessDenied" not in exc_info.value.to_response()["message"]

    @pytest.mark.asyncio
    async def test_transport_error_is_store_unavailable(
        self, storage_service: StorageService, mock_s3_client: MagicMock, tmp_path: Path
    ) -> None:
        mock_s3_client.put_object.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:9000"
        )
        path = tmp_path / "v.mp4"
        path.write_bytes(b"data")

        with pytest.raises(StoreUnavailable):
            await storage_service.put_file(path, "other/v.mp4", "video/mp4")

    @pytest.mark.asyncio
    async def test_unreadable_file_is_store_unavailable(
        self, storage_service: StorageService, mock_s3_client: MagicMock, tmp_path: Path
    ) -> None:
        with pytest.raises(StoreUnavailable):
            await storage_service.put_file(tmp_path / "missing.mp4", "other/v.mp4", "video/mp4")

        mock_s3_client.put_object.assert_not_called()


# =============================================================================
# Sign / resolve
# =============================================================================


class TestPresignedReferences:
    """Presigned reference mode."""

    def test_build_reference(self, storage_service: StorageService) -> None:
        assert storage_service.build_reference("landscape/k.mp4") == "test-bucket,landscape/k.mp4"

    @pytest.mark.asyncio
    async def test_resolve_signs_bucket_and_key_with_configured_expiry(
        self, storage_service: StorageService, mock_s3_client: MagicMock
    ) -> None:
        url = await storage_service.resolve_reference("archive-bucket,landscape/k.mp4")

        mock_s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "archive-bucket", "Key": "landscape/k.mp4"},
            ExpiresIn=300,
        )
        assert url.startswith("https://s3.test/archive-bucket/landscape/k.mp4")

    @pytest.mark.asyncio
    async def test_explicit_expiry_overrides_default(
        self, storage_service: StorageService, mock_s3_client: MagicMock
    ) -> None:
        await storage_service.generate_presigned_download_url("b", "k", expires_in=60)

        assert mock_s3_client.generate_presigned_url.call_args.kwargs["ExpiresIn"] == 60

    @pytest.mark.asyncio
    async def test_resolve_malformed_reference_does_not_sign(
        self, storage_service: StorageService, mock_s3_client: MagicMock
    ) -> None:
        with pytest.raises(ReferenceMalformed):
            await storage_service.resolve_reference("no-separator")

        mock_s3_client.generate_presigned_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_signing_error_is_store_unavailable(
        self, storage_service: StorageService, mock_s3_client: MagicMock
    ) -> None:
        mock_s3_client.generate_presigned_url.side_effect = _client_error(
            "InvalidAccessKeyId", "GetObject"
        )

        with pytest.raises(StoreUnavailable):
            await storage_service.resolve_reference("b,k")

    @pytest.mark.asyncio
    async def test_sign_video_replaces_reference_without_mutating_record(
        self, storage_service: StorageService
    ) -> None:
        video = Video(user_id="u1", title="t", video_url="test-bucket,portrait/p.mp4")

        signed = await storage_service.sign_video(video)

        assert signed.video_url.startswith("https://s3.test/test-bucket/portrait/p.mp4")
        assert video.video_url == "test-bucket,portrait/p.mp4"
        assert signed.id == video.id

    @pytest.mark.asyncio
    async def test_sign_video_without_reference_is_unchanged(
        self, storage_service: StorageService, mock_s3_client: MagicMock
    ) -> None:
        video = Video(user_id="u1", title="draft")

        assert await storage_service.sign_video(video) is video
        mock_s3_client.generate_presigned_url.assert_not_called()


class TestCdnReferences:
    """CDN reference mode."""

    @pytest.fixture
    def cdn_service(self, test_settings: Settings, mock_s3_client: MagicMock) -> StorageService:
        settings = Settings(
            **{
                **test_settings.model_dump(),
                "storage_reference_mode": "cdn",
                "s3_cf_distribution": "https://d111.cloudfront.net/",
            }
        )
        return StorageService(settings, client=mock_s3_client)

    def test_build_reference_prefixes_distribution(self, cdn_service: StorageService) -> None:
        assert (
            cdn_service.build_reference("landscape/k.mp4")
            == "https://d111.cloudfront.net/landscape/k.mp4"
        )

    @pytest.mark.asyncio
    async def test_resolve_returns_reference_as_is(
        self, cdn_service: StorageService, mock_s3_client: MagicMock
    ) -> None:
        url = "https://d111.cloudfront.net/landscape/k.mp4"

        assert await cdn_service.resolve_reference(url) == url
        mock_s3_client.generate_presigned_url.assert_not_called()
