"""
Pytest Configuration and Test Fixtures for the Tubely Backend

This module provides the shared fixtures:
- Settings pointing assets and staging at per-test temporary directories
- A MagicMock S3 client behind a real StorageService
- An in-memory video store with the VideoStore interface
- Fake stream probe and remuxer standing in for ffprobe/ffmpeg
- Bearer tokens signed with the test secret
- FastAPI TestClient with dependency overrides for all of the above
"""

from io import BytesIO
from pathlib import Path
from typing import Any, Generator
from unittest.mock import MagicMock

import pytest

from fastapi import UploadFile
from fastapi.testclient import TestClient
from PIL import Image
from starlette.datastructures import Headers

from app.api.dependencies import (
    get_storage_service,
    get_stream_probe,
    get_video_remuxer,
    get_video_store,
)
from app.config import Settings, get_settings
from app.core.auth import create_access_token
from app.core.exceptions import ProbeFailed, RemuxFailed, VideoNotFound
from app.main import app
from app.models.video import StreamInfo, Video, VideoCreate
from app.services.storage_service import StorageService


# ==============================================================================
# Constants
# ==============================================================================

TEST_SECRET_KEY = "test-secret-key-for-jwt-signing-minimum-32-chars"
TEST_BUCKET = "test-bucket"
OWNER_ID = "4f9d3c62-2a6b-4a8e-9d2f-7c1b5e8a0d34"
OTHER_USER_ID = "9a1e7b20-5c3d-4e8f-a6b2-0d4c8f1e3a57"

# Bytes standing in for an MP4; the fake media tools never parse them
SAMPLE_VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 2048


# ==============================================================================
# Fakes
# ==============================================================================


class InMemoryVideoStore:
    """VideoStore replacement backed by a dict."""

    def __init__(self) -> None:
        self.videos: dict[str, Video] = {}
        self.update_calls = 0

    def add(self, video: Video) -> Video:
        self.videos[video.id] = video.model_copy(deep=True)
        return video

    async def create_video(self, user_id: str, data: VideoCreate) -> Video:
        video = Video(user_id=user_id, title=data.title, description=data.description)
        return self.add(video)

    async def get_video(self, video_id: str) -> Video:
        if video_id not in self.videos:
            raise VideoNotFound(details={"video_id": video_id})
        return self.videos[video_id].model_copy(deep=True)

    async def list_videos(self, user_id: str) -> list[Video]:
        owned = [v for v in self.videos.values() if v.user_id == user_id]
        owned.sort(key=lambda v: v.created_at, reverse=True)
        return [v.model_copy(deep=True) for v in owned]

    async def update_video(self, video: Video) -> None:
        if video.id not in self.videos:
            raise VideoNotFound(details={"video_id": video.id})
        self.update_calls += 1
        self.videos[video.id] = video.model_copy(deep=True)


class FakeStreamProbe:
    """StreamProbe returning fixed dimensions, or raising ``error`` if set."""

    def __init__(self, width: int = 1920, height: int = 1080, error: Exception | None = None):
        self.width = width
        self.height = height
        self.error = error
        self.calls: list[Path] = []

    async def probe(self, path: Path) -> StreamInfo:
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return StreamInfo(width=self.width, height=self.height)


class FakeRemuxer:
    """
    VideoRemuxer that copies the input to ``<input>.processing``.

    Records the bytes it was given so tests can check what was staged.
    """

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[Path] = []
        self.received: list[bytes] = []

    async def remux(self, path: Path) -> Path:
        self.calls.append(path)
        self.received.append(path.read_bytes())
        if self.error is not None:
            raise self.error
        output = Path(f"{path}.processing")
        output.write_bytes(path.read_bytes())
        return output


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings with assets and staging under ``tmp_path``.

    Both directories exist before the test runs.
    """
    assets_root = tmp_path / "assets"
    staging_dir = tmp_path / "staging"
    assets_root.mkdir()
    staging_dir.mkdir()

    return Settings(
        app_env="testing",
        secret_key=TEST_SECRET_KEY,
        s3_bucket_name=TEST_BUCKET,
        s3_access_key_id="test-access-key",
        s3_secret_access_key="test-secret-key",
        assets_root=str(assets_root),
        upload_temp_dir=str(staging_dir),
        public_base_url="http://testserver",
        upload_chunk_size=1024,
        media_tool_timeout_seconds=5.0,
    )


@pytest.fixture
def staging_dir(test_settings: Settings) -> Path:
    return Path(test_settings.upload_temp_dir)


@pytest.fixture
def assets_dir(test_settings: Settings) -> Path:
    return Path(test_settings.assets_root)


# ==============================================================================
# Storage Fixtures
# ==============================================================================


@pytest.fixture
def mock_s3_client() -> MagicMock:
    """
    MagicMock boto3 S3 client.

    ``generate_presigned_url`` builds a URL from its Params so tests can
    assert on the bucket and key that were signed.
    """
    client = MagicMock()
    client.put_object.return_value = {"ETag": '"abc123"'}

    def _presign(operation: str, Params: dict[str, Any], ExpiresIn: int) -> str:
        return (
            f"https://s3.test/{Params['Bucket']}/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=abc123"
        )

    client.generate_presigned_url.side_effect = _presign
    return client


@pytest.fixture
def storage_service(test_settings: Settings, mock_s3_client: MagicMock) -> StorageService:
    return StorageService(test_settings, client=mock_s3_client)


# ==============================================================================
# Datastore and Media Tool Fixtures
# ==============================================================================


@pytest.fixture
def video_store() -> InMemoryVideoStore:
    return InMemoryVideoStore()


@pytest.fixture
def owned_video(video_store: InMemoryVideoStore) -> Video:
    """A draft record owned by OWNER_ID."""
    return video_store.add(Video(user_id=OWNER_ID, title="Boots unboxing"))


@pytest.fixture
def stream_probe() -> FakeStreamProbe:
    return FakeStreamProbe(width=1920, height=1080)


@pytest.fixture
def remuxer() -> FakeRemuxer:
    return FakeRemuxer()


@pytest.fixture
def probe_factory():
    """Factory fixture for FakeStreamProbe with custom dimensions or error."""
    return FakeStreamProbe


@pytest.fixture
def failing_probe() -> FakeStreamProbe:
    return FakeStreamProbe(error=ProbeFailed("ffprobe exited with status 1"))


@pytest.fixture
def failing_remuxer() -> FakeRemuxer:
    return FakeRemuxer(error=RemuxFailed("ffmpeg exited with status 1: moov atom not found"))


# ==============================================================================
# Upload Helpers
# ==============================================================================


def make_upload(
    data: bytes = SAMPLE_VIDEO_BYTES,
    content_type: str | None = "video/mp4",
    filename: str = "clip.mp4",
) -> UploadFile:
    """Build an UploadFile the way the multipart parser would."""
    headers = Headers({"content-type": content_type}) if content_type is not None else Headers({})
    return UploadFile(file=BytesIO(data), filename=filename, headers=headers)


@pytest.fixture
def upload_factory():
    """Factory fixture for UploadFile objects (see make_upload)."""
    return make_upload


@pytest.fixture
def sample_png_bytes() -> bytes:
    """A small valid PNG image."""
    buffer = BytesIO()
    Image.new("RGB", (16, 9), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_gif_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (16, 9), color=(30, 30, 200)).save(buffer, format="GIF")
    return buffer.getvalue()


# ==============================================================================
# Authentication Fixtures
# ==============================================================================


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def other_user_id() -> str:
    return OTHER_USER_ID


@pytest.fixture
def owner_token(test_settings: Settings) -> str:
    return create_access_token(OWNER_ID, test_settings)


@pytest.fixture
def auth_headers(owner_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {owner_token}"}


@pytest.fixture
def other_user_headers(test_settings: Settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(OTHER_USER_ID, test_settings)}"}


# ==============================================================================
# FastAPI Client Fixtures
# ==============================================================================


@pytest.fixture
def client(
    test_settings: Settings,
    storage_service: StorageService,
    video_store: InMemoryVideoStore,
    stream_probe: FakeStreamProbe,
    remuxer: FakeRemuxer,
) -> Generator[TestClient, None, None]:
    """
    TestClient with every external collaborator overridden.

    The client is not entered as a context manager, so the lifespan (MongoDB
    connection, logging setup) does not run.
    """
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_storage_service] = lambda: storage_service
    app.dependency_overrides[get_video_store] = lambda: video_store
    app.dependency_overrides[get_stream_probe] = lambda: stream_probe
    app.dependency_overrides[get_video_remuxer] = lambda: remuxer

    yield TestClient(app)

    app.dependency_overrides.clear()
