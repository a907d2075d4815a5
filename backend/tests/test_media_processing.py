"""
Media Processing Test Suite

Tests for aspect-ratio classification, the subprocess runner and the
ffprobe/ffmpeg wrappers. The wrappers are tested with ``run_media_tool``
patched, so neither binary needs to be installed. The runner itself is
tested against the current Python interpreter as a stand-in child process.
"""

import asyncio
import json
import sys
import time

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from app.core.exceptions import NoStreamInfo, ProbeFailed, RemuxFailed
from app.models.video import AspectRatio
from app.services import media_processing
from app.services.media_processing import (
    FFmpegRemuxer,
    FFprobeInspector,
    StreamProbe,
    ToolResult,
    VideoRemuxer,
    classify_aspect_ratio,
    percent_error,
    run_media_tool,
    within_tolerance,
)


RUN_MEDIA_TOOL = "app.services.media_processing.run_media_tool"


def _probe_json(*streams: dict) -> bytes:
    return json.dumps({"streams": list(streams)}).encode()


# =============================================================================
# Classification
# =============================================================================


class TestAspectRatioClassification:
    """classify_aspect_ratio and its helpers."""

    @pytest.mark.parametrize(
        "width,height,expected",
        [
            (1920, 1080, AspectRatio.LANDSCAPE),
            (1280, 720, AspectRatio.LANDSCAPE),
            (1080, 1920, AspectRatio.PORTRAIT),
            (720, 1280, AspectRatio.PORTRAIT),
            (1080, 1080, AspectRatio.OTHER),
            (640, 480, AspectRatio.OTHER),
            (2560, 1080, AspectRatio.OTHER),
        ],
    )
    def test_common_resolutions(self, width: int, height: int, expected: AspectRatio) -> None:
        assert classify_aspect_ratio(width, height) == expected

    def test_tolerance_is_inclusive(self) -> None:
        assert within_tolerance(1.0) is True
        assert within_tolerance(1.0000001) is False

    def test_just_inside_and_outside_landscape_tolerance(self) -> None:
        # 16:9 = 1.7778; 1% either side is roughly 1.760 to 1.796
        assert classify_aspect_ratio(1794, 1000) == AspectRatio.LANDSCAPE
        assert classify_aspect_ratio(1762, 1000) == AspectRatio.LANDSCAPE
        assert classify_aspect_ratio(1800, 1000) == AspectRatio.OTHER
        assert classify_aspect_ratio(1755, 1000) == AspectRatio.OTHER

    def test_error_of_exactly_one_percent_is_portrait(self) -> None:
        with patch.object(media_processing, "percent_error", return_value=1.0):
            assert classify_aspect_ratio(1000, 1000) == AspectRatio.PORTRAIT

    @pytest.mark.parametrize("width,height", [(0, 1080), (1920, 0), (-1920, 1080)])
    def test_non_positive_dimensions_are_other(self, width: int, height: int) -> None:
        assert classify_aspect_ratio(width, height) == AspectRatio.OTHER

    def test_percent_error(self) -> None:
        assert percent_error(1.01, 1.0) == pytest.approx(1.0)
        assert percent_error(0.99, 1.0) == pytest.approx(1.0)
        assert percent_error(16 / 9, 16 / 9) == 0


# =============================================================================
# Subprocess runner
# =============================================================================


class TestRunMediaTool:
    """run_media_tool against a real child process."""

    @pytest.mark.asyncio
    async def test_captures_output_and_exit_status(self) -> None:
        result = await run_media_tool(
            [
                sys.executable,
                "-c",
                "import sys; print('out'); sys.stderr.write('boom'); sys.exit(3)",
            ],
            timeout=10,
        )

        assert result.returncode == 3
        assert result.stdout.strip() == b"out"
        assert result.diagnostics == "boom"

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_timeout_kills_the_process(self) -> None:
        start = time.monotonic()
        with pytest.raises(asyncio.TimeoutError):
            await run_media_tool(
                [sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.5
            )
        assert time.monotonic() - start < 5

    @pytest.mark.asyncio
    async def test_missing_binary_raises_os_error(self) -> None:
        with pytest.raises(OSError):
            await run_media_tool(["/nonexistent/ffprobe-binary"], timeout=1)

    def test_diagnostics_are_truncated(self) -> None:
        result = ToolResult(returncode=1, stdout=b"", stderr=b"x" * 10000)
        assert len(result.diagnostics) == media_processing.MAX_DIAGNOSTIC_CHARS


# =============================================================================
# ffprobe
# =============================================================================


class TestFFprobeInspector:
    """FFprobeInspector with the runner patched."""

    @pytest.fixture
    def inspector(self, test_settings) -> FFprobeInspector:
        return FFprobeInspector(test_settings)

    def test_satisfies_stream_probe_interface(self, inspector: FFprobeInspector) -> None:
        assert isinstance(inspector, StreamProbe)

    def test_build_args(self, inspector: FFprobeInspector) -> None:
        assert inspector.build_args(Path("/tmp/upload.mp4")) == [
            "ffprobe",
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "/tmp/upload.mp4",
        ]

    @pytest.mark.asyncio
    async def test_reads_first_video_stream(self, inspector: FFprobeInspector) -> None:
        stdout = _probe_json(
            {"index": 0, "codec_type": "audio", "sample_rate": "48000"},
            {"index": 1, "codec_type": "video", "width": 1920, "height": 1080, "codec_name": "h264"},
        )
        with patch(RUN_MEDIA_TOOL, AsyncMock(return_value=ToolResult(0, stdout, b""))) as run:
            info = await inspector.probe(Path("/tmp/upload.mp4"))

        assert (info.width, info.height) == (1920, 1080)
        run.assert_awaited_once()
        assert run.call_args.args[1] == 5.0

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_probe_failure(self, inspector: FFprobeInspector) -> None:
        result = ToolResult(1, b"", b"Invalid data found when processing input")
        with patch(RUN_MEDIA_TOOL, AsyncMock(return_value=result)):
            with pytest.raises(ProbeFailed) as exc_info:
                await inspector.probe(Path("/tmp/upload.mp4"))

        assert "Invalid data" in exc_info.value.details["stderr"]

    @pytest.mark.asyncio
    async def test_unparseable_output_is_probe_failure(self, inspector: FFprobeInspector) -> None:
        with patch(RUN_MEDIA_TOOL, AsyncMock(return_value=ToolResult(0, b"not json", b""))):
            with pytest.raises(ProbeFailed):
                await inspector.probe(Path("/tmp/upload.mp4"))

    @pytest.mark.asyncio
    async def test_timeout_is_probe_failure(self, inspector: FFprobeInspector) -> None:
        with patch(RUN_MEDIA_TOOL, AsyncMock(side_effect=asyncio.TimeoutError())):
            with pytest.raises(ProbeFailed):
                await inspector.probe(Path("/tmp/upload.mp4"))

    @pytest.mark.asyncio
    async def test_missing_binary_is_probe_failure(self, inspector: FFprobeInspector) -> None:
        with patch(RUN_MEDIA_TOOL, AsyncMock(side_effect=FileNotFoundError("ffprobe"))):
            with pytest.raises(ProbeFailed):
                await inspector.probe(Path("/tmp/upload.mp4"))

    @pytest.mark.asyncio
    async def test_no_streams_is_no_stream_info(self, inspector: FFprobeInspector) -> None:
        with patch(RUN_MEDIA_TOOL, AsyncMock(return_value=ToolResult(0, _probe_json(), b""))):
            with pytest.raises(NoStreamInfo):
                await inspector.probe(Path("/tmp/upload.mp4"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stream",
        [
            {"codec_type": "video", "width": 0, "height": 1080},
            {"codec_type": "video", "width": 1920},
            {"codec_type": "audio"},
        ],
    )
    async def test_unusable_dimensions_are_no_stream_info(
        self, inspector: FFprobeInspector, stream: dict
    ) -> None:
        stdout = _probe_json(stream)
        with patch(RUN_MEDIA_TOOL, AsyncMock(return_value=ToolResult(0, stdout, b""))):
            with pytest.raises(NoStreamInfo):
                await inspector.probe(Path("/tmp/upload.mp4"))


# =============================================================================
# ffmpeg
# =============================================================================


class TestFFmpegRemuxer:
    """FFmpegRemuxer with the runner patched to simulate ffmpeg's output."""

    @pytest.fixture
    def remuxer(self, test_settings) -> FFmpegRemuxer:
        return FFmpegRemuxer(test_settings)

    @pytest.fixture
    def staged(self, tmp_path: Path) -> Path:
        path = tmp_path / "upload.mp4"
        path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 512)
        return path

    @staticmethod
    def _ffmpeg_writing(content: bytes, returncode: int = 0, stderr: bytes = b"") -> AsyncMock:
        async def _run(args: list[str], timeout: float) -> ToolResult:
            Path(args[-1]).write_bytes(content)
            return ToolResult(returncode, b"", stderr)

        return AsyncMock(side_effect=_run)

    def test_satisfies_remuxer_interface(self, remuxer: FFmpegRemuxer) -> None:
        assert isinstance(remuxer, VideoRemuxer)

    def test_build_args_copy_streams_with_faststart(self, remuxer: FFmpegRemuxer) -> None:
        args = remuxer.build_args(Path("/tmp/in.mp4"), Path("/tmp/in.mp4.processing"))

        assert args[0] == "ffmpeg"
        assert args[args.index("-i") + 1] == "/tmp/in.mp4"
        assert args[args.index("-c") + 1] == "copy"
        assert args[args.index("-movflags") + 1] == "faststart"
        assert args[args.index("-f") + 1] == "mp4"
        assert args[-1] == "/tmp/in.mp4.processing"

    def test_output_path_appends_processing_suffix(self) -> None:
        assert FFmpegRemuxer.output_path_for(Path("/tmp/a/upload.mp4")) == Path(
            "/tmp/a/upload.mp4.processing"
        )

    @pytest.mark.asyncio
    async def test_successful_remux_returns_output(
        self, remuxer: FFmpegRemuxer, staged: Path
    ) -> None:
        with patch(RUN_MEDIA_TOOL, self._ffmpeg_writing(b"remuxed-bytes")):
            output = await remuxer.remux(staged)

        assert output == Path(f"{staged}.processing")
        assert output.read_bytes() == b"remuxed-bytes"
        assert staged.exists()

    @pytest.mark.asyncio
    async def test_zero_length_output_is_remux_failure(
        self, remuxer: FFmpegRemuxer, staged: Path
    ) -> None:
        with patch(RUN_MEDIA_TOOL, self._ffmpeg_writing(b"")):
            with pytest.raises(RemuxFailed):
                await remuxer.remux(staged)

        assert not Path(f"{staged}.processing").exists()

    @pytest.mark.asyncio
    async def test_missing_output_is_remux_failure(
        self, remuxer: FFmpegRemuxer, staged: Path
    ) -> None:
        with patch(RUN_MEDIA_TOOL, AsyncMock(return_value=ToolResult(0, b"", b""))):
            with pytest.raises(RemuxFailed):
                await remuxer.remux(staged)

    @pytest.mark.asyncio
    async def test_non_zero_exit_keeps_stderr_in_details(
        self, remuxer: FFmpegRemuxer, staged: Path
    ) -> None:
        run = self._ffmpeg_writing(b"partial", returncode=1, stderr=b"moov atom not found")
        with patch(RUN_MEDIA_TOOL, run):
            with pytest.raises(RemuxFailed) as exc_info:
                await remuxer.remux(staged)

        assert exc_info.value.message == "ffmpeg exited with status 1"
        assert exc_info.value.details["stderr"] == "moov atom not found"
        assert exc_info.value.details["returncode"] == 1
        assert not Path(f"{staged}.processing").exists()

    @pytest.mark.asyncio
    async def test_timeout_is_remux_failure(self, remuxer: FFmpegRemuxer, staged: Path) -> None:
        with patch(RUN_MEDIA_TOOL, AsyncMock(side_effect=asyncio.TimeoutError())):
            with pytest.raises(RemuxFailed):
                await remuxer.remux(staged)
