"""
Media processing service for Tubely.

This module wraps the two external media tools the ingestion pipeline depends
on and the aspect-ratio classification derived from one of them:

- Stream Inspector: runs ``ffprobe`` to read the first video stream's
  dimensions, then classifies width/height as portrait, landscape or other
  using percent error against 9:16 and 16:9 with a 1% inclusive tolerance.
- Container Remuxer: runs ``ffmpeg`` in stream-copy mode with
  ``-movflags faststart`` so the MP4 index precedes the media payload,
  writing ``<input>.processing`` next to the input.

Both tools run through ``run_media_tool``, which enforces a wall-clock
timeout and kills the child process when it expires. The orchestrator only
sees the narrow ``StreamProbe`` and ``VideoRemuxer`` interfaces, so tests can
substitute fakes for the real binaries.
"""

import asyncio
import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from app.config import Settings
from app.core.exceptions import NoStreamInfo, ProbeFailed, RemuxFailed
from app.models.video import AspectRatio, ProbeOutput, StreamInfo


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PORTRAIT_RATIO = 9 / 16
LANDSCAPE_RATIO = 16 / 9

# Percent error tolerance, inclusive
ASPECT_TOLERANCE_PERCENT = 1.0

# Suffix appended to the input path to name the remux output
PROCESSING_SUFFIX = ".processing"

# Diagnostics kept from a tool's stderr
MAX_DIAGNOSTIC_CHARS = 4000


# =============================================================================
# Aspect ratio classification
# =============================================================================


def percent_error(actual: float, expected: float) -> float:
    """Return ``|actual - expected| / |expected| * 100``."""
    return abs(actual - expected) / abs(expected) * 100


def within_tolerance(error_percent: float) -> bool:
    """True when ``error_percent`` is at most the aspect tolerance."""
    return error_percent <= ASPECT_TOLERANCE_PERCENT


def classify_aspect_ratio(width: int, height: int) -> AspectRatio:
    """
    Classify video dimensions into an aspect-ratio class.

    Portrait (9:16) is checked before landscape (16:9). Non-positive
    dimensions classify as ``OTHER``.

    Example:
        >>> classify_aspect_ratio(1080, 1920)
        <AspectRatio.PORTRAIT: 'portrait'>
    """
    if width <= 0 or height <= 0:
        return AspectRatio.OTHER

    ratio = width / height
    if within_tolerance(percent_error(ratio, PORTRAIT_RATIO)):
        return AspectRatio.PORTRAIT
    if within_tolerance(percent_error(ratio, LANDSCAPE_RATIO)):
        return AspectRatio.LANDSCAPE
    return AspectRatio.OTHER


# =============================================================================
# Subprocess execution
# =============================================================================


@dataclass(frozen=True)
class ToolResult:
    """Exit status and captured output of one media tool invocation."""

    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def diagnostics(self) -> str:
        """Decoded tail of stderr, suitable for logs and error details."""
        text = self.stderr.decode("utf-8", errors="replace").strip()
        return text[-MAX_DIAGNOSTIC_CHARS:]


async def run_media_tool(args: list[str], timeout: float) -> ToolResult:
    """
    Run an external tool, capturing stdout and stderr.

    The process gets no stdin. If it has not exited after ``timeout``
    seconds it is killed and reaped before ``TimeoutError`` propagates.

    Args:
        args: Executable followed by its arguments
        timeout: Wall-clock limit in seconds

    Returns:
        ToolResult with the exit code and captured output

    Raises:
        TimeoutError: The process exceeded ``timeout`` and was killed
        OSError: The executable could not be started
    """
    logger.debug("Running media tool", extra={"command": args, "timeout": timeout})
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError):
        if proc.returncode is None:
            proc.kill()
        await proc.wait()
        logger.warning(
            "Media tool killed before completion",
            extra={"tool": args[0], "pid": proc.pid, "timeout": timeout},
        )
        raise
    return ToolResult(returncode=proc.returncode, stdout=stdout, stderr=stderr)


# =============================================================================
# Interfaces
# =============================================================================


@runtime_checkable
class StreamProbe(Protocol):
    """Reads the first video stream's dimensions from a local file."""

    async def probe(self, path: Path) -> StreamInfo: ...


@runtime_checkable
class VideoRemuxer(Protocol):
    """Rewrites a local video for fast start and returns the new file's path."""

    async def remux(self, path: Path) -> Path: ...


# =============================================================================
# ffprobe / ffmpeg implementations
# =============================================================================


class FFprobeInspector:
    """
    StreamProbe backed by ``ffprobe``.

    Invocation: ``ffprobe -v error -print_format json -show_streams <path>``.
    """

    def __init__(self, settings: Settings) -> None:
        self._binary = settings.ffprobe_path
        self._timeout = settings.media_tool_timeout_seconds

    def build_args(self, path: Path) -> list[str]:
        return [self._binary, "-v", "error", "-print_format", "json", "-show_streams", str(path)]

    async def probe(self, path: Path) -> StreamInfo:
        """
        Probe ``path`` and return the first video stream's dimensions.

        Raises:
            ProbeFailed: Non-zero exit, timeout, missing binary or unparseable output
            NoStreamInfo: No streams, or non-positive width/height
        """
        try:
            result = await run_media_tool(self.build_args(path), self._timeout)
        except asyncio.TimeoutError as e:
            raise ProbeFailed(
                f"ffprobe timed out after {self._timeout}s",
                details={"path": str(path)},
            ) from e
        except OSError as e:
            raise ProbeFailed(
                "Couldn't run ffprobe", details={"binary": self._binary, "error": str(e)}
            ) from e

        if result.returncode != 0:
            raise ProbeFailed(
                f"ffprobe exited with status {result.returncode}",
                details={"returncode": result.returncode, "stderr": result.diagnostics},
            )

        try:
            output = ProbeOutput.model_validate_json(result.stdout)
        except ValidationError as e:
            raise ProbeFailed(
                "Couldn't parse ffprobe output",
                details={"error": str(e), "stderr": result.diagnostics},
            ) from e

        stream = output.first_video_stream()
        if stream is None:
            raise NoStreamInfo("ffprobe reported no streams")
        if not stream.width or not stream.height or stream.width <= 0 or stream.height <= 0:
            raise NoStreamInfo(
                "ffprobe reported no usable dimensions",
                details={"width": stream.width, "height": stream.height},
            )

        info = StreamInfo(width=stream.width, height=stream.height)
        logger.debug("Probed video stream", extra={"path": str(path), **info.model_dump()})
        return info


class FFmpegRemuxer:
    """
    VideoRemuxer backed by ``ffmpeg``.

    Invocation:
    ``ffmpeg -y -i <path> -c copy -movflags faststart -f mp4 <path>.processing``.
    The output is removed again if the remux fails.
    """

    def __init__(self, settings: Settings) -> None:
        self._binary = settings.ffmpeg_path
        self._timeout = settings.media_tool_timeout_seconds

    @staticmethod
    def output_path_for(path: Path) -> Path:
        return Path(f"{path}{PROCESSING_SUFFIX}")

    def build_args(self, path: Path, output: Path) -> list[str]:
        return [
            self._binary,
            "-y",
            "-i",
            str(path),
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            str(output),
        ]

    async def remux(self, path: Path) -> Path:
        """
        Remux ``path`` for fast start.

        Returns:
            Path of the remuxed file (``<path>.processing``)

        Raises:
            RemuxFailed: Non-zero exit (stderr attached), timeout, missing
                binary, or an absent or zero-length output file
        """
        output = self.output_path_for(path)
        try:
            await self._run(path, output)
        except BaseException:
            output.unlink(missing_ok=True)
            raise
        return output

    async def _run(self, path: Path, output: Path) -> None:
        try:
            result = await run_media_tool(self.build_args(path, output), self._timeout)
        except asyncio.TimeoutError as e:
            raise RemuxFailed(
                f"ffmpeg timed out after {self._timeout}s", details={"path": str(path)}
            ) from e
        except OSError as e:
            raise RemuxFailed(
                "Couldn't run ffmpeg", details={"binary": self._binary, "error": str(e)}
            ) from e

        if result.returncode != 0:
            raise RemuxFailed(
                f"ffmpeg exited with status {result.returncode}",
                details={"returncode": result.returncode, "stderr": result.diagnostics},
            )

        # Exit status 0 with a missing or empty output still counts as a failure
        if not output.is_file():
            raise RemuxFailed("ffmpeg produced no output file", details={"output": str(output)})
        if output.stat().st_size == 0:
            raise RemuxFailed("ffmpeg produced an empty output file", details={"output": str(output)})

        logger.debug(
            "Remuxed video for fast start",
            extra={"input": str(path), "output": str(output), "size": output.stat().st_size},
        )


__all__ = [
    "ASPECT_TOLERANCE_PERCENT",
    "FFmpegRemuxer",
    "FFprobeInspector",
    "LANDSCAPE_RATIO",
    "PORTRAIT_RATIO",
    "StreamProbe",
    "ToolResult",
    "VideoRemuxer",
    "classify_aspect_ratio",
    "percent_error",
    "run_media_tool",
    "within_tolerance",
]
