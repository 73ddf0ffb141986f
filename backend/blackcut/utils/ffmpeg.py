"""FFmpeg invocation utilities."""
import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Optional, Type

from blackcut.config import settings

logger = logging.getLogger(__name__)


class FFmpegError(Exception):
    """FFmpeg related error.

    Carries the process exit code (``None`` when the process never started)
    and the captured diagnostic output.
    """

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output

    def __str__(self):
        message = super().__str__()
        if self.output:
            return f"{message}\n{self.output.strip()[-2000:]}"
        return message


class ProbeFailure(FFmpegError):
    """Black frame analysis pass exited non-zero."""


class ProbeLaunchFailure(ProbeFailure):
    """Black frame analysis pass could not be started."""


class ArtifactExtractionFailure(FFmpegError):
    """Still or clip extraction for a preview failed."""


class SplitFailure(FFmpegError):
    """Stream-copy split failed."""


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


def format_seconds(value: float) -> str:
    """Format a time offset for the ffmpeg command line."""
    return f"{max(0.0, value):.3f}"


async def run_ffmpeg(
    args: list[str],
    error_cls: Type[FFmpegError] = FFmpegError,
    launch_error_cls: Optional[Type[FFmpegError]] = None,
    description: str = "ffmpeg",
) -> str:
    """
    Run ffmpeg to completion and return its captured stderr.

    Args:
        args: Arguments after the executable
        error_cls: Error raised on a non-zero exit code
        launch_error_cls: Error raised when the process cannot start
            (defaults to error_cls)
        description: Human readable name used in error messages

    Returns:
        Decoded diagnostic output (ffmpeg logs to stderr)

    Raises:
        FFmpegError: Subclass given by error_cls / launch_error_cls
    """
    cmd = [settings.ffmpeg_path, *args]
    logger.debug("Running: %s", " ".join(cmd))

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        launch_cls = launch_error_cls or error_cls
        raise launch_cls(f"{description} could not be started: {e}") from e

    _, stderr = await proc.communicate()
    output = stderr.decode("utf-8", errors="ignore") if stderr else ""

    if proc.returncode != 0:
        raise error_cls(
            f"{description} exited with code {proc.returncode}",
            returncode=proc.returncode,
            output=output,
        )

    return output


async def get_video_duration(video_path: str | Path) -> float:
    """
    Get the container duration of a video using ffprobe.

    Raises:
        FFmpegError: If ffprobe fails or reports no duration
    """
    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        str(video_path)
    ]

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise FFmpegError(f"ffprobe could not be started: {e}") from e

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise FFmpegError(
            f"ffprobe exited with code {proc.returncode}",
            returncode=proc.returncode,
            output=stderr.decode("utf-8", errors="ignore") if stderr else "",
        )

    try:
        data = json.loads(stdout.decode())
        duration = float(data["format"]["duration"])
    except (ValueError, KeyError, TypeError) as e:
        raise FFmpegError(f"Failed to parse ffprobe output: {e}") from e

    if duration <= 0:
        raise FFmpegError(f"ffprobe reported no duration for {video_path}")
    return duration


async def run_blackdetect(
    video_path: str | Path,
    min_duration: float = None,
    pixel_threshold: float = None,
) -> str:
    """
    Run the blackdetect filter over a video and return the raw log text.

    Args:
        video_path: Path to video file
        min_duration: Minimum black interval length in seconds
        pixel_threshold: Pixel darkness threshold (0-1)

    Returns:
        Captured diagnostic text containing black_start/black_end lines

    Raises:
        ProbeLaunchFailure: If ffmpeg is missing
        ProbeFailure: If ffmpeg exits non-zero
    """
    if min_duration is None:
        min_duration = settings.black_min_duration
    if pixel_threshold is None:
        pixel_threshold = settings.black_pixel_threshold

    args = [
        "-hide_banner",
        "-i", str(video_path),
        "-vf", f"blackdetect=d={min_duration}:pix_th={pixel_threshold}",
        "-an",
        "-f", "null",
        "-"
    ]

    return await run_ffmpeg(
        args,
        error_cls=ProbeFailure,
        launch_error_cls=ProbeLaunchFailure,
        description="Black frame detection",
    )


async def extract_still(
    video_path: str | Path,
    output_path: str | Path,
    timestamp: float,
    quality: int = None,
) -> Path:
    """
    Extract a single frame from a video at a specific timestamp.

    Args:
        video_path: Path to video file
        output_path: Path to save the image (overwritten)
        timestamp: Time in seconds to capture (clamped at 0)
        quality: JPEG quality scale (lower is better)

    Returns:
        Path to the written image
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    quality = quality or settings.preview_still_quality

    args = [
        "-y",  # Overwrite
        "-ss", format_seconds(timestamp),
        "-i", str(video_path),
        "-frames:v", "1",
        "-q:v", str(quality),
        str(output_path)
    ]

    description = f"Still extraction at {format_seconds(timestamp)}s"
    output_path.unlink(missing_ok=True)
    output = await run_ffmpeg(
        args,
        error_cls=ArtifactExtractionFailure,
        description=description,
    )
    _require_output(output_path, output, description)
    return output_path


async def extract_clip(
    video_path: str | Path,
    output_path: str | Path,
    start_time: float,
    duration: float,
    fps: int = None,
    width: int = None,
) -> Path:
    """
    Extract a short looping animated clip for hover previews.

    Args:
        video_path: Path to video file
        output_path: Path to save the animation (overwritten)
        start_time: Window start in seconds (clamped at 0)
        duration: Window length in seconds
        fps: Output frame rate
        width: Output width (height keeps aspect ratio)

    Returns:
        Path to the written animation
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fps = fps or settings.preview_anim_fps
    width = width or settings.preview_anim_width

    args = [
        "-y",
        "-ss", format_seconds(start_time),
        "-t", format_seconds(duration),
        "-i", str(video_path),
        "-vf", f"fps={fps},scale={width}:-1:flags=lanczos",
        "-an",
        "-loop", "0",
        str(output_path)
    ]

    description = f"Clip extraction at {format_seconds(start_time)}s"
    output_path.unlink(missing_ok=True)
    output = await run_ffmpeg(
        args,
        error_cls=ArtifactExtractionFailure,
        description=description,
    )
    _require_output(output_path, output, description)
    return output_path


def _require_output(output_path: Path, output: str, description: str) -> None:
    """ffmpeg exits 0 when a seek lands past the end and nothing is encoded."""
    if not output_path.is_file() or output_path.stat().st_size == 0:
        raise ArtifactExtractionFailure(
            f"{description} produced no output",
            returncode=0,
            output=output,
        )
