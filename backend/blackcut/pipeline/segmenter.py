"""Lossless stream-copy splitting.

Cut points are split boundaries: n sorted times give n + 1 contiguous parts
covering [0, t1), [t1, t2), ..., [tn, end). Streams are copied, not
re-encoded, so boundaries land on the nearest keyframe the demuxer allows.
"""
import logging
from pathlib import Path
from typing import List

from blackcut.config import settings
from blackcut.models.cut_point import CutPoint
from blackcut.utils.ffmpeg import SplitFailure, format_seconds, run_ffmpeg

logger = logging.getLogger(__name__)


def _index_width(segment_count: int) -> int:
    return max(3, len(str(segment_count)))


def segment_output_paths(
    source_path: str | Path,
    cut_count: int,
    output_dir: str | Path
) -> List[Path]:
    """
    Declared output files for a split with cut_count cut points.

    Names are <stem>_part<NNN><ext>, 1-based and zero-padded to at least
    three digits, so callers can enumerate outputs without listing the
    directory.
    """
    source_path = Path(source_path)
    segment_count = cut_count + 1
    width = _index_width(segment_count)
    return [
        Path(output_dir) / f"{source_path.stem}_part{index:0{width}d}{source_path.suffix}"
        for index in range(1, segment_count + 1)
    ]


def split_boundaries(cut_points: List[CutPoint]) -> List[float]:
    """
    Strictly increasing boundary times for the segment muxer.

    Times are collapsed on their command-line form, so points closer than
    the written precision become a single boundary.
    """
    formatted = {format_seconds(cp.time) for cp in cut_points}
    return sorted(float(value) for value in formatted)


def default_output_dir(source_path: str | Path) -> Path:
    """Default split destination: <output root>/<stem>_splits."""
    return settings.output_root / f"{Path(source_path).stem}_splits"


def build_split_command(
    source_path: str | Path,
    times: List[float],
    output_dir: str | Path
) -> List[str]:
    """
    Build ffmpeg arguments for a stream-copy split at the given sorted times.

    With no times this is a single direct stream copy.
    """
    source_path = Path(source_path)
    output_dir = Path(output_dir)

    args = ["-hide_banner", "-y", "-i", str(source_path), "-map", "0", "-c", "copy"]

    if not times:
        args.append(str(segment_output_paths(source_path, 0, output_dir)[0]))
        return args

    width = _index_width(len(times) + 1)
    stem = source_path.stem.replace("%", "%%")
    pattern = output_dir / f"{stem}_part%0{width}d{source_path.suffix}"

    args += [
        "-f", "segment",
        "-segment_times", ",".join(format_seconds(t) for t in times),
        "-segment_start_number", "1",
        "-reset_timestamps", "1",
        str(pattern)
    ]
    return args


async def split_video(
    source_path: str | Path,
    cut_points: List[CutPoint],
    output_dir: str | Path = None,
) -> List[Path]:
    """
    Split a video at its cut points without re-encoding.

    Args:
        source_path: Path to source video
        cut_points: Cut points in any order
        output_dir: Destination directory (defaults to <stem>_splits)

    Returns:
        Declared output paths, one per segment

    Raises:
        SplitFailure: If ffmpeg fails; partial outputs are left in place
    """
    source_path = Path(source_path)
    output_dir = Path(output_dir) if output_dir else default_output_dir(source_path)
    output_dir.mkdir(parents=True, exist_ok=True)

    times = split_boundaries(cut_points)
    args = build_split_command(source_path, times, output_dir)

    logger.info(f"Splitting {source_path.name} into {len(times) + 1} parts in {output_dir}")
    await run_ffmpeg(args, error_cls=SplitFailure, description="Split")

    return segment_output_paths(source_path, len(times), output_dir)
