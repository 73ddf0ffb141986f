"""Black interval parsing and cut point synthesis.

Turns the blackdetect log of an ffmpeg pass into a minimal, sorted list of
cut points: one per black interval midpoint, without exact duplicates, and
spaced at least ``min_slice_duration`` apart.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from blackcut.config import settings
from blackcut.models.cut_point import CutPoint
from blackcut.utils.ffmpeg import run_blackdetect

logger = logging.getLogger(__name__)

# [blackdetect @ 0x...] black_start:1.468 black_end:2.302 black_duration:0.834
_FLOAT = r"(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)"
BLACK_INTERVAL_RE = re.compile(
    rf"black_start:\s*{_FLOAT}\s+black_end:\s*{_FLOAT}\s+black_duration:\s*{_FLOAT}"
)


@dataclass(frozen=True)
class BlackInterval:
    """A span of near-black frames reported by blackdetect."""
    start: float
    end: float
    duration: float

    @property
    def midpoint(self) -> float:
        return self.start + self.duration / 2

    def __repr__(self):
        return f"BlackInterval({self.start:.3f}-{self.end:.3f}, dur={self.duration:.3f}s)"


def parse_black_intervals(text: str) -> List[BlackInterval]:
    """
    Extract every black interval triple from diagnostic text.

    Matches are returned in text order, which is not guaranteed to be
    chronological.
    """
    return [
        BlackInterval(float(start), float(end), float(duration))
        for start, end, duration in BLACK_INTERVAL_RE.findall(text)
    ]


def midpoint_cut_points(intervals: List[BlackInterval]) -> List[CutPoint]:
    """Create one candidate cut point at the midpoint of each interval."""
    return [
        CutPoint(time=max(0.0, interval.midpoint), duration=interval.duration)
        for interval in intervals
    ]


def deduplicate_cut_points(cut_points: List[CutPoint]) -> List[CutPoint]:
    """Drop candidates whose time exactly equals an already accepted one."""
    seen = set()
    result = []
    for cp in cut_points:
        if cp.time in seen:
            continue
        seen.add(cp.time)
        result.append(cp)
    return result


def filter_min_spacing(
    cut_points: List[CutPoint],
    min_slice_duration: float = None,
    start_time: Optional[float] = None,
) -> List[CutPoint]:
    """
    Greedy left-to-right spacing filter.

    A candidate is kept only if it lies at least min_slice_duration after
    the previously kept one. The first candidate is always kept unless
    start_time is given, in which case it must lie min_slice_duration
    after start_time too.

    Args:
        cut_points: Candidates sorted ascending by time
        min_slice_duration: Minimum spacing (uses config default if not provided)
        start_time: Optional reference point for the first candidate

    Returns:
        Kept cut points, still sorted
    """
    if min_slice_duration is None:
        min_slice_duration = settings.min_slice_duration

    kept = []
    last_kept_time = start_time
    for cp in cut_points:
        if last_kept_time is None or cp.time - last_kept_time >= min_slice_duration:
            kept.append(cp)
            last_kept_time = cp.time
    return kept


def synthesize_cut_points(
    intervals: List[BlackInterval],
    min_slice_duration: float = None
) -> List[CutPoint]:
    """
    Main function to derive cut points from black intervals.

    Midpoints -> de-duplicate -> sort -> minimum spacing filter.
    """
    candidates = deduplicate_cut_points(midpoint_cut_points(intervals))
    candidates.sort(key=lambda cp: cp.time)
    kept = filter_min_spacing(candidates, min_slice_duration)
    logger.info(
        f"{len(intervals)} black intervals -> {len(candidates)} candidates -> "
        f"{len(kept)} cut points"
    )
    return kept


async def detect_cut_points(
    video_path: str | Path,
    min_slice_duration: float = None,
    min_duration: float = None,
    pixel_threshold: float = None,
) -> List[CutPoint]:
    """
    Run black frame detection on a video and return its cut points.

    Raises:
        ProbeLaunchFailure: If ffmpeg cannot be started
        ProbeFailure: If the analysis pass fails
    """
    text = await run_blackdetect(video_path, min_duration, pixel_threshold)
    intervals = parse_black_intervals(text)
    return synthesize_cut_points(intervals, min_slice_duration)
