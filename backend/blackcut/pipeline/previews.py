"""Preview artifact generation.

Each cut point gets two stills (shortly before / after the cut) and two
short looping clips for hover previews. Files are named from the cut point
id and role, so regenerating a point overwrites its previous artifacts.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Awaitable, Dict, List, Optional

from blackcut.config import settings
from blackcut.models.cut_point import ArtifactRole, CutPoint
from blackcut.utils.ffmpeg import (
    ArtifactExtractionFailure,
    FFmpegError,
    extract_clip,
    extract_still,
    get_video_duration,
)

logger = logging.getLogger(__name__)

# Latest seek target that still decodes a frame before end of stream
END_MARGIN = 0.1


@dataclass
class PreviewReport:
    """Outcome of a preview generation batch."""
    generated: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # cut point id -> error

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {"generated": list(self.generated), "failed": dict(self.failed)}


async def read_source_duration(video_path: str | Path) -> Optional[float]:
    """Source duration for clamping preview windows, or None if unknown."""
    try:
        return await get_video_duration(video_path)
    except FFmpegError as e:
        logger.warning(f"Could not read duration of {video_path}, previews are unclamped: {e}")
        return None


def artifact_path(cut_point_id: str, role: ArtifactRole, artifacts_dir: str | Path) -> Path:
    """Deterministic artifact location for a cut point and role."""
    return Path(artifacts_dir) / f"{cut_point_id}_{role.value}.{role.extension}"


def artifact_paths(cut_point: CutPoint, artifacts_dir: str | Path) -> Dict[ArtifactRole, Path]:
    """All four artifact locations for a cut point."""
    return {role: artifact_path(cut_point.id, role, artifacts_dir) for role in ArtifactRole}


async def generate_previews_for_cut_point(
    video_path: str | Path,
    cut_point: CutPoint,
    artifacts_dir: str | Path,
    offset: float = None,
    hover_duration: float = None,
    duration: Optional[float] = None,
) -> CutPoint:
    """
    Generate the four preview artifacts for one cut point.

    Extractions run strictly in order: still before, still after, clip
    before, clip after. Artifacts are only marked ready once all four
    succeed; on failure the point is left with cleared artifacts.

    Args:
        video_path: Path to source video
        cut_point: Cut point to update in place
        artifacts_dir: Directory for preview files
        offset: Distance of the stills from the cut (uses config default)
        hover_duration: Length of each hover clip (uses config default)
        duration: Source duration; the after-side windows are kept inside it

    Returns:
        The updated cut point

    Raises:
        ArtifactExtractionFailure: If any extraction fails
    """
    if offset is None:
        offset = settings.preview_offset
    if hover_duration is None:
        hover_duration = settings.hover_duration

    paths = artifact_paths(cut_point, artifacts_dir)
    time = cut_point.time
    cut_point.invalidate_artifacts()

    try:
        await extract_still(video_path, paths[ArtifactRole.BEFORE], max(0.0, time - offset))
        after_time = time + offset
        if duration is not None:
            after_time = min(after_time, max(0.0, duration - END_MARGIN))
        await extract_still(video_path, paths[ArtifactRole.AFTER], after_time)

        anim_start = max(0.0, time - hover_duration)
        # Nothing precedes a cut at 0, so show the opening seconds instead
        anim_length = (time - anim_start) or hover_duration
        await extract_clip(
            video_path, paths[ArtifactRole.ANIM_BEFORE], anim_start, anim_length
        )
        anim_after_length = hover_duration
        if duration is not None and duration > time:
            anim_after_length = min(hover_duration, duration - time)
        await extract_clip(
            video_path, paths[ArtifactRole.ANIM_AFTER], time, anim_after_length
        )
    except ArtifactExtractionFailure:
        cut_point.clear_artifacts()
        raise

    for role, path in paths.items():
        cut_point.set_artifact(role, path)

    return cut_point


async def generate_previews(
    video_path: str | Path,
    cut_points: List[CutPoint],
    artifacts_dir: str | Path,
    max_workers: int = None,
    progress_callback: Optional[Callable[[int, int], Awaitable[None]]] = None,
    duration: Optional[float] = None,
) -> PreviewReport:
    """
    Generate previews for many cut points.

    A failure for one cut point is recorded in the report and does not
    stop the others. With max_workers > 1, up to that many cut points are
    processed concurrently; each point's own extractions stay sequential.

    Args:
        video_path: Path to source video
        cut_points: Cut points to update in place
        artifacts_dir: Directory for preview files
        max_workers: Concurrent cut points (uses config default)
        progress_callback: Optional async callback(done, total)
        duration: Source duration used to clamp preview windows

    Returns:
        PreviewReport listing generated and failed cut point ids
    """
    max_workers = max(1, max_workers or settings.preview_workers)
    Path(artifacts_dir).mkdir(parents=True, exist_ok=True)

    report = PreviewReport()
    total = len(cut_points)
    semaphore = asyncio.Semaphore(max_workers)
    done = 0

    async def process(cp: CutPoint):
        nonlocal done
        async with semaphore:
            try:
                await generate_previews_for_cut_point(
                    video_path, cp, artifacts_dir, duration=duration
                )
                report.generated.append(cp.id)
            except ArtifactExtractionFailure as e:
                logger.warning(f"Preview generation failed for {cp.id} at {cp.time:.3f}s: {e}")
                report.failed[cp.id] = str(e)
            done += 1
            if progress_callback:
                await progress_callback(done, total)

    if max_workers == 1:
        for cp in cut_points:
            await process(cp)
    else:
        await asyncio.gather(*(process(cp) for cp in cut_points))

    logger.info(f"Generated previews for {len(report.generated)}/{total} cut points")
    return report
