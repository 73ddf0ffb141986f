"""Detection pipeline runner.

Orchestrates detect -> filter -> generate-artifacts -> persist for one task.
Each step either returns its output or raises, which stops the pipeline.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from blackcut.models.cut_point import CutPoint
from blackcut.models.task import Task, TaskState
from blackcut.pipeline.blackdetect import (
    BlackInterval,
    parse_black_intervals,
    synthesize_cut_points,
)
from blackcut.pipeline.previews import PreviewReport, generate_previews, read_source_duration
from blackcut.services.task_store import TaskStore
from blackcut.utils.ffmpeg import run_blackdetect

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], Awaitable[None]]


@dataclass
class PipelineResult:
    """Result from a detection pipeline run."""
    task: Task
    cut_points: List[CutPoint]
    intervals: List[BlackInterval]
    preview_report: PreviewReport
    timings: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "task_id": self.task.id,
            "interval_count": len(self.intervals),
            "cut_point_count": len(self.cut_points),
            "previews": self.preview_report.to_dict(),
            "timings": {k: round(v, 3) for k, v in self.timings.items()},
        }


async def run_detection_pipeline(
    store: TaskStore,
    task: Task,
    min_slice_duration: float = None,
    max_workers: int = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> PipelineResult:
    """
    Run the full detection pipeline for a task already in the detecting state.

    Args:
        store: Task store used for the state change and the final write
        task: Task being processed
        min_slice_duration: Spacing filter override
        max_workers: Preview concurrency override
        progress_callback: Optional async callback(percent, message)

    Returns:
        PipelineResult with the persisted cut points

    Raises:
        ProbeLaunchFailure, ProbeFailure: From the detect step
    """
    video_path = task.original_video_path
    timings: Dict[str, float] = {}

    async def report_progress(pct: float, msg: str):
        if progress_callback:
            await progress_callback(pct, msg)
        logger.info(f"[{task.id} {pct:.0f}%] {msg}")

    # Step 1: detect
    await report_progress(0, "Detecting black frames...")
    started = time.monotonic()
    text = await run_blackdetect(video_path)
    intervals = parse_black_intervals(text)
    timings["detect"] = time.monotonic() - started
    await report_progress(40, f"Found {len(intervals)} black intervals")

    # Step 2: filter
    started = time.monotonic()
    cut_points = synthesize_cut_points(intervals, min_slice_duration)
    timings["filter"] = time.monotonic() - started
    await report_progress(45, f"Kept {len(cut_points)} cut points")

    # Step 3: generate artifacts
    task = store.transition(
        task.id, TaskState.PREVIEWING, from_state=TaskState.DETECTING
    )

    async def preview_progress(done: int, total: int):
        await report_progress(45 + 50 * done / total, f"Previews {done}/{total}")

    started = time.monotonic()
    duration = await read_source_duration(video_path) if cut_points else None
    report = await generate_previews(
        video_path,
        cut_points,
        task.task_folder_path,
        max_workers=max_workers,
        progress_callback=preview_progress,
        duration=duration,
    )
    timings["previews"] = time.monotonic() - started

    # Step 4: persist (single batch write)
    started = time.monotonic()
    task = store.save_cut_points(task, cut_points)
    timings["persist"] = time.monotonic() - started
    await report_progress(100, f"Detection complete - {len(cut_points)} cut points")

    return PipelineResult(
        task=task,
        cut_points=cut_points,
        intervals=intervals,
        preview_report=report,
        timings=timings,
    )
