"""Task service layer.

A TaskService is the handle a caller (API route, job handler, CLI) holds
for one session. It translates operator requests into store transitions
and pipeline runs; every busy phase is entered through the store, which
rejects re-entrant requests, and is always left again.
"""
import glob
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from blackcut.config import settings
from blackcut.models.cut_point import CutPoint
from blackcut.models.task import InvalidTransition, Task, TaskState, sort_cut_points
from blackcut.pipeline.previews import (
    artifact_paths,
    generate_previews_for_cut_point,
    read_source_duration,
)
from blackcut.pipeline.runner import ProgressCallback, run_detection_pipeline
from blackcut.pipeline.segmenter import default_output_dir, split_video
from blackcut.services.task_store import TaskStore
from blackcut.utils.ffmpeg import ArtifactExtractionFailure, FFmpegError

logger = logging.getLogger(__name__)


class CutPointNotFound(LookupError):
    """No cut point with the given id in the task."""


@dataclass
class CutPointEdit:
    """Result of a single cut point edit."""
    cut_point: CutPoint
    cut_points: List[CutPoint]
    preview_error: Optional[str] = None


class TaskService:
    """Service for task operations."""

    def __init__(self, store: Optional[TaskStore] = None):
        self.store = store or TaskStore()

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def create_task(self, video_path: str | Path) -> Task:
        """
        Get or create the task for a local video file.

        Raises:
            ValueError: If the file does not exist
        """
        source_path = Path(video_path).expanduser()
        if not source_path.is_file():
            raise ValueError(f"File not found: {video_path}")
        return self.store.create_task(source_path)

    def list_tasks(self) -> List[Task]:
        return self.store.get_tasks()

    def get_task(self, task_id: str) -> Task:
        return self.store.get_task(task_id)

    def get_cut_points(self, task_id: str) -> List[CutPoint]:
        return self.store.get_record(task_id).cut_points

    def delete_task(self, task_id: str) -> bool:
        """
        Delete a task and its artifact folder.

        Raises:
            InvalidTransition: If the task is busy
        """
        task = self.store.get_task(task_id)
        if task.state.is_busy:
            raise InvalidTransition(task.id, task.state, TaskState.IDLE)
        return self.store.remove_task(task)

    # -------------------------------------------------------------------------
    # Detection
    # -------------------------------------------------------------------------

    async def run_detection(
        self,
        task_id: str,
        force: bool = False,
        min_slice_duration: float = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[CutPoint]:
        """
        Detect cut points for a task and generate their previews.

        Existing cut points are returned as-is unless force is set, and a
        task that was already split is never re-detected without force.
        On a detection failure the task keeps an empty cut point list so
        detection can be retried.

        Raises:
            InvalidTransition: If the task is already busy
            ProbeLaunchFailure, ProbeFailure: If the analysis pass fails
        """
        task = self.store.get_task(task_id)
        existing = self.store.get_cut_points(task)
        if not force and (existing or task.is_split):
            return existing

        task = self.store.transition(task_id, TaskState.DETECTING)
        try:
            if existing:
                self._remove_artifacts(task, existing)
                task = self.store.save_cut_points(task, [])
            result = await run_detection_pipeline(
                self.store,
                task,
                min_slice_duration=min_slice_duration,
                progress_callback=progress_callback,
            )
        except FFmpegError as e:
            logger.error(f"Detection failed for task {task_id}: {e}")
            raise
        finally:
            self.store.finish(task_id)

        return result.cut_points

    # -------------------------------------------------------------------------
    # Cut point edits
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _editing(self, task_id: str):
        task = self.store.transition(task_id, TaskState.PREVIEWING)
        try:
            yield task
        finally:
            self.store.finish(task_id)

    def _find(self, cut_points: List[CutPoint], cut_point_id: str) -> CutPoint:
        for cp in cut_points:
            if cp.id == cut_point_id:
                return cp
        raise CutPointNotFound(f"Cut point {cut_point_id} not found")

    async def _regenerate(
        self, task: Task, cut_points: List[CutPoint], cut_point: CutPoint
    ) -> CutPointEdit:
        """Persist the edit with cleared artifacts, then regenerate them."""
        cut_point.invalidate_artifacts()
        task = self.store.save_cut_points(task, cut_points)

        preview_error = None
        try:
            await generate_previews_for_cut_point(
                task.original_video_path,
                cut_point,
                task.task_folder_path,
                duration=await read_source_duration(task.original_video_path),
            )
        except ArtifactExtractionFailure as e:
            logger.warning(f"Preview regeneration failed for {cut_point.id}: {e}")
            preview_error = str(e)

        self.store.save_cut_points(task, cut_points)
        return CutPointEdit(cut_point, sort_cut_points(cut_points), preview_error)

    async def add_cut_point(self, task_id: str, time: float) -> CutPointEdit:
        """
        Insert a manual cut point. The spacing filter does not apply.

        Raises:
            ValueError: If time is negative
            InvalidTransition: If the task is busy
        """
        cut_point = CutPoint(time=time)
        async with self._editing(task_id) as task:
            cut_points = self.store.get_cut_points(task)
            cut_points.append(cut_point)
            return await self._regenerate(task, sort_cut_points(cut_points), cut_point)

    async def update_cut_point(self, task_id: str, cut_point_id: str, time: float) -> CutPointEdit:
        """Move a cut point and regenerate its previews."""
        async with self._editing(task_id) as task:
            cut_points = self.store.get_cut_points(task)
            cut_point = self._find(cut_points, cut_point_id)
            cut_point.set_time(time)
            return await self._regenerate(task, sort_cut_points(cut_points), cut_point)

    async def reset_cut_point(self, task_id: str, cut_point_id: str) -> CutPointEdit:
        """Move a cut point back to its originally assigned time."""
        async with self._editing(task_id) as task:
            cut_points = self.store.get_cut_points(task)
            cut_point = self._find(cut_points, cut_point_id)
            cut_point.reset()
            return await self._regenerate(task, sort_cut_points(cut_points), cut_point)

    async def nudge_cut_point(
        self,
        task_id: str,
        cut_point_id: str,
        delta: float,
        window: float = None,
    ) -> CutPointEdit:
        """Fine-adjust a cut point within window seconds of its original time."""
        if window is None:
            window = settings.fine_adjust_window
        async with self._editing(task_id) as task:
            cut_points = self.store.get_cut_points(task)
            cut_point = self._find(cut_points, cut_point_id)
            cut_point.nudge(delta, window)
            return await self._regenerate(task, sort_cut_points(cut_points), cut_point)

    def delete_cut_point(self, task_id: str, cut_point_id: str) -> List[CutPoint]:
        """
        Remove a cut point and its preview files.

        Raises:
            CutPointNotFound: If the id is unknown
            InvalidTransition: If the task is busy
        """
        task = self.store.get_task(task_id)
        if task.state.is_busy:
            raise InvalidTransition(task.id, task.state, TaskState.PREVIEWING)

        cut_points = self.store.get_cut_points(task)
        cut_point = self._find(cut_points, cut_point_id)
        remaining = [cp for cp in cut_points if cp.id != cut_point_id]
        self.store.save_cut_points(task, remaining)
        self._remove_artifacts(task, [cut_point])
        return remaining

    def _remove_artifacts(self, task: Task, cut_points: List[CutPoint]) -> None:
        for cp in cut_points:
            for path in artifact_paths(cp, task.task_folder_path).values():
                path.unlink(missing_ok=True)

    # -------------------------------------------------------------------------
    # Splitting
    # -------------------------------------------------------------------------

    async def confirm_split(self, task_id: str, output_dir: str | Path = None) -> List[Path]:
        """
        Split the source video at the task's current cut points.

        Raises:
            InvalidTransition: If the task is busy
            SplitFailure: If ffmpeg fails; the task returns to its resting
                state and partial outputs are left for the operator
        """
        task = self.store.transition(task_id, TaskState.SPLITTING)
        try:
            cut_points = self.store.get_cut_points(task)
            outputs = await split_video(task.original_video_path, cut_points, output_dir)
        except BaseException:
            self.store.finish(task_id)
            raise

        self.store.transition(task_id, TaskState.SPLIT)
        logger.info(f"Task {task_id} split into {len(outputs)} files")
        return outputs

    def list_split_outputs(self, task_id: str, output_dir: str | Path = None) -> List[Path]:
        """Existing split files for a task, in segment order."""
        task = self.store.get_task(task_id)
        source = Path(task.original_video_path)
        output_dir = Path(output_dir) if output_dir else default_output_dir(source)
        if not output_dir.is_dir():
            return []
        return sorted(output_dir.glob(f"{glob.escape(source.stem)}_part*{glob.escape(source.suffix)}"))
