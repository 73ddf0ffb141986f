"""Durable task state.

One ``task.json`` record per task folder under the tasks directory. Every
write rewrites the whole record atomically (temp file + rename), so a crash
mid-write leaves either the old or the new record, never a mix.
"""
import hashlib
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from blackcut.config import settings
from blackcut.models.cut_point import CutPoint
from blackcut.models.task import Task, TaskRecord, TaskState, now_ms

logger = logging.getLogger(__name__)

RECORD_FILENAME = "task.json"


class StateCorruption(Exception):
    """A task record exists but cannot be parsed."""


class TaskNotFound(LookupError):
    """No task with the given id."""


def normalize_video_path(video_path: str | Path) -> str:
    """Absolute, user-expanded form used for identity and lookups."""
    return os.path.abspath(os.path.expanduser(str(video_path)))


def task_id_for_path(video_path: str | Path) -> str:
    """Deterministic task identity for a source path."""
    digest = hashlib.sha1(normalize_video_path(video_path).encode("utf-8")).hexdigest()
    return digest[:12]


class TaskStore:
    """File-backed store; the only writer of task records."""

    def __init__(self, tasks_dir: str | Path = None):
        self.tasks_dir = Path(tasks_dir or settings.tasks_dir)

    def task_folder_for(self, video_path: str | Path) -> Path:
        video_path = normalize_video_path(video_path)
        return self.tasks_dir / f"{Path(video_path).stem}_{task_id_for_path(video_path)}"

    # -------------------------------------------------------------------------
    # Record I/O
    # -------------------------------------------------------------------------

    def _load_record(self, folder: Path) -> TaskRecord:
        """
        Load a record from a task folder.

        Raises:
            FileNotFoundError: If the folder has no record
            StateCorruption: If the record is malformed
        """
        record_path = folder / RECORD_FILENAME
        content = record_path.read_text(encoding="utf-8")
        try:
            return TaskRecord.from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise StateCorruption(f"Malformed task record {record_path}: {e}") from e

    def _read_record(self, folder: Path) -> Optional[TaskRecord]:
        """Load a record, treating missing or corrupted ones as absent."""
        try:
            return self._load_record(folder)
        except FileNotFoundError:
            return None
        except StateCorruption as e:
            logger.warning(str(e))
            return None

    def _write_record(self, record: TaskRecord) -> None:
        folder = Path(record.task.task_folder_path)
        folder.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=folder, prefix=".task-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, folder / RECORD_FILENAME)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _folder_for_id(self, task_id: str) -> Optional[Path]:
        if not self.tasks_dir.exists():
            return None
        for folder in self.tasks_dir.glob(f"*_{task_id}"):
            if folder.is_dir():
                return folder
        return None

    def get_record(self, task_id: str) -> TaskRecord:
        """
        Get a task and its cut points.

        Raises:
            TaskNotFound: If no readable record exists for task_id
        """
        folder = self._folder_for_id(task_id)
        record = self._read_record(folder) if folder else None
        if record is None or record.task.id != task_id:
            raise TaskNotFound(f"Task {task_id} not found")
        return record

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def create_task(self, video_path: str | Path) -> Task:
        """
        Get or create the task for a source video.

        Idempotent: an existing task for the same path is returned unchanged.
        """
        video_path = normalize_video_path(video_path)
        folder = self.task_folder_for(video_path)

        existing = self._read_record(folder)
        if existing and existing.task.original_video_path == video_path:
            return existing.task

        task = Task(
            id=task_id_for_path(video_path),
            name=Path(video_path).name,
            original_video_path=video_path,
            task_folder_path=str(folder.absolute()),
            created_at=now_ms(),
        )
        self._write_record(TaskRecord(task=task, cut_points=[]))
        logger.info(f"Created task {task.id} for {video_path}")
        return task

    def find_task_by_path(self, video_path: str | Path) -> Optional[Task]:
        video_path = normalize_video_path(video_path)
        record = self._read_record(self.task_folder_for(video_path))
        if record and record.task.original_video_path == video_path:
            return record.task
        return None

    def get_task(self, task_id: str) -> Task:
        return self.get_record(task_id).task

    def get_tasks(self) -> List[Task]:
        """All readable tasks, most recently created first."""
        if not self.tasks_dir.exists():
            return []

        tasks = []
        for folder in self.tasks_dir.iterdir():
            if not folder.is_dir():
                continue
            record = self._read_record(folder)
            if record:
                tasks.append(record.task)

        return sorted(tasks, key=lambda t: t.created_at, reverse=True)

    def update_task(self, task: Task, cut_points: Optional[List[CutPoint]] = None) -> Task:
        """
        Rewrite a task record with updated task fields.

        Cut points are read from disk when not supplied. The workflow state
        is owned by the store and only changes through transition(); isSplit
        can only be turned on.
        """
        current = self._read_record(Path(task.task_folder_path))
        if cut_points is None:
            cut_points = current.cut_points if current else []

        if current:
            task.state = current.task.state
            task.is_split = task.is_split or current.task.is_split

        self._write_record(TaskRecord(task=task, cut_points=list(cut_points)))
        return task

    def get_cut_points(self, task: Task) -> List[CutPoint]:
        """Cut points for a task sorted by time; empty if the record is unreadable."""
        record = self._read_record(Path(task.task_folder_path))
        return record.cut_points if record else []

    def save_cut_points(self, task: Task, cut_points: List[CutPoint]) -> Task:
        return self.update_task(task, cut_points)

    def remove_task(self, task: Task) -> bool:
        """Delete a task folder with all its artifacts."""
        folder = Path(task.task_folder_path)
        if not folder.exists():
            return False
        shutil.rmtree(folder)
        logger.info(f"Removed task {task.id}")
        return True

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def transition(
        self,
        task_id: str,
        target: TaskState,
        from_state: Optional[TaskState] = None,
    ) -> Task:
        """
        Move a task to a new state and persist it.

        Args:
            task_id: Task ID
            target: State to enter
            from_state: State the task must currently be in (required to
                continue a busy phase, e.g. detecting -> previewing)

        Raises:
            TaskNotFound: If the task does not exist
            InvalidTransition: If the change is not allowed (e.g. task busy)
        """
        record = self.get_record(task_id)
        previous = record.task.state
        record.task.transition_to(target, from_state)
        self._write_record(record)
        logger.debug(f"Task {task_id}: {previous.value} -> {target.value}")
        return record.task

    def finish(self, task_id: str) -> Task:
        """Return a task to its resting state after a busy phase."""
        record = self.get_record(task_id)
        if record.task.state != record.task.resting_state:
            return self.transition(task_id, record.task.resting_state)
        return record.task

    def recover_interrupted(self) -> List[str]:
        """Reset tasks left busy by an interrupted run; returns their ids."""
        recovered = []
        for task in self.get_tasks():
            if task.state.is_busy:
                self.finish(task.id)
                recovered.append(task.id)
                logger.warning(f"Task {task.id} was left '{task.state.value}', reset")
        return recovered
