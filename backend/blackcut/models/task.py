"""Task model."""
import enum
import time
from dataclasses import dataclass, field
from typing import List, Optional

from blackcut.models.cut_point import CutPoint


class TaskState(str, enum.Enum):
    """Task state enumeration."""
    IDLE = "idle"
    DETECTING = "detecting"
    PREVIEWING = "previewing"
    SPLITTING = "splitting"
    SPLIT = "split"

    @property
    def is_busy(self) -> bool:
        return self in BUSY_STATES


BUSY_STATES = frozenset({TaskState.DETECTING, TaskState.PREVIEWING, TaskState.SPLITTING})
RESTING_STATES = frozenset({TaskState.IDLE, TaskState.SPLIT})


class InvalidTransition(Exception):
    """Requested state change is not allowed (typically: task is busy)."""

    def __init__(self, task_id: str, current: TaskState, requested: TaskState):
        super().__init__(
            f"Task {task_id} cannot move from '{current.value}' to '{requested.value}'"
        )
        self.task_id = task_id
        self.current = current
        self.requested = requested


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Task:
    """A source video and the state of its cut point workflow."""
    id: str
    name: str
    original_video_path: str
    task_folder_path: str
    created_at: int = field(default_factory=now_ms)  # epoch milliseconds
    state: TaskState = TaskState.IDLE
    is_split: bool = False  # Monotonic

    def __repr__(self):
        return f"<Task(id={self.id}, name='{self.name}', state={self.state.value})>"

    @property
    def is_loading(self) -> bool:
        return self.state in (TaskState.DETECTING, TaskState.PREVIEWING)

    @property
    def is_splitting(self) -> bool:
        return self.state == TaskState.SPLITTING

    @property
    def resting_state(self) -> TaskState:
        """State to return to once the current busy phase ends."""
        return TaskState.SPLIT if self.is_split else TaskState.IDLE

    def can_transition(self, target: TaskState, from_state: Optional[TaskState] = None) -> bool:
        """
        New busy phases start only from a resting state. Detection hands
        over to previewing only when the caller names DETECTING as
        from_state.
        """
        current = self.state
        if from_state is not None and current != from_state:
            return False
        if target.is_busy:
            if current in RESTING_STATES:
                return True
            return (
                from_state == TaskState.DETECTING
                and target == TaskState.PREVIEWING
            )
        if target == TaskState.SPLIT and current == TaskState.SPLITTING:
            return True
        return target == self.resting_state

    def transition_to(self, target: TaskState, from_state: Optional[TaskState] = None) -> None:
        """
        Apply a validated state change.

        Raises:
            InvalidTransition: If the change is not allowed from the current
                state, or the current state is not from_state
        """
        if not self.can_transition(target, from_state):
            raise InvalidTransition(self.id, self.state, target)
        if target == TaskState.SPLIT:
            self.is_split = True
        self.state = target

    def to_dict(self) -> dict:
        """Convert to the durable record representation."""
        return {
            "id": self.id,
            "name": self.name,
            "originalVideoPath": self.original_video_path,
            "taskFolderPath": self.task_folder_path,
            "createdAt": self.created_at,
            "state": self.state.value,
            "isSplit": self.is_split,
            "isLoading": self.is_loading,
            "isSplitting": self.is_splitting,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        is_split = bool(data.get("isSplit", False))
        if "state" in data:
            state = TaskState(data["state"])
        elif data.get("isSplitting"):
            state = TaskState.SPLITTING
        elif data.get("isLoading"):
            state = TaskState.DETECTING
        else:
            state = TaskState.SPLIT if is_split else TaskState.IDLE
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            original_video_path=str(data["originalVideoPath"]),
            task_folder_path=str(data["taskFolderPath"]),
            created_at=int(data.get("createdAt", 0)),
            state=state,
            is_split=is_split,
        )


def sort_cut_points(cut_points: List[CutPoint]) -> List[CutPoint]:
    """Return cut points ordered ascending by time."""
    return sorted(cut_points, key=lambda cp: cp.time)


@dataclass
class TaskRecord:
    """Durable per-task record: task metadata plus its cut points."""
    task: Task
    cut_points: List[CutPoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "task": self.task.to_dict(),
            "cutPoints": [cp.to_dict() for cp in sort_cut_points(self.cut_points)],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TaskRecord":
        return cls(
            task=Task.from_dict(data["task"]),
            cut_points=sort_cut_points(
                [CutPoint.from_dict(cp) for cp in data.get("cutPoints") or []]
            ),
        )
