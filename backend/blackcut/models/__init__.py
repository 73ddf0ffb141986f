# Models module
from blackcut.models.cut_point import Artifact, ArtifactRole, ArtifactState, CutPoint
from blackcut.models.task import InvalidTransition, Task, TaskRecord, TaskState

__all__ = [
    "Artifact",
    "ArtifactRole",
    "ArtifactState",
    "CutPoint",
    "InvalidTransition",
    "Task",
    "TaskRecord",
    "TaskState",
]
