"""Cut point model."""
import enum
import math
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional


class ArtifactRole(str, enum.Enum):
    """Preview artifact role enumeration."""
    BEFORE = "before"
    AFTER = "after"
    ANIM_BEFORE = "anim_before"
    ANIM_AFTER = "anim_after"

    @property
    def record_key(self) -> str:
        """Key used in the durable task record."""
        return _RECORD_KEYS[self]

    @property
    def extension(self) -> str:
        return "gif" if self in (ArtifactRole.ANIM_BEFORE, ArtifactRole.ANIM_AFTER) else "jpg"


_RECORD_KEYS = {
    ArtifactRole.BEFORE: "previewBefore",
    ArtifactRole.AFTER: "previewAfter",
    ArtifactRole.ANIM_BEFORE: "previewAnimBefore",
    ArtifactRole.ANIM_AFTER: "previewAnimAfter",
}


class ArtifactState(str, enum.Enum):
    """Artifact state enumeration."""
    ABSENT = "absent"  # Never generated, or generation failed
    STALE = "stale"  # Generated for a previous time, pending regeneration
    READY = "ready"


@dataclass(frozen=True)
class Artifact:
    """A preview file and whether it may be shown."""
    state: ArtifactState = ArtifactState.ABSENT
    path: Optional[str] = None

    @classmethod
    def ready(cls, path) -> "Artifact":
        return cls(ArtifactState.READY, str(path))

    def invalidate(self) -> "Artifact":
        if self.state == ArtifactState.READY:
            return Artifact(ArtifactState.STALE, self.path)
        return self

    @property
    def usable_path(self) -> Optional[str]:
        """Path only when the artifact matches the current time."""
        return self.path if self.state == ArtifactState.READY else None


def new_cut_point_id() -> str:
    """Generate an opaque cut point identity."""
    return f"cp_{uuid.uuid4().hex[:16]}"


def _absent_artifacts() -> Dict[ArtifactRole, Artifact]:
    return {role: Artifact() for role in ArtifactRole}


@dataclass
class CutPoint:
    """A split time within a task's source video."""
    time: float
    id: str = field(default_factory=new_cut_point_id)
    original_time: Optional[float] = None
    duration: Optional[float] = None  # Detected black interval length
    artifacts: Dict[ArtifactRole, Artifact] = field(default_factory=_absent_artifacts)

    def __post_init__(self):
        self.time = _validate_time(self.time)
        if self.original_time is None:
            self.original_time = self.time
        for role in ArtifactRole:
            self.artifacts.setdefault(role, Artifact())

    def __repr__(self):
        return f"CutPoint({self.id}, time={self.time:.3f})"

    @property
    def preview_before(self) -> Optional[str]:
        return self.artifacts[ArtifactRole.BEFORE].usable_path

    @property
    def preview_after(self) -> Optional[str]:
        return self.artifacts[ArtifactRole.AFTER].usable_path

    @property
    def preview_anim_before(self) -> Optional[str]:
        return self.artifacts[ArtifactRole.ANIM_BEFORE].usable_path

    @property
    def preview_anim_after(self) -> Optional[str]:
        return self.artifacts[ArtifactRole.ANIM_AFTER].usable_path

    @property
    def has_previews(self) -> bool:
        """True when every artifact is ready."""
        return all(a.state == ArtifactState.READY for a in self.artifacts.values())

    def set_artifact(self, role: ArtifactRole, path) -> None:
        self.artifacts[role] = Artifact.ready(path)

    def invalidate_artifacts(self) -> None:
        """Mark every artifact stale so it is never shown for the new time."""
        self.artifacts = {role: a.invalidate() for role, a in self.artifacts.items()}

    def clear_artifacts(self) -> None:
        self.artifacts = _absent_artifacts()

    def set_time(self, time: float) -> None:
        """
        Move the cut point.

        Raises:
            ValueError: If time is negative
        """
        self.time = _validate_time(time)
        self.invalidate_artifacts()

    def reset(self) -> None:
        """Recenter the cut point on the time it was first assigned."""
        self.set_time(self.original_time)

    def nudge(self, delta: float, window: float) -> float:
        """
        Move the cut point by delta, bounded to window seconds around
        original_time and never below zero.

        Returns:
            The new time
        """
        low = max(0.0, self.original_time - window)
        high = self.original_time + window
        self.set_time(min(high, max(low, self.time + delta)))
        return self.time

    def to_dict(self) -> dict:
        """Convert to the durable record representation."""
        data = {
            "id": self.id,
            "time": self.time,
            "originalTime": self.original_time,
        }
        if self.duration is not None:
            data["duration"] = self.duration
        for role, artifact in self.artifacts.items():
            if artifact.usable_path:
                data[role.record_key] = artifact.usable_path
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CutPoint":
        artifacts = _absent_artifacts()
        for role in ArtifactRole:
            path = data.get(role.record_key)
            if path:
                artifacts[role] = Artifact.ready(path)
        return cls(
            id=str(data["id"]),
            time=float(data["time"]),
            original_time=_optional_float(data.get("originalTime")),
            duration=_optional_float(data.get("duration")),
            artifacts=artifacts,
        )


def _validate_time(value) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError("Cut point time must be a finite number")
    if value < 0:
        raise ValueError("Cut point time cannot be negative")
    return value


def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None
