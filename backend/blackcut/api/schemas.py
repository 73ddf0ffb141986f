"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from blackcut.models.cut_point import CutPoint
from blackcut.models.task import Task


# =============================================================================
# Task Schemas
# =============================================================================

class TaskCreate(BaseModel):
    """Request to get or create the task for a local video."""
    video_path: str = Field(..., description="Path to local video file")


class TaskResponse(BaseModel):
    """Task response."""
    id: str
    name: str
    original_video_path: str
    task_folder_path: str
    created_at: int
    state: str
    is_split: bool
    is_loading: bool
    is_splitting: bool
    cut_point_count: Optional[int] = None

    @classmethod
    def from_task(cls, task: Task, cut_point_count: Optional[int] = None) -> "TaskResponse":
        return cls(
            id=task.id,
            name=task.name,
            original_video_path=task.original_video_path,
            task_folder_path=task.task_folder_path,
            created_at=task.created_at,
            state=task.state.value,
            is_split=task.is_split,
            is_loading=task.is_loading,
            is_splitting=task.is_splitting,
            cut_point_count=cut_point_count,
        )


class DetectRequest(BaseModel):
    """Request to run detection."""
    force: bool = Field(False, description="Re-detect even if cut points exist")


# =============================================================================
# Cut Point Schemas
# =============================================================================

class CutPointResponse(BaseModel):
    """Cut point response. Preview fields are null unless ready."""
    id: str
    time: float
    original_time: float
    duration: Optional[float] = None
    preview_before: Optional[str] = None
    preview_after: Optional[str] = None
    preview_anim_before: Optional[str] = None
    preview_anim_after: Optional[str] = None

    @classmethod
    def from_cut_point(cls, cp: CutPoint) -> "CutPointResponse":
        return cls(
            id=cp.id,
            time=cp.time,
            original_time=cp.original_time,
            duration=cp.duration,
            preview_before=cp.preview_before,
            preview_after=cp.preview_after,
            preview_anim_before=cp.preview_anim_before,
            preview_anim_after=cp.preview_anim_after,
        )


class CutPointCreate(BaseModel):
    """Request to add a manual cut point."""
    time: float = Field(..., ge=0, description="Split offset in seconds")


class CutPointUpdate(BaseModel):
    """Request to move a cut point."""
    time: float = Field(..., ge=0, description="New split offset in seconds")


class CutPointNudge(BaseModel):
    """Request to fine-adjust a cut point."""
    delta: float = Field(..., description="Seconds to move (negative = earlier)")


class CutPointEditResponse(BaseModel):
    """Result of a cut point edit."""
    cut_point: CutPointResponse
    cut_points: List[CutPointResponse]
    preview_error: Optional[str] = None


# =============================================================================
# Split Schemas
# =============================================================================

class SplitRequest(BaseModel):
    """Request to split the video at the current cut points."""
    output_dir: Optional[str] = Field(None, description="Destination (defaults to <name>_splits)")


class SplitOutputsResponse(BaseModel):
    """Split files present for a task."""
    task_id: str
    outputs: List[str]


# =============================================================================
# Job Schemas
# =============================================================================

class JobResponse(BaseModel):
    """Background job response."""
    task_id: str
    job_type: str
    status: str
    progress: float
    message: Optional[str]
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# =============================================================================
# Health Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    message: Optional[str] = None


class DependencyCheckResponse(BaseModel):
    """Dependency check response."""
    name: str
    available: bool
    path: Optional[str] = None
    install_command: str
