"""API routes."""
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from blackcut.config import settings
from blackcut.models.task import InvalidTransition
from blackcut.services.task_service import CutPointEdit, CutPointNotFound, TaskService
from blackcut.services.task_store import TaskNotFound, TaskStore
from blackcut.utils.ffmpeg import FFmpegError, check_ffmpeg_available, check_ffprobe_available
from blackcut.workers.job_runner import JobType, job_runner
from blackcut.api.schemas import (
    CutPointCreate,
    CutPointEditResponse,
    CutPointNudge,
    CutPointResponse,
    CutPointUpdate,
    DependencyCheckResponse,
    DetectRequest,
    HealthResponse,
    JobResponse,
    SplitOutputsResponse,
    SplitRequest,
    TaskCreate,
    TaskResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_task_service() -> TaskService:
    """Dependency to get a task service bound to the configured tasks directory."""
    return TaskService(TaskStore(settings.tasks_dir))


def _raise_http(e: Exception):
    """Map service errors to HTTP errors."""
    if isinstance(e, (TaskNotFound, CutPointNotFound)):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransition):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, FFmpegError):
        raise HTTPException(status_code=502, detail=str(e))
    raise e


def _edit_response(edit: CutPointEdit) -> CutPointEditResponse:
    return CutPointEditResponse(
        cut_point=CutPointResponse.from_cut_point(edit.cut_point),
        cut_points=[CutPointResponse.from_cut_point(cp) for cp in edit.cut_points],
        preview_error=edit.preview_error,
    )


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available()
    ffprobe_ok = check_ffprobe_available()

    all_ok = ffmpeg_ok and ffprobe_ok

    message = None
    if not all_ok:
        missing = []
        if not ffmpeg_ok:
            missing.append("ffmpeg")
        if not ffprobe_ok:
            missing.append("ffprobe")
        message = f"Missing dependencies: {', '.join(missing)}. Install with: brew install ffmpeg"

    return HealthResponse(
        status="healthy" if all_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        message=message
    )


@router.get("/dependencies", response_model=List[DependencyCheckResponse])
async def check_dependencies():
    """Check status of all dependencies."""
    deps = []

    for name, configured in (("ffmpeg", settings.ffmpeg_path), ("ffprobe", settings.ffprobe_path)):
        path = shutil.which(configured)
        deps.append(DependencyCheckResponse(
            name=name,
            available=path is not None,
            path=path,
            install_command="brew install ffmpeg"
        ))

    return deps


# =============================================================================
# Tasks
# =============================================================================

@router.get("/tasks", response_model=List[TaskResponse])
async def list_tasks(service: TaskService = Depends(get_task_service)):
    """List all tasks, most recent first."""
    return [TaskResponse.from_task(task) for task in service.list_tasks()]


@router.post("/tasks", response_model=TaskResponse)
async def create_task(data: TaskCreate, service: TaskService = Depends(get_task_service)):
    """Get or create the task for a local video file."""
    try:
        task = service.create_task(data.video_path)
        return TaskResponse.from_task(task, len(service.get_cut_points(task.id)))
    except Exception as e:
        _raise_http(e)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, service: TaskService = Depends(get_task_service)):
    """Get a task."""
    try:
        record = service.store.get_record(task_id)
        return TaskResponse.from_task(record.task, len(record.cut_points))
    except Exception as e:
        _raise_http(e)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    """Delete a task and all its artifacts."""
    try:
        service.delete_task(task_id)
        return {"status": "deleted", "task_id": task_id}
    except Exception as e:
        _raise_http(e)


@router.post("/tasks/{task_id}/detect", response_model=JobResponse, status_code=202)
async def start_detection(
    task_id: str,
    data: DetectRequest = DetectRequest(),
    service: TaskService = Depends(get_task_service),
):
    """Start black frame detection in the background."""
    return _start_job(service, task_id, JobType.DETECT, force=data.force)


@router.get("/jobs/{task_id}", response_model=JobResponse)
async def get_job(task_id: str):
    """Get the latest background job for a task."""
    job = job_runner.get_job(task_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"No job for task {task_id}")
    return JobResponse(**job.to_dict())


def _start_job(service: TaskService, task_id: str, job_type: JobType, **kwargs) -> JobResponse:
    try:
        task = service.get_task(task_id)
    except Exception as e:
        _raise_http(e)

    if task.state.is_busy:
        raise HTTPException(status_code=409, detail=f"Task {task_id} is busy ({task.state.value})")

    job = job_runner.start_job(task_id, job_type, store=service.store, **kwargs)
    if not job:
        raise HTTPException(status_code=409, detail=f"A job is already running for task {task_id}")
    return JobResponse(**job.to_dict())


# =============================================================================
# Cut Points
# =============================================================================

@router.get("/tasks/{task_id}/cut-points", response_model=List[CutPointResponse])
async def list_cut_points(task_id: str, service: TaskService = Depends(get_task_service)):
    """List a task's cut points sorted by time."""
    try:
        return [CutPointResponse.from_cut_point(cp) for cp in service.get_cut_points(task_id)]
    except Exception as e:
        _raise_http(e)


@router.post("/tasks/{task_id}/cut-points", response_model=CutPointEditResponse)
async def add_cut_point(
    task_id: str,
    data: CutPointCreate,
    service: TaskService = Depends(get_task_service),
):
    """Add a manual cut point and generate its previews."""
    try:
        return _edit_response(await service.add_cut_point(task_id, data.time))
    except Exception as e:
        _raise_http(e)


@router.patch("/tasks/{task_id}/cut-points/{cut_point_id}", response_model=CutPointEditResponse)
async def update_cut_point(
    task_id: str,
    cut_point_id: str,
    data: CutPointUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Move a cut point and regenerate its previews."""
    try:
        return _edit_response(await service.update_cut_point(task_id, cut_point_id, data.time))
    except Exception as e:
        _raise_http(e)


@router.post("/tasks/{task_id}/cut-points/{cut_point_id}/reset", response_model=CutPointEditResponse)
async def reset_cut_point(
    task_id: str,
    cut_point_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Move a cut point back to its original time."""
    try:
        return _edit_response(await service.reset_cut_point(task_id, cut_point_id))
    except Exception as e:
        _raise_http(e)


@router.post("/tasks/{task_id}/cut-points/{cut_point_id}/nudge", response_model=CutPointEditResponse)
async def nudge_cut_point(
    task_id: str,
    cut_point_id: str,
    data: CutPointNudge,
    service: TaskService = Depends(get_task_service),
):
    """Fine-adjust a cut point around its original time."""
    try:
        return _edit_response(await service.nudge_cut_point(task_id, cut_point_id, data.delta))
    except Exception as e:
        _raise_http(e)


@router.delete("/tasks/{task_id}/cut-points/{cut_point_id}", response_model=List[CutPointResponse])
async def delete_cut_point(
    task_id: str,
    cut_point_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Remove a cut point."""
    try:
        remaining = service.delete_cut_point(task_id, cut_point_id)
        return [CutPointResponse.from_cut_point(cp) for cp in remaining]
    except Exception as e:
        _raise_http(e)


@router.get("/tasks/{task_id}/artifacts/{filename}")
async def get_artifact(task_id: str, filename: str, service: TaskService = Depends(get_task_service)):
    """Serve a preview file from the task folder."""
    try:
        task = service.get_task(task_id)
    except Exception as e:
        _raise_http(e)

    folder = Path(task.task_folder_path).resolve()
    path = (folder / filename).resolve()
    if path.parent != folder or path.suffix not in (".jpg", ".gif") or not path.is_file():
        raise HTTPException(status_code=404, detail="Artifact not found")
    return FileResponse(path)


# =============================================================================
# Splitting
# =============================================================================

@router.post("/tasks/{task_id}/split", response_model=JobResponse, status_code=202)
async def start_split(
    task_id: str,
    data: SplitRequest = SplitRequest(),
    service: TaskService = Depends(get_task_service),
):
    """Start a stream-copy split in the background."""
    return _start_job(service, task_id, JobType.SPLIT, output_dir=data.output_dir)


@router.get("/tasks/{task_id}/outputs", response_model=SplitOutputsResponse)
async def list_split_outputs(
    task_id: str,
    output_dir: Optional[str] = None,
    service: TaskService = Depends(get_task_service),
):
    """List split files for a task (default split directory unless output_dir is given)."""
    try:
        outputs = service.list_split_outputs(task_id, output_dir)
        return SplitOutputsResponse(task_id=task_id, outputs=[str(p) for p in outputs])
    except Exception as e:
        _raise_http(e)
