"""Job handlers for long-running task operations."""
import logging
from typing import Callable, Optional

from blackcut.services.task_service import TaskService
from blackcut.services.task_store import TaskStore

logger = logging.getLogger(__name__)


async def handle_detect(
    task_id: str,
    progress_callback: Callable,
    force: bool = False,
    store: Optional[TaskStore] = None,
    **kwargs
) -> dict:
    """
    Handle black frame detection and preview generation.

    Args:
        task_id: Task ID
        progress_callback: Async callback for progress updates
        force: Re-detect even if the task already has cut points
        store: Task store (defaults to the configured tasks directory)

    Returns:
        Result dictionary with cut point count
    """
    service = TaskService(store)
    cut_points = await service.run_detection(
        task_id, force=force, progress_callback=progress_callback
    )
    missing_previews = [cp.id for cp in cut_points if not cp.has_previews]
    if missing_previews:
        logger.warning(f"Task {task_id}: {len(missing_previews)} cut points without previews")
    return {
        "cut_point_count": len(cut_points),
        "missing_previews": missing_previews,
    }


async def handle_split(
    task_id: str,
    progress_callback: Callable,
    output_dir: Optional[str] = None,
    store: Optional[TaskStore] = None,
    **kwargs
) -> dict:
    """
    Handle stream-copy splitting of a task's video.

    Returns:
        Result dictionary with the output files
    """
    service = TaskService(store)
    await progress_callback(0, "Splitting video...")
    outputs = await service.confirm_split(task_id, output_dir)
    await progress_callback(100, f"Split into {len(outputs)} files")
    return {
        "output_count": len(outputs),
        "outputs": [str(p) for p in outputs],
    }
