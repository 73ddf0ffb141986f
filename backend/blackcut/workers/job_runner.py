"""Background job runner using asyncio."""
import asyncio
import enum
import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class JobType(str, enum.Enum):
    """Job type enumeration."""
    DETECT = "detect"
    SPLIT = "split"


class JobStatus(str, enum.Enum):
    """Job status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Job:
    """In-memory record of a background job for one task."""
    task_id: str
    job_type: JobType
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0  # 0.0 to 100.0
    message: Optional[str] = None
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __repr__(self):
        return f"<Job(task={self.task_id}, type={self.job_type.value}, status={self.status.value})>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "task_id": self.task_id,
            "job_type": self.job_type.value,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class JobRunner:
    """Async background job runner, at most one running job per task."""

    def __init__(self):
        self._running_jobs: Dict[str, asyncio.Task] = {}
        self._jobs: Dict[str, Job] = {}  # Latest job per task
        self._job_handlers: Dict[JobType, Callable] = {}

    def register_handler(self, job_type: JobType, handler: Callable):
        """Register a handler for a job type."""
        self._job_handlers[job_type] = handler

    def start_job(self, task_id: str, job_type: JobType, **kwargs) -> Optional[Job]:
        """
        Start a background job.

        Args:
            task_id: Task the job works on
            job_type: Type of job to run
            **kwargs: Arguments to pass to the job handler

        Returns:
            The job, or None if one is already running for the task or no
            handler is registered
        """
        if task_id in self._running_jobs:
            logger.warning(f"A job is already running for task {task_id}")
            return None

        handler = self._job_handlers.get(job_type)
        if not handler:
            logger.error(f"No handler registered for job type: {job_type.value}")
            return None

        job = Job(task_id=task_id, job_type=job_type)
        self._jobs[task_id] = job
        self._running_jobs[task_id] = asyncio.create_task(
            self._run_job(job, handler, **kwargs)
        )
        return job

    async def _run_job(self, job: Job, handler: Callable, **kwargs):
        """Run a job with error handling and status updates."""
        try:
            job.status = JobStatus.RUNNING
            job.started_at = datetime.utcnow()
            job.message = "Starting..."

            # Create progress callback
            async def update_progress(progress: float, message: str = None):
                job.progress = min(100, max(0, progress))
                if message:
                    job.message = message

            job.result = await handler(
                task_id=job.task_id,
                progress_callback=update_progress,
                **kwargs
            )

            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.message = "Completed successfully"
            logger.info(f"{job.job_type.value} job for task {job.task_id} completed")

        except asyncio.CancelledError:
            job.status = JobStatus.CANCELLED
            job.message = "Job cancelled"
            logger.info(f"{job.job_type.value} job for task {job.task_id} was cancelled")

        except Exception as e:
            error_msg = str(e)
            logger.error(
                f"{job.job_type.value} job for task {job.task_id} failed: {error_msg}\n"
                f"{traceback.format_exc()}"
            )
            job.status = JobStatus.FAILED
            job.message = f"Failed: {error_msg.splitlines()[0] if error_msg else type(e).__name__}"
            job.error = error_msg

        finally:
            job.completed_at = datetime.utcnow()
            self._running_jobs.pop(job.task_id, None)

    def get_job(self, task_id: str) -> Optional[Job]:
        """Latest job for a task, running or finished."""
        return self._jobs.get(task_id)

    def is_job_running(self, task_id: str) -> bool:
        """Check if a job is currently running for a task."""
        return task_id in self._running_jobs

    async def wait(self, task_id: str) -> Optional[Job]:
        """Wait for the running job of a task to finish."""
        running = self._running_jobs.get(task_id)
        if running:
            await asyncio.gather(running, return_exceptions=True)
        return self._jobs.get(task_id)

    async def shutdown(self):
        """Cancel all running jobs."""
        for task in self._running_jobs.values():
            task.cancel()

        if self._running_jobs:
            await asyncio.gather(
                *self._running_jobs.values(),
                return_exceptions=True
            )

        self._running_jobs.clear()


# Global job runner instance
job_runner = JobRunner()
