"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blackcut.config import settings
from blackcut.api.routes import router
from blackcut.services.task_store import TaskStore
from blackcut.workers.job_runner import JobType, job_runner
from blackcut.workers.handlers import handle_detect, handle_split

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting BlackCut...")

    recovered = TaskStore(settings.tasks_dir).recover_interrupted()
    if recovered:
        logger.info(f"Reset {len(recovered)} interrupted tasks")

    job_runner.register_handler(JobType.DETECT, handle_detect)
    job_runner.register_handler(JobType.SPLIT, handle_split)
    logger.info("Job handlers registered")

    yield

    # Shutdown
    logger.info("Shutting down BlackCut...")
    await job_runner.shutdown()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Black frame cut point detection and lossless video splitting",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": "1.0.0",
        "api": "/api",
        "docs": "/docs"
    }


def run():
    """Serve the API with uvicorn."""
    import uvicorn
    uvicorn.run(
        "blackcut.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )


if __name__ == "__main__":
    run()
