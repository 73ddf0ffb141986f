"""Application configuration."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BLACKCUT_",
    )

    # App settings
    app_name: str = "BlackCut"
    debug: bool = False

    # Server settings
    host: str = "127.0.0.1"
    port: int = 8000

    # Data directories
    data_dir: Path = Path("./data")
    tasks_dir: Path = Path("./data/tasks")  # One sub-directory per task
    splits_dir: Optional[Path] = None  # Defaults to tasks_dir

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Black frame detection (global policy)
    black_min_duration: float = 0.1  # blackdetect d=
    black_pixel_threshold: float = 0.10  # blackdetect pix_th=
    min_slice_duration: float = 5.0  # Minimum spacing between detected cut points

    # Preview settings
    preview_offset: float = 1.0  # Still frames at time -/+ offset
    hover_duration: float = 2.0  # Length of each looping hover clip
    preview_anim_fps: int = 10
    preview_anim_width: int = 320
    preview_still_quality: int = 2
    preview_workers: int = 1  # Cut points processed concurrently

    # Editing
    fine_adjust_window: float = 10.0  # Max nudge distance from originalTime

    # Frontend
    frontend_url: str = "http://localhost:5173"

    @property
    def output_root(self) -> Path:
        """Directory under which per-video split folders are created."""
        return self.splits_dir or self.tasks_dir


settings = Settings()

# Ensure directories exist
settings.data_dir.mkdir(parents=True, exist_ok=True)
settings.tasks_dir.mkdir(parents=True, exist_ok=True)
