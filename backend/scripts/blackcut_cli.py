#!/usr/bin/env python3
"""
CLI tool to detect black frame cut points in a video and optionally split it.

Usage:
    python scripts/blackcut_cli.py <video_path> [--tasks-dir <dir>] [--split] [--output-dir <dir>]

Example:
    python scripts/blackcut_cli.py ~/Videos/recording.mp4 --split
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from blackcut.pipeline.blackdetect import detect_cut_points
from blackcut.services.task_service import TaskService
from blackcut.services.task_store import TaskStore
from blackcut.utils.ffmpeg import FFmpegError


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


async def run(
    video_path: Path,
    tasks_dir: Path = None,
    min_slice: float = None,
    dry_run: bool = False,
    force: bool = False,
    split: bool = False,
    output_dir: Path = None,
    as_json: bool = False,
):
    """
    Detect cut points for a video, persist them as a task and optionally split.

    Args:
        video_path: Path to video file
        tasks_dir: Task state directory (config default if not provided)
        min_slice: Minimum spacing between detected cut points
        dry_run: Only print detected cut points, no task state or previews
        force: Re-run detection even if the task already has cut points
        split: Split the video after detection
        output_dir: Split destination
        as_json: Print results as JSON
    """
    if not video_path.exists():
        raise FileNotFoundError(f"Video not found: {video_path}")

    if dry_run:
        cut_points = await detect_cut_points(video_path, min_slice_duration=min_slice)
        _print_cut_points(cut_points, as_json)
        return

    service = TaskService(TaskStore(tasks_dir) if tasks_dir else None)
    task = service.create_task(video_path)
    logger.info(f"Task {task.id} ({task.name}) in {task.task_folder_path}")

    async def progress_callback(pct, msg):
        logger.info(f"[{pct:.0f}%] {msg}")

    cut_points = await service.run_detection(
        task.id,
        force=force,
        min_slice_duration=min_slice,
        progress_callback=progress_callback,
    )
    _print_cut_points(cut_points, as_json)

    if split:
        outputs = await service.confirm_split(task.id, output_dir)
        logger.info(f"Split into {len(outputs)} files:")
        for path in outputs:
            logger.info(f"  {path}")


def _print_cut_points(cut_points, as_json: bool):
    if as_json:
        print(json.dumps([cp.to_dict() for cp in cut_points], indent=2))
        return
    logger.info(f"{len(cut_points)} cut points:")
    for i, cp in enumerate(cut_points):
        duration = f" (black {cp.duration:.2f}s)" if cp.duration is not None else ""
        logger.info(f"  {i + 1}. {cp.time:.3f}s{duration}")


def main():
    parser = argparse.ArgumentParser(
        description="Detect black frame cut points and split a video losslessly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Detect and store cut points with previews
    python scripts/blackcut_cli.py video.mp4

    # Only print the cut points
    python scripts/blackcut_cli.py video.mp4 --dry-run --min-slice 10

    # Detect and split into ./parts
    python scripts/blackcut_cli.py video.mp4 --split --output-dir ./parts
        """
    )

    parser.add_argument("video_path", type=Path, help="Path to video file")
    parser.add_argument("--tasks-dir", type=Path, default=None, help="Task state directory")
    parser.add_argument("--min-slice", type=float, default=None, help="Minimum seconds between cut points")
    parser.add_argument("--dry-run", action="store_true", help="Print cut points without saving a task")
    parser.add_argument("--force", action="store_true", help="Re-run detection for an existing task")
    parser.add_argument("--split", action="store_true", help="Split the video after detection")
    parser.add_argument("--output-dir", "-o", type=Path, default=None, help="Split destination")
    parser.add_argument("--json", action="store_true", help="Print cut points as JSON")

    args = parser.parse_args()

    try:
        asyncio.run(run(
            video_path=args.video_path,
            tasks_dir=args.tasks_dir,
            min_slice=args.min_slice,
            dry_run=args.dry_run,
            force=args.force,
            split=args.split,
            output_dir=args.output_dir,
            as_json=args.json,
        ))
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except FFmpegError as e:
        logger.error(str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
