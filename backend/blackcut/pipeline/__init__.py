"""
Cut point pipeline

Stages:
1. Detection: ffmpeg blackdetect pass, parsed into black intervals
2. Synthesis: interval midpoints, de-duplicated, sorted, spacing-filtered
3. Previews: stills and hover clips around every cut point
4. Segmentation: stream-copy split at the confirmed cut points
"""

from .blackdetect import detect_cut_points, parse_black_intervals, synthesize_cut_points
from .previews import generate_previews, generate_previews_for_cut_point
from .runner import run_detection_pipeline
from .segmenter import segment_output_paths, split_video

__all__ = [
    "detect_cut_points",
    "generate_previews",
    "generate_previews_for_cut_point",
    "parse_black_intervals",
    "run_detection_pipeline",
    "segment_output_paths",
    "split_video",
    "synthesize_cut_points",
]
