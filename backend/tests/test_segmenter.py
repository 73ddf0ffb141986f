"""Tests for stream-copy splitting."""
from pathlib import Path

import pytest

from blackcut.config import settings
from blackcut.models.cut_point import CutPoint
from blackcut.pipeline import segmenter
from blackcut.pipeline.segmenter import (
    build_split_command,
    default_output_dir,
    segment_output_paths,
    split_boundaries,
    split_video,
)
from blackcut.utils.ffmpeg import SplitFailure


def test_output_paths_one_more_than_cuts(tmp_path):
    paths = segment_output_paths("/videos/My Video.mp4", 2, tmp_path)

    assert [p.name for p in paths] == [
        "My Video_part001.mp4",
        "My Video_part002.mp4",
        "My Video_part003.mp4",
    ]
    assert all(p.parent == tmp_path for p in paths)


def test_output_paths_widen_index(tmp_path):
    paths = segment_output_paths("/videos/clip.mkv", 999, tmp_path)

    assert len(paths) == 1000
    assert paths[0].name == "clip_part0001.mkv"
    assert paths[-1].name == "clip_part1000.mkv"


def test_default_output_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "splits_dir", tmp_path)
    assert default_output_dir("/videos/clip.mp4") == tmp_path / "clip_splits"


def test_command_without_cuts_is_direct_copy(tmp_path):
    args = build_split_command("/videos/clip.mp4", [], tmp_path)

    assert args[-1] == str(tmp_path / "clip_part001.mp4")
    assert "segment" not in args
    assert args[args.index("-c") + 1] == "copy"
    assert args[args.index("-map") + 1] == "0"


def test_command_with_cuts(tmp_path):
    args = build_split_command("/videos/clip.mp4", [10.1, 50.15], tmp_path)

    assert args[args.index("-f") + 1] == "segment"
    assert args[args.index("-segment_times") + 1] == "10.100,50.150"
    assert args[args.index("-segment_start_number") + 1] == "1"
    assert args[args.index("-reset_timestamps") + 1] == "1"
    assert args[args.index("-c") + 1] == "copy"
    assert args[-1] == str(tmp_path / "clip_part%03d.mp4")


def test_command_escapes_percent_in_name(tmp_path):
    args = build_split_command("/videos/100%.mp4", [5.0], tmp_path)
    assert Path(args[-1]).name == "100%%_part%03d.mp4"


@pytest.mark.asyncio
async def test_split_sorts_and_collapses_times(monkeypatch, tmp_path):
    captured = {}

    async def fake_run_ffmpeg(args, error_cls=None, launch_error_cls=None, description=""):
        captured["args"] = args
        return ""

    monkeypatch.setattr(segmenter, "run_ffmpeg", fake_run_ffmpeg)
    cut_points = [CutPoint(time=50.0), CutPoint(time=10.0), CutPoint(time=10.0)]
    output_dir = tmp_path / "parts"

    outputs = await split_video("/videos/clip.mp4", cut_points, output_dir)

    args = captured["args"]
    assert args[args.index("-segment_times") + 1] == "10.000,50.000"
    assert outputs == [output_dir / f"clip_part00{i}.mp4" for i in (1, 2, 3)]
    assert output_dir.is_dir()


def test_boundaries_collapse_at_millisecond_precision():
    cut_points = [CutPoint(time=t) for t in (10.0004, 50.0, 10.0001, 9.9996)]

    assert split_boundaries(cut_points) == [10.0, 50.0]


@pytest.mark.asyncio
async def test_split_with_near_duplicate_times(monkeypatch, tmp_path):
    captured = {}

    async def fake_run_ffmpeg(args, error_cls=None, launch_error_cls=None, description=""):
        captured["args"] = args
        return ""

    monkeypatch.setattr(segmenter, "run_ffmpeg", fake_run_ffmpeg)
    cut_points = [CutPoint(time=10.0001), CutPoint(time=10.0004)]

    outputs = await split_video("/videos/clip.mp4", cut_points, tmp_path)

    args = captured["args"]
    assert args[args.index("-segment_times") + 1] == "10.000"
    assert outputs == [tmp_path / "clip_part001.mp4", tmp_path / "clip_part002.mp4"]


@pytest.mark.asyncio
async def test_split_without_cut_points(fake_ffmpeg, tmp_path):
    outputs = await split_video("/videos/clip.mp4", [], tmp_path)

    assert outputs == [tmp_path / "clip_part001.mp4"]
    assert outputs[0].exists()


@pytest.mark.asyncio
async def test_split_failure(fake_ffmpeg, tmp_path):
    fake_ffmpeg.fail_when = lambda cmd: "segment" in cmd

    with pytest.raises(SplitFailure) as exc:
        await split_video("/videos/clip.mp4", [CutPoint(time=5.0)], tmp_path)

    assert exc.value.returncode == 1
