"""Shared fixtures: isolated data directories and a fake ffmpeg process."""
import asyncio
import json
import os
import tempfile
from pathlib import Path

import pytest

# Must be set before blackcut.config is imported
_DATA_DIR = tempfile.mkdtemp(prefix="blackcut-tests-")
os.environ.setdefault("BLACKCUT_DATA_DIR", _DATA_DIR)
os.environ.setdefault("BLACKCUT_TASKS_DIR", os.path.join(_DATA_DIR, "tasks"))

from blackcut.config import settings  # noqa: E402
from blackcut.services.task_store import TaskStore  # noqa: E402


SAMPLE_BLACKDETECT_LOG = """\
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'clip.mp4':
  Duration: 00:01:30.00, start: 0.000000, bitrate: 1205 kb/s
[blackdetect @ 0x7fb1c8e04a00] black_start:10 black_end:10.2 black_duration:0.2
[blackdetect @ 0x7fb1c8e04a00] black_start:50.1 black_end:50.2 black_duration:0.1
[blackdetect @ 0x7fb1c8e04a00] black_start:51 black_end:51.1 black_duration:0.1
frame= 2250 fps=900 q=-0.0 Lsize=N/A time=00:01:30.00 bitrate=N/A speed=36x
"""


class FakeProcess:
    def __init__(self, returncode: int = 0, stderr: bytes = b"", stdout: bytes = b""):
        self.returncode = returncode
        self._stderr = stderr
        self._stdout = stdout

    async def communicate(self):
        return self._stdout, self._stderr


class FakeFFmpeg:
    """
    Stand-in for asyncio.create_subprocess_exec.

    Records every command, answers analysis passes with blackdetect_output,
    ffprobe with video_duration, and writes the files extraction and split
    commands would produce (unless write_outputs is off).
    """

    def __init__(self):
        self.calls = []
        self.blackdetect_output = SAMPLE_BLACKDETECT_LOG
        self.video_duration = 120.0
        self.write_outputs = True
        self.fail_when = None  # predicate(cmd) -> bool
        self.launch_error = None

    async def __call__(self, *cmd, **kwargs):
        cmd = [str(c) for c in cmd]
        self.calls.append(cmd)

        if self.launch_error:
            raise self.launch_error
        if self.fail_when and self.fail_when(cmd):
            return FakeProcess(1, b"Error while decoding stream #0:0: simulated failure")

        if cmd[0] == settings.ffprobe_path:
            stdout = json.dumps({"format": {"duration": f"{self.video_duration:.6f}"}})
            return FakeProcess(0, stdout=stdout.encode())

        if cmd[-1] == "-":
            return FakeProcess(0, self.blackdetect_output.encode())

        if not self.write_outputs:
            return FakeProcess(0, b"Output file is empty, nothing was encoded")

        if "-segment_times" in cmd:
            count = len(cmd[cmd.index("-segment_times") + 1].split(",")) + 1
            for index in range(1, count + 1):
                Path(cmd[-1] % index).write_bytes(b"segment")
        else:
            Path(cmd[-1]).write_bytes(b"artifact")
        return FakeProcess(0, b"")

    @property
    def ffmpeg_calls(self):
        return [cmd for cmd in self.calls if cmd[0] != settings.ffprobe_path]

    def commands_with(self, token: str):
        return [cmd for cmd in self.calls if any(token in arg for arg in cmd)]


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Replace subprocess creation with a FakeFFmpeg."""
    fake = FakeFFmpeg()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake)
    return fake


@pytest.fixture
def store(tmp_path):
    return TaskStore(tmp_path / "tasks")


@pytest.fixture
def video_file(tmp_path):
    """A placeholder source video (ffmpeg is faked, content is irrelevant)."""
    path = tmp_path / "videos" / "clip.mp4"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return path
