"""Test configuration and fixtures."""

import asyncio
import copy
import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest
import yaml

from flowcapture.config import DEFAULT_CONFIG
from flowcapture.frame_source import FrameSource


class SyntheticFrameSource(FrameSource):
    """Frame source that renders uniform gray frames from a function of time.

    `level_at(ts)` gives the gray level at a timestamp. `delay_at(ts, width,
    height)` gives an artificial latency in seconds for a request.
    """

    def __init__(self, duration, level_at, width=320, height=240, delay_at=None, on_request=None):
        self.duration = duration
        self.width = width
        self.height = height
        self.level_at = level_at
        self.delay_at = delay_at
        self.on_request = on_request
        self.requests = []

    async def get_frame(self, timestamp, width, height):
        self.requests.append((timestamp, width, height))
        if self.on_request is not None:
            self.on_request(self)
        if self.delay_at is not None:
            delay = self.delay_at(timestamp, width, height)
            if delay:
                await asyncio.sleep(delay)
        frame = np.full((height, width, 4), self.level_at(timestamp), dtype=np.uint8)
        frame[..., 3] = 255
        return frame


class RecordingEncoder:
    """Encoder that records the frames it is given and returns a small tag."""

    def __init__(self):
        self.frames = []

    def encode(self, frame):
        self.frames.append(frame)
        return f"{frame.shape[1]}x{frame.shape[0]}:{int(frame[..., 0].mean())}".encode()


def levels_by_tick(levels, step=0.4):
    """Gray level lookup for sample index round(ts / step)."""
    def level_at(ts):
        return levels[min(int(round(ts / step)), len(levels) - 1)]
    return level_at


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def test_config(test_output_dir):
    """Create a test configuration."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['sampling']['frame_wait_timeout'] = 1.0
    config['sampling']['export_wait_timeout'] = 1.0
    config['output']['directory'] = str(test_output_dir)
    config['processing']['log_level'] = 'DEBUG'
    return config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_output_dir(temp_dir):
    """Create and return a test output directory."""
    output_dir = temp_dir / 'output'
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def test_video(temp_dir):
    """Create a screen recording with one navigation cut at 2 seconds."""
    video_path = temp_dir / 'recording.mp4'

    width, height = 320, 240
    fps = 10.0
    duration = 4  # seconds

    fourcc = cv2.VideoWriter_fourcc(*'mp4v')
    out = cv2.VideoWriter(str(video_path), fourcc, fps, (width, height))

    try:
        for i in range(int(fps * duration)):
            if i < fps * 2:
                # Light page with a dark header bar
                frame = np.full((height, width, 3), 220, dtype=np.uint8)
                cv2.rectangle(frame, (0, 0), (width, 40), (60, 60, 60), -1)
            else:
                # Dark page with a light sidebar
                frame = np.full((height, width, 3), 30, dtype=np.uint8)
                cv2.rectangle(frame, (0, 0), (80, height), (240, 240, 240), -1)
            out.write(frame)
    finally:
        out.release()

    yield video_path


@pytest.fixture
def test_config_file(temp_dir, test_config):
    """Create a test configuration file."""
    config_file = temp_dir / 'test_config.yaml'
    with open(config_file, 'w') as f:
        yaml.dump(test_config, f)
    return config_file
