"""Tests for the OpenCV-backed frame source and end-to-end detection."""

import logging
import time

import cv2
import numpy as np
import pytest

from conftest import run
from flowcapture.detector import FlowDetector, RunStatus
from flowcapture.encoder import JpegEncoder
from flowcapture.errors import InvalidInput
from flowcapture.frame_source import VideoFrameSource
from flowcapture.progress import ProgressManager
from flowcapture.utils import capture_duration, format_duration, get_video_info


class SlowVideoFrameSource(VideoFrameSource):
    """Video source whose every seek outlasts the detection wait."""

    def _read(self, timestamp, width, height):
        time.sleep(0.3)
        return super()._read(timestamp, width, height)


class StreamCapture:
    """Capture stand-in that reports no frame count, like many WebM streams."""

    def __init__(self, end_msec):
        self.end_msec = end_msec
        self.ratio = 0

    def get(self, prop):
        if prop == cv2.CAP_PROP_FRAME_COUNT:
            return -1
        if prop == cv2.CAP_PROP_FPS:
            return 30.0
        if prop == cv2.CAP_PROP_POS_MSEC:
            return self.end_msec * self.ratio
        return 0

    def set(self, prop, value):
        if prop == cv2.CAP_PROP_POS_AVI_RATIO:
            self.ratio = value
        return True


def test_open_reports_video_properties(test_video):
    with VideoFrameSource.open(test_video) as source:
        assert source.width == 320
        assert source.height == 240
        assert source.fps == pytest.approx(10.0)
        assert source.duration == pytest.approx(4.0, abs=0.2)


def test_get_frame_returns_scaled_rgba(test_video):
    with VideoFrameSource.open(test_video) as source:
        frame = run(source.get_frame(0.5, 80, 60))
        assert frame.shape == (60, 80, 4)
        assert frame.dtype == np.uint8
        assert (frame[..., 3] == 255).all()
        # Light page below the header bar
        assert frame[50, 40, :3].mean() > 180

        full = run(source.get_frame(3.0, 320, 240))
        assert full.shape == (240, 320, 4)
        assert full[120, 200, :3].mean() < 80
        assert source.stats["frames_read"] == 2


def test_missing_video(temp_dir):
    with pytest.raises(InvalidInput):
        VideoFrameSource.open(temp_dir / 'missing.mp4')


def test_unsupported_extension(temp_dir):
    notes = temp_dir / 'notes.txt'
    notes.write_text("not a video")
    with pytest.raises(InvalidInput):
        VideoFrameSource.open(notes)


def test_unreadable_video(temp_dir):
    broken = temp_dir / 'broken.mp4'
    broken.write_bytes(b"\x00" * 64)
    with pytest.raises(InvalidInput):
        VideoFrameSource.open(broken)


def test_get_video_info(test_video):
    info = get_video_info(test_video)
    assert info['file_name'] == 'recording.mp4'
    assert info['width'] == 320
    assert info['height'] == 240
    assert info['file_size'].endswith(' MB')
    assert info['duration_formatted'] == format_duration(info['duration'])


def test_get_video_info_invalid(temp_dir):
    with pytest.raises(InvalidInput):
        get_video_info(temp_dir / 'missing.mp4')


def test_format_duration():
    assert format_duration(0) == "0m 0s"
    assert format_duration(125.7) == "2m 5s"


def test_detect_recording(test_video, test_config):
    progress = ProgressManager(quiet=True)
    result = FlowDetector(test_config).detect(str(test_video), progress)

    assert result.status == RunStatus.COMPLETED
    assert len(result.flows) >= 2
    assert result.flows[0].captures[0].timestamp == 0.0
    assert result.video_info['width'] == 320
    assert progress.fraction == 1.0

    # Each capture is a full-resolution JPEG
    image = result.captures[0].image
    decoded = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape == (240, 320, 3)

    # The cut lands in a later flow
    assert all(capture.timestamp < 2.0 for capture in result.flows[0].captures)
    assert result.flows[1].start >= 1.6


def test_detect_invalid_input(temp_dir, test_config):
    with pytest.raises(InvalidInput):
        FlowDetector(test_config).detect(str(temp_dir / 'missing.mp4'))


def test_latest_frame_tracks_last_decode(test_video):
    with VideoFrameSource.open(test_video) as source:
        assert source.latest_frame(80, 60) is None
        run(source.get_frame(3.0, 80, 60))
        latest = source.latest_frame(40, 30)
        assert latest.shape == (30, 40, 4)
        assert latest[15, 30, :3].mean() < 80


def test_slow_seeks_still_produce_captures(test_video, test_config):
    test_config['sampling']['frame_wait_timeout'] = 0.25
    with SlowVideoFrameSource.open(test_video, test_config) as source:
        result = run(FlowDetector(test_config).run(source, JpegEncoder()))
        frames_read = source.stats["frames_read"]

    assert frames_read > 0
    assert result.frame_timeouts > 0
    assert result.status == RunStatus.COMPLETED
    assert result.capture_count >= 1


def test_capture_duration_from_frame_count(test_video):
    cap = cv2.VideoCapture(str(test_video))
    try:
        assert capture_duration(cap) == pytest.approx(4.0, abs=0.2)
    finally:
        cap.release()


def test_capture_duration_without_frame_count():
    cap = StreamCapture(end_msec=12500)
    assert capture_duration(cap) == pytest.approx(12.5)
    # Position is rewound for the first seek
    assert cap.ratio == 0


def test_statistics_are_logged(test_video, caplog):
    caplog.set_level(logging.INFO)
    with VideoFrameSource.open(test_video) as source:
        run(source.get_frame(0.5, 80, 60))
        source.log_statistics()
    assert "1 frames decoded, 0 failed" in caplog.text
