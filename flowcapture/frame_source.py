import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional

import cv2
import numpy as np

from .errors import FrameTimeout, InvalidInput
from .utils import capture_duration

DEFAULT_SUPPORTED_FORMATS = ['.mp4', '.mov', '.avi', '.mkv', '.webm', '.m4v']


class FrameSource:
    """Delivers RGBA frames of one video at arbitrary timestamps.

    Implementations expose `duration` (seconds), `width` and `height` (native
    pixels) and an awaitable `get_frame`.
    """

    duration: float = 0.0
    width: int = 0
    height: int = 0

    async def get_frame(self, timestamp: float, width: int, height: int) -> np.ndarray:
        raise NotImplementedError

    def latest_frame(self, width: int, height: int) -> Optional[np.ndarray]:
        """Most recent frame the source decoded, at width x height, or None."""
        return None


async def await_frame(source: FrameSource, timestamp: float, width: int, height: int,
                      timeout: float) -> np.ndarray:
    """Request a frame and wait at most `timeout` seconds for it."""
    try:
        return await asyncio.wait_for(source.get_frame(timestamp, width, height), timeout)
    except asyncio.TimeoutError:
        raise FrameTimeout(timestamp) from None


class VideoFrameSource(FrameSource):
    """Frame source backed by cv2.VideoCapture.

    All OpenCV calls run on a single worker thread so seeks never overlap,
    even when a caller stops waiting on a slow one.
    """

    def __init__(self, video_path: str, config: Optional[Dict[str, Any]] = None):
        self.video_path = str(video_path)
        self.config = config or {}
        self.logger = logging.getLogger(__name__)
        self.cap = None
        self.fps = 0.0
        self.frame_count = 0
        self._executor = None
        self._latest = None
        self.stats = {
            "seek_time": 0.0,
            "frames_read": 0,
            "failed_reads": 0
        }

    @classmethod
    def open(cls, video_path: str, config: Optional[Dict[str, Any]] = None) -> "VideoFrameSource":
        """Open a video, raising InvalidInput if it cannot be decoded."""
        source = cls(video_path, config)
        source._open()
        return source

    def _open(self) -> None:
        path = Path(self.video_path)
        supported_formats = self.config.get('input', {}).get('supported_formats', DEFAULT_SUPPORTED_FORMATS)
        if path.suffix.lower() not in supported_formats:
            raise InvalidInput(f"Unsupported video format '{path.suffix}': {path.name}")
        if not path.exists():
            raise InvalidInput(f"Video not found: {self.video_path}")

        self.cap = cv2.VideoCapture(self.video_path)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise InvalidInput(f"Failed to open video: {self.video_path}")

        self.frame_count = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.fps = self.cap.get(cv2.CAP_PROP_FPS)
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.duration = capture_duration(self.cap)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="frame-source")

        self.logger.info(f"Opened video {path.name}: {self.width}x{self.height} @ {self.fps:.1f} FPS, "
                         f"{self.frame_count} frames, {self.duration:.2f}s")

    @staticmethod
    def _convert(frame: np.ndarray, width: int, height: int) -> np.ndarray:
        """Resize a decoded BGR frame to width x height and convert it to RGBA."""
        if (width, height) != (frame.shape[1], frame.shape[0]):
            # Downscaling uses AREA interpolation, upscaling CUBIC
            if width < frame.shape[1] or height < frame.shape[0]:
                interpolation = cv2.INTER_AREA
            else:
                interpolation = cv2.INTER_CUBIC
            frame = cv2.resize(frame, (width, height), interpolation=interpolation)
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)

    def _read(self, timestamp: float, width: int, height: int) -> np.ndarray:
        """Seek to `timestamp` and decode one frame, resized to width x height."""
        seek_start = time.time()
        self.cap.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
        ret, frame = self.cap.read()
        self.stats["seek_time"] += time.time() - seek_start

        if not ret or frame is None:
            self.stats["failed_reads"] += 1
            raise FrameTimeout(timestamp, f"No frame could be decoded at {timestamp:.2f}s")
        self.stats["frames_read"] += 1
        # Kept even when the waiter has already given up on this read
        self._latest = frame
        return self._convert(frame, width, height)

    def latest_frame(self, width: int, height: int) -> Optional[np.ndarray]:
        frame = self._latest
        if frame is None:
            return None
        return self._convert(frame, width, height)

    async def get_frame(self, timestamp: float, width: int, height: int) -> np.ndarray:
        if self.cap is None:
            raise RuntimeError("Video source is not open")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._read, timestamp, width, height)

    def log_statistics(self) -> None:
        """Log decode statistics collected by the worker."""
        reads = self.stats["frames_read"]
        average = self.stats["seek_time"] / reads * 1000 if reads else 0.0
        self.logger.info(f"Frame source: {reads} frames decoded, {self.stats['failed_reads']} failed, "
                         f"seek time {self.stats['seek_time']:.2f}s ({average:.1f}ms per frame)")

    def close(self) -> None:
        """Release the capture handle and worker thread."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

