import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

import cv2

from .errors import InvalidInput

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None,
                  max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5) -> None:
    """Setup logging configuration."""
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {log_level}')

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # Rotate at max_bytes, keeping backup_count old files
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(numeric_level)
        logging.getLogger().addHandler(file_handler)


def format_duration(seconds: float) -> str:
    """Format a duration as 'Xm Ys'."""
    return f"{int(seconds // 60)}m {int(seconds % 60)}s"


def capture_duration(cap) -> float:
    """Duration in seconds of an opened cv2.VideoCapture.

    Containers such as WebM often report no frame count, in which case the
    capture is seeked to its end and the position read back.
    """
    frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
    fps = cap.get(cv2.CAP_PROP_FPS)
    if frame_count > 0 and fps > 0:
        return frame_count / fps

    cap.set(cv2.CAP_PROP_POS_AVI_RATIO, 1)
    duration = cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
    cap.set(cv2.CAP_PROP_POS_AVI_RATIO, 0)
    return max(duration, 0.0)


def get_video_info(video_path: Path) -> dict:
    """Get video metadata."""
    video_path = Path(video_path)
    cap = cv2.VideoCapture(str(video_path))
    try:
        if not cap.isOpened():
            raise InvalidInput(f"Failed to open video: {video_path}")
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        fps = cap.get(cv2.CAP_PROP_FPS)
        duration = capture_duration(cap)
        info = {
            'file_name': video_path.name,
            'file_size': f"{video_path.stat().st_size / (1024 * 1024):.2f} MB",
            'frame_count': frame_count,
            'fps': fps,
            'width': int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            'height': int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            'duration': duration,
            'duration_formatted': format_duration(duration)
        }
    finally:
        cap.release()
    return info
