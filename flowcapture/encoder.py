import cv2
import numpy as np

from .errors import EncodingFailure


class JpegEncoder:
    """Encode RGBA frames as JPEG bytes."""

    def __init__(self, quality: float = 0.92):
        """Initialize the encoder.

        Args:
            quality: Lossy quality in the range 0..1
        """
        if not 0.0 <= quality <= 1.0:
            raise ValueError(f"JPEG quality must be within 0..1, got {quality}")
        self.quality = quality
        self.jpeg_quality = int(round(quality * 100))

    def encode(self, frame: np.ndarray) -> bytes:
        frame_bgr = cv2.cvtColor(frame, cv2.COLOR_RGBA2BGR)
        ok, buffer = cv2.imencode('.jpg', frame_bgr, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            raise EncodingFailure(f"Failed to encode {frame.shape[1]}x{frame.shape[0]} frame as JPEG")
        return buffer.tobytes()
