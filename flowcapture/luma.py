import numpy as np
from typing import Optional

# ITU-R BT.601 luma weights applied to R, G, B
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)

DEFAULT_DIFF_STRIDE = 20


def to_grayscale(frame: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Reduce an RGBA frame to a flat uint8 luma buffer.

    Args:
        frame: Array of shape (height, width, 4), channels R, G, B, A
        out: Optional float64 scratch array of shape (height, width) that
            receives the weighted sum before rounding

    Returns:
        1-D uint8 array of length width * height
    """
    if out is None:
        out = np.empty(frame.shape[:2], dtype=np.float64)
    np.dot(frame[..., :3], LUMA_WEIGHTS, out=out)
    np.rint(out, out=out)
    np.clip(out, 0, 255, out=out)
    return out.astype(np.uint8).ravel()


def diff_score(a: np.ndarray, b: np.ndarray, stride: int = DEFAULT_DIFF_STRIDE) -> float:
    """Mean absolute difference between two luma buffers over every `stride`-th sample.

    The sum is divided by n / stride rather than by the number of sampled
    positions, so buffers whose length is not a multiple of the stride score
    slightly higher than a plain mean.
    """
    if a.shape != b.shape:
        raise ValueError(f"Luma buffers differ in size: {a.shape} vs {b.shape}")
    n = a.shape[0]
    if n == 0:
        return 0.0
    sampled = np.abs(a[::stride].astype(np.int16) - b[::stride].astype(np.int16))
    return float(sampled.sum()) / (n / stride)


class LumaScratch:
    """Reusable working area for reducing frames of one fixed size."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._buffer = np.empty((height, width), dtype=np.float64)

    @property
    def size(self) -> int:
        return self.width * self.height

    def reduce(self, frame: np.ndarray) -> np.ndarray:
        """Reduce a frame that matches the scratch dimensions."""
        if frame.shape[:2] != (self.height, self.width):
            raise ValueError(
                f"Frame size {frame.shape[1]}x{frame.shape[0]} does not match "
                f"detection size {self.width}x{self.height}"
            )
        return to_grayscale(frame, out=self._buffer)
