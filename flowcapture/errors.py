"""Exceptions raised by the flow capture pipeline."""


class FlowCaptureError(Exception):
    """Base class for all flow capture errors."""


class InvalidInput(FlowCaptureError):
    """The input is not a readable video or has no positive duration."""


class FrameTimeout(FlowCaptureError):
    """A frame was not delivered in time for the requested timestamp."""

    def __init__(self, timestamp: float, message: str = ""):
        self.timestamp = timestamp
        super().__init__(message or f"Timed out waiting for frame at {timestamp:.2f}s")


class EncodingFailure(FlowCaptureError):
    """A frame could not be encoded into a still image."""


class PackagingFailure(FlowCaptureError):
    """The export archive or frame tree could not be written."""
