"""
UI Flow Capture

Extracts a minimal set of representative screenshots from a screen
recording and groups them into flows, one per distinct UI state:

- Sampling: frames are taken at a fixed time step and downscaled
- Detection: luma difference scores drive a hysteresis capture policy
- Export: captures are packaged as flow_<id>/step_<n>_<M-SS>.jpg
"""

__version__ = '0.1.0'

from .detector import DetectionResult, FlowDetector, RunStatus, sample_timestamps
from .encoder import JpegEncoder
from .errors import (
    EncodingFailure,
    FlowCaptureError,
    FrameTimeout,
    InvalidInput,
    PackagingFailure
)
from .export import FlowExporter, flat_entries, flow_entries
from .flows import Capture, Flow, FlowAssembler, format_time
from .frame_source import FrameSource, VideoFrameSource
from .luma import LumaScratch, diff_score, to_grayscale
from .policy import CaptureDecision, CapturePolicyState, Phase, Thresholds, evaluate

__all__ = [
    'Capture',
    'CaptureDecision',
    'CapturePolicyState',
    'DetectionResult',
    'EncodingFailure',
    'Flow',
    'FlowAssembler',
    'FlowCaptureError',
    'FlowDetector',
    'FlowExporter',
    'FrameSource',
    'FrameTimeout',
    'InvalidInput',
    'JpegEncoder',
    'LumaScratch',
    'PackagingFailure',
    'Phase',
    'RunStatus',
    'Thresholds',
    'VideoFrameSource',
    'diff_score',
    'evaluate',
    'flat_entries',
    'flow_entries',
    'format_time',
    'sample_timestamps',
    'to_grayscale',
]
