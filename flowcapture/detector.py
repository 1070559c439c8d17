import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np

from .encoder import JpegEncoder
from .errors import FrameTimeout
from .flows import Capture, Flow, FlowAssembler
from .frame_source import FrameSource, VideoFrameSource, await_frame
from .luma import LumaScratch
from .policy import CaptureDecision, CapturePolicyState, Thresholds, evaluate
from .progress import ProgressManager


class RunStatus(Enum):
    COMPLETED = "completed"
    EMPTY = "empty"
    INVALID_INPUT = "invalid_input"
    NO_FRAMES = "no_frames"
    CANCELLED = "cancelled"


@dataclass
class DetectionResult:
    flows: List[Flow]
    status: RunStatus
    message: str
    total_steps: int = 0
    completed_steps: int = 0
    frame_timeouts: int = 0
    decisions: List[CaptureDecision] = field(default_factory=list)
    video_info: Optional[Dict[str, Any]] = None

    @property
    def captures(self) -> List[Capture]:
        return [capture for flow in self.flows for capture in flow.captures]

    @property
    def capture_count(self) -> int:
        return sum(len(flow) for flow in self.flows)


def sample_timestamps(duration: float, step: float) -> List[float]:
    """Timestamps 0, step, 2*step, ... strictly below `duration`."""
    timestamps = []
    if duration <= 0:
        return timestamps
    index = 0
    while index * step < duration:
        timestamps.append(index * step)
        index += 1
    return timestamps


class FlowDetector:
    """
    Samples a video at a fixed time step, scores each sample against the
    last capture and groups the accepted captures into flows.
    """
    def __init__(self, config: Dict[str, Any]):
        """Initialize the detector with configuration."""
        self.config = config
        self.logger = logging.getLogger(__name__)

        sampling = config.get('sampling', {})
        self.time_step = sampling.get('time_step', 0.4)
        self.detection_scale = sampling.get('detection_scale', 0.25)
        self.frame_wait_timeout = sampling.get('frame_wait_timeout', 0.25)
        self.export_wait_timeout = sampling.get('export_wait_timeout', 2.0)
        self.thresholds = Thresholds.from_config(config)

        self._cancel_requested = False

        self.perf_metrics = {
            "total_time": 0.0,
            "wait_time": 0.0,
            "score_time": 0.0,
            "export_time": 0.0,
            "steps": 0,
            "captures": 0
        }

    def cancel(self) -> None:
        """Ask a running detection to stop before its next sample."""
        self._cancel_requested = True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def detection_size(self, width: int, height: int) -> Tuple[int, int]:
        return (
            max(1, int(width * self.detection_scale)),
            max(1, int(height * self.detection_scale))
        )

    async def _export_frame(self, source: FrameSource, encoder, timestamp: float,
                            detection_frame: np.ndarray) -> bytes:
        """Fetch the full-resolution frame at `timestamp` and encode it."""
        export_start = time.time()
        try:
            frame = await await_frame(source, timestamp, source.width, source.height,
                                      self.export_wait_timeout)
        except FrameTimeout as e:
            self.logger.warning(f"{e}; exporting upscaled detection frame instead")
            frame = cv2.resize(detection_frame, (source.width, source.height),
                               interpolation=cv2.INTER_CUBIC)
        image = encoder.encode(frame)
        self.perf_metrics["export_time"] += time.time() - export_start
        return image

    async def run(self, source: FrameSource, encoder,
                  progress: Optional[ProgressManager] = None) -> DetectionResult:
        """Run change detection over the whole source.

        Args:
            source: Frame source bound to one video
            encoder: Object with `encode(frame) -> bytes` used for exported captures
            progress: Optional progress display, updated after every sample

        Returns:
            DetectionResult with the assembled flows and a run status
        """
        duration = source.duration
        if duration is None or duration <= 0:
            self.logger.error(f"Cannot sample video with duration {duration}")
            return DetectionResult(flows=[], status=RunStatus.INVALID_INPUT,
                                   message="Video has no playable duration")

        timestamps = sample_timestamps(duration, self.time_step)
        det_width, det_height = self.detection_size(source.width, source.height)
        scratch = LumaScratch(det_width, det_height)

        self.logger.info(f"Sampling {len(timestamps)} timestamps over {duration:.2f}s "
                         f"(step {self.time_step}s) at {det_width}x{det_height}")

        if progress is not None:
            progress.set_total(len(timestamps))

        state = CapturePolicyState()
        assembler = FlowAssembler()
        decisions = []
        last_frame = None
        frames_used = 0
        frame_timeouts = 0
        completed = 0
        captures = 0
        cancelled = False
        run_start = time.time()

        try:
            for ts in timestamps:
                if self._cancel_requested:
                    self.logger.info(f"Detection cancelled at {ts:.2f}s after {completed} samples")
                    cancelled = True
                    break

                wait_start = time.time()
                try:
                    frame = await await_frame(source, ts, det_width, det_height, self.frame_wait_timeout)
                except FrameTimeout as e:
                    frame_timeouts += 1
                    # Newest decoded frame, including reads nobody waited on
                    frame = source.latest_frame(det_width, det_height)
                    if frame is None:
                        frame = last_frame
                    if frame is None:
                        self.logger.warning(f"{e}; no earlier frame available, skipping sample")
                    else:
                        self.logger.warning(f"{e}; using last known frame")
                self.perf_metrics["wait_time"] += time.time() - wait_start

                if frame is not None:
                    last_frame = frame
                    frames_used += 1
                    score_start = time.time()
                    luma = scratch.reduce(frame)
                    state, decision = evaluate(state, luma, ts, self.thresholds)
                    self.perf_metrics["score_time"] += time.time() - score_start
                    decisions.append(decision)

                    if decision.emitted:
                        image = await self._export_frame(source, encoder, ts, frame)
                        flow = assembler.add(Capture.at(ts, image), decision.starts_new_flow)
                        captures += 1
                        score = f"{decision.score:.2f}" if decision.score is not None else "-"
                        self.logger.debug(f"Capture at {ts:.2f}s ({decision.reason}, diff {score}) "
                                          f"-> flow {flow.id}")

                completed += 1
                if progress is not None:
                    progress.update(completed, captures=captures, flows=len(assembler.flows))
        finally:
            self._cancel_requested = False
            self.perf_metrics["total_time"] += time.time() - run_start
            self.perf_metrics["steps"] += completed
            self.perf_metrics["captures"] += captures

        if progress is not None:
            progress.complete()

        flows = assembler.finish()
        result = DetectionResult(
            flows=flows,
            status=RunStatus.COMPLETED,
            message="",
            total_steps=len(timestamps),
            completed_steps=completed,
            frame_timeouts=frame_timeouts,
            decisions=decisions
        )

        if cancelled:
            result.status = RunStatus.CANCELLED
            result.message = f"Cancelled after {completed}/{len(timestamps)} samples"
        elif frames_used == 0:
            result.status = RunStatus.NO_FRAMES
            result.message = "Frame source never became ready"
        elif not flows:
            result.status = RunStatus.EMPTY
            result.message = "No UI screens captured"
        else:
            result.message = f"Captured {result.capture_count} UI screens in {len(flows)} flows"

        self.logger.info(f"{result.message} ({frame_timeouts} frame timeouts)")
        return result

    def detect(self, video_path: str, progress: Optional[ProgressManager] = None) -> DetectionResult:
        """Open a video file and run detection on it synchronously."""
        encoder = JpegEncoder(self.config.get('output', {}).get('quality', 0.92))
        with VideoFrameSource.open(video_path, self.config) as source:
            if progress is not None:
                progress.set_video_info(source.duration, video_path)
            result = asyncio.run(self.run(source, encoder, progress))
            source.log_statistics()
            result.video_info = {
                'duration': source.duration,
                'width': source.width,
                'height': source.height,
                'fps': source.fps,
                'frame_count': source.frame_count
            }
        return result

    def log_performance_metrics(self) -> None:
        """Log accumulated timing metrics."""
        total = self.perf_metrics["total_time"]
        if total == 0:
            return
        steps = self.perf_metrics["steps"]
        self.logger.info("=" * 50)
        self.logger.info("Performance Metrics:")
        self.logger.info(f"Wall clock time: {total:.2f}s")
        self.logger.info(f"Samples: {steps}, captures: {self.perf_metrics['captures']}")
        self.logger.info(f"Frame wait: {self.perf_metrics['wait_time']:.2f}s "
                         f"({self.perf_metrics['wait_time'] / total * 100:.1f}%)")
        self.logger.info(f"Scoring: {self.perf_metrics['score_time']:.2f}s "
                         f"({self.perf_metrics['score_time'] / total * 100:.1f}%)")
        self.logger.info(f"Export: {self.perf_metrics['export_time']:.2f}s "
                         f"({self.perf_metrics['export_time'] / total * 100:.1f}%)")
        if steps > 0:
            self.logger.info(f"Average samples/s: {steps / total:.2f}")
        self.logger.info("=" * 50)
