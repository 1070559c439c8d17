"""
Capture policy: a hysteresis filter over per-sample difference scores.

The policy fires once on a hard cut (and opens a new flow), once at the
onset of a sustained moderate change, and once more when that change
settles. Stable content never re-fires. A minimum dwell gap between
emitted captures suppresses rapid duplicates.

`evaluate` is a pure function of (state, luma, timestamp); the caller owns
the state and threads it from one sample to the next.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .luma import DEFAULT_DIFF_STRIDE, diff_score


class Phase(Enum):
    NO_PRIOR_FRAME = "no_prior_frame"
    STEADY = "steady"
    BURST = "burst"


@dataclass(frozen=True)
class Thresholds:
    hard: float = 6.0
    soft: float = 3.0
    low: float = 2.0
    min_gap: float = 0.3
    stride: int = DEFAULT_DIFF_STRIDE

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Thresholds":
        """Build thresholds from the 'detection' section of a config dict."""
        detection = config.get('detection', {})
        return cls(
            hard=float(detection.get('hard_threshold', cls.hard)),
            soft=float(detection.get('soft_threshold', cls.soft)),
            low=float(detection.get('low_threshold', cls.low)),
            min_gap=float(detection.get('min_capture_gap', cls.min_gap)),
            stride=int(detection.get('diff_stride', cls.stride)),
        )


@dataclass(frozen=True, eq=False)
class CapturePolicyState:
    last_luma: Optional[np.ndarray] = None
    last_capture_timestamp: float = -math.inf
    burst_active: bool = False

    @property
    def phase(self) -> Phase:
        if self.last_luma is None:
            return Phase.NO_PRIOR_FRAME
        return Phase.BURST if self.burst_active else Phase.STEADY


@dataclass(frozen=True)
class CaptureDecision:
    timestamp: float
    score: Optional[float]
    should_capture: bool
    starts_new_flow: bool
    emitted: bool
    reason: str


def _classify(score: float, burst_active: bool, thresholds: Thresholds) -> Tuple[bool, bool, str]:
    """Apply the diff rule. Returns (should_capture, starts_new_flow, reason)."""
    if score > thresholds.hard:
        return True, True, "hard_cut"
    if score > thresholds.soft and not burst_active:
        return True, False, "burst_onset"
    if score < thresholds.low and burst_active:
        return True, False, "burst_settled"
    return False, False, "no_change"


def evaluate(
    state: CapturePolicyState,
    luma: np.ndarray,
    timestamp: float,
    thresholds: Thresholds = Thresholds(),
) -> Tuple[CapturePolicyState, CaptureDecision]:
    """Decide whether the sample at `timestamp` becomes a capture.

    Args:
        state: Policy state after the previous sample
        luma: Luma buffer of the current sample
        timestamp: Sample time in seconds
        thresholds: Scoring thresholds and dwell gap

    Returns:
        Tuple of (new state, decision)
    """
    if state.last_luma is None:
        score = None
        should_capture, starts_new_flow, reason = True, False, "first_frame"
        effective_score = 0.0
    else:
        score = diff_score(state.last_luma, luma, thresholds.stride)
        should_capture, starts_new_flow, reason = _classify(score, state.burst_active, thresholds)
        effective_score = score

    # Burst tracking follows the score regardless of the capture verdict
    burst_active = state.burst_active
    if effective_score > thresholds.soft:
        burst_active = True
    if effective_score < thresholds.low:
        burst_active = False

    emitted = should_capture and timestamp - state.last_capture_timestamp > thresholds.min_gap
    if should_capture and not emitted:
        reason = f"{reason}_within_gap"

    if emitted:
        new_state = CapturePolicyState(
            last_luma=luma,
            last_capture_timestamp=timestamp,
            burst_active=burst_active,
        )
    else:
        new_state = replace(state, burst_active=burst_active)

    decision = CaptureDecision(
        timestamp=timestamp,
        score=score,
        should_capture=should_capture,
        starts_new_flow=starts_new_flow and emitted,
        emitted=emitted,
        reason=reason,
    )
    return new_state, decision
