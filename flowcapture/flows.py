import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional


def format_time(seconds: float) -> str:
    """Format a timestamp in seconds as M:SS."""
    minutes = math.floor(seconds / 60)
    secs = math.floor(seconds % 60)
    return f"{minutes}:{secs:02d}"


@dataclass(frozen=True)
class Capture:
    timestamp: float
    formatted_time: str
    image: bytes

    @classmethod
    def at(cls, timestamp: float, image: bytes) -> "Capture":
        return cls(timestamp=timestamp, formatted_time=format_time(timestamp), image=image)


@dataclass
class Flow:
    id: int
    captures: List[Capture] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.captures)

    @property
    def start(self) -> Optional[float]:
        return self.captures[0].timestamp if self.captures else None

    @property
    def end(self) -> Optional[float]:
        return self.captures[-1].timestamp if self.captures else None


class FlowAssembler:
    """Collects captures into ordered flows.

    Exactly one flow is current at a time. A flow boundary flushes the
    current flow into the result (empty flows are dropped) and opens the
    next one with the following id.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._completed: List[Flow] = []
        self._current = Flow(id=1)

    @property
    def current(self) -> Flow:
        return self._current

    @property
    def flows(self) -> List[Flow]:
        """Completed flows followed by the current one, if it has captures."""
        return self._completed + ([self._current] if self._current.captures else [])

    def start_new_flow(self) -> Flow:
        """Close the current flow and open the next one."""
        if self._current.captures:
            self._completed.append(self._current)
            self.logger.debug(f"Closed flow {self._current.id} with {len(self._current)} captures")
        else:
            self.logger.debug(f"Dropping empty flow {self._current.id}")
        self._current = Flow(id=self._current.id + 1)
        return self._current

    def add(self, capture: Capture, starts_new_flow: bool = False) -> Flow:
        """Append a capture, opening a new flow first if requested.

        Returns:
            The flow the capture was appended to
        """
        if starts_new_flow:
            self.start_new_flow()
        last = self._current.end
        if last is not None and capture.timestamp <= last:
            raise ValueError(
                f"Capture at {capture.timestamp:.2f}s is not after the last capture "
                f"of flow {self._current.id} ({last:.2f}s)"
            )
        self._current.captures.append(capture)
        return self._current

    def finish(self) -> List[Flow]:
        """Flush the current flow and return all non-empty flows numbered from 1."""
        if self._current.captures:
            self._completed.append(self._current)
        self._current = Flow(id=self._current.id + 1)
        return [
            Flow(id=index, captures=list(flow.captures))
            for index, flow in enumerate(self._completed, 1)
        ]
