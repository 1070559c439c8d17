import os
import shutil
import sys
import time
from datetime import timedelta


class ProgressManager:
    """Manages progress display for a single detection run."""

    def __init__(self, quiet: bool = False):
        """Initialize progress manager."""
        self.quiet = quiet
        self.completed_steps = 0
        self.total_steps = 0
        self.captures = 0
        self.flows = 0
        self.start_time = time.time()
        self.last_update_time = 0.0
        self.terminal_width = shutil.get_terminal_size().columns
        self.video_filename = ""
        self.video_duration = 0.0

    @property
    def fraction(self) -> float:
        return self.completed_steps / self.total_steps if self.total_steps > 0 else 0.0

    def set_total(self, total: int) -> None:
        """Set total sampling steps."""
        self.total_steps = max(0, total)

    def set_video_info(self, duration: float, filename: str = "") -> None:
        """Set video information."""
        self.video_duration = duration
        self.video_filename = filename

    def update(self, completed: int, captures: int = 0, flows: int = 0) -> None:
        """Record progress after a sampled timestamp and redraw."""
        self.completed_steps = completed
        self.captures = captures
        self.flows = flows

        # Don't update too frequently to avoid screen flicker
        current_time = time.time()
        if current_time - self.last_update_time >= 0.1 or completed >= self.total_steps:
            self._display_progress()
            self.last_update_time = current_time

    def complete(self) -> None:
        """Mark processing as complete and show final statistics."""
        self._display_progress()
        if not self.quiet:
            print()

    def _display_progress(self) -> None:
        """Display progress information."""
        if self.quiet:
            return
        progress = self.fraction

        elapsed_time = time.time() - self.start_time
        if progress > 0:
            remaining_time = elapsed_time / progress - elapsed_time
        else:
            remaining_time = 0

        bar_width = max(10, min(40, self.terminal_width - 60))
        filled_width = int(bar_width * progress)
        bar = '=' * filled_width + '>' + ' ' * (bar_width - filled_width)

        filename = os.path.basename(self.video_filename) if self.video_filename else "video"
        if len(filename) > 20:
            filename = filename[:17] + "..."

        info_line = (
            f"{filename} [{bar}] {progress*100:5.1f}% "
            f"| Steps: {self.completed_steps}/{self.total_steps} "
            f"| Captures: {self.captures} "
            f"| Flows: {self.flows} "
            f"| ETA: {timedelta(seconds=int(remaining_time))}"
        )

        # Overwrite the current line
        sys.stdout.write('\r' + ' ' * (self.terminal_width - 1))
        sys.stdout.write('\r' + info_line[:self.terminal_width - 1])
        sys.stdout.flush()
