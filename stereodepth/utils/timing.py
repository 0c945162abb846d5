"""Processing time statistics for frame sequences."""

import time
from typing import Optional
from collections import deque


class FrameTimer:
    """Track per-frame processing durations over a sliding window."""

    def __init__(self, window_size: int = 30):
        """
        Initialize frame timer.

        Args:
            window_size: Number of frames to track for statistics.
        """
        self.window_size = window_size
        self.durations_ms = deque(maxlen=window_size)
        self.frame_count = 0

    def add(self, duration_ms: float) -> None:
        """Record the processing time of one frame."""
        self.durations_ms.append(duration_ms)
        self.frame_count += 1

    def mean_ms(self) -> Optional[float]:
        """
        Get the average processing time over the window.

        Returns:
            Mean duration in milliseconds, or None if no frame was recorded.
        """
        if len(self.durations_ms) == 0:
            return None
        return sum(self.durations_ms) / len(self.durations_ms)

    def max_ms(self) -> Optional[float]:
        """Slowest frame in the window, or None if empty."""
        if len(self.durations_ms) == 0:
            return None
        return max(self.durations_ms)

    def get_fps(self) -> Optional[float]:
        """
        Get the throughput implied by the mean processing time.

        Returns:
            Frames per second, or None if not enough data.
        """
        mean = self.mean_ms()
        if mean is None or mean <= 0:
            return None
        return 1000.0 / mean

    def reset(self) -> None:
        """Reset all statistics."""
        self.durations_ms.clear()
        self.frame_count = 0


def timestamp_ms() -> int:
    """
    Get current timestamp in milliseconds using monotonic clock.

    Returns:
        Timestamp in milliseconds.
    """
    return int(time.monotonic() * 1000)
