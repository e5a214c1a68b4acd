from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque


class FPSMeter:
    """Rolling average of frame rate over the last ``window`` frame intervals."""

    def __init__(self, window: int = 30, clock: Callable[[], float] = time.perf_counter) -> None:
        self.window = max(1, window)
        self._clock = clock
        self._intervals: Deque[float] = deque(maxlen=self.window)
        self._last_time = clock()

    def tick(self) -> float:
        now = self._clock()
        delta = now - self._last_time
        self._last_time = now
        if delta > 0:
            self._intervals.append(delta)
        return 1.0 / delta if delta > 0 else 0.0

    def get_fps(self) -> float:
        if not self._intervals:
            return 0.0
        return len(self._intervals) / sum(self._intervals)

    def reset(self) -> None:
        self._intervals.clear()
        self._last_time = self._clock()
