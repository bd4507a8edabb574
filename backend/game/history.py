"""Bounded window of recent crash multipliers."""

from collections import deque
from typing import Deque, Tuple

DEFAULT_CAPACITY = 10


class RecentOutcomesWindow:
    """FIFO of the last `capacity` crash multipliers, oldest first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._outcomes: Deque[float] = deque(maxlen=capacity)

    def record(self, crash_multiplier: float) -> None:
        self._outcomes.append(crash_multiplier)

    def snapshot(self) -> Tuple[float, ...]:
        return tuple(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)
