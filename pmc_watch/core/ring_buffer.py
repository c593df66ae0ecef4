"""Fixed-capacity FIFO series backing the cpu/memory charts."""

from __future__ import annotations

from collections import deque
from typing import Iterator

DEFAULT_CAPACITY = 21


class MetricRingBuffer:
    """Keeps the last ``capacity`` samples, oldest first.

    Pushing onto a full buffer evicts exactly one sample from the front.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._samples: deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[float]:
        return iter(self._samples)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    @property
    def is_empty(self) -> bool:
        return not self._samples

    def push(self, value: float) -> None:
        self._samples.append(value)

    def values(self) -> list[float]:
        """Copy of the series, oldest first."""
        return list(self._samples)

    def latest(self) -> float | None:
        """Most recent sample, or ``None`` before the first push."""
        if not self._samples:
            return None
        return self._samples[-1]

    def clear(self) -> None:
        self._samples.clear()
