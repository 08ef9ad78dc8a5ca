from __future__ import annotations

import heapq
import itertools
import time
from typing import Callable, List, Optional, Tuple


class TimerHandle:
    __slots__ = ("deadline", "callback", "cancelled")

    def __init__(self, deadline: float, callback: Callable[[], None]):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class TimerQueue:
    """Single-shot delayed callbacks, fired cooperatively by `run_due`.

    Nothing runs in the background: the owner of the frame loop calls
    `run_due()` once per tick, so callbacks never overlap with drawing.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled)

    def call_at(self, deadline: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule `callback` for an absolute clock reading."""
        handle = TimerHandle(float(deadline), callback)
        heapq.heappush(self._heap, (handle.deadline, next(self._seq), handle))
        return handle

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self.call_at(self.clock() + max(0.0, float(delay)), callback)

    def run_due(self, now: Optional[float] = None) -> int:
        """Fire every due, non-cancelled callback in deadline order."""
        now = self.clock() if now is None else now
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            handle.cancelled = True
            handle.callback()
            fired += 1
        return fired

    def cancel_all(self) -> None:
        for _, _, h in self._heap:
            h.cancel()
        self._heap.clear()


__all__ = ["TimerHandle", "TimerQueue"]
