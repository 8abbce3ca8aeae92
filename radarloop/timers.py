import heapq
import itertools
import time
from typing import Callable


def wall_clock_ms() -> float:
    return time.time() * 1000


class TimerHandle:
    __slots__ = ("due_ms", "seq", "callback", "cancelled", "fired")

    def __init__(self, due_ms: float, seq: int, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.seq = seq
        self.callback = callback
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def __lt__(self, other: "TimerHandle") -> bool:
        return (self.due_ms, self.seq) < (other.due_ms, other.seq)


class TimerQueue:
    """
    Single-threaded one-shot timers.

    Nothing fires on its own: the host calls `pump()` and every live timer
    that is due by then runs to completion before the next one starts.
    """

    def __init__(self, clock: Callable[[], float] = wall_clock_ms):
        self.clock = clock
        self._heap: list[TimerHandle] = []
        self._seq = itertools.count()

    def now_ms(self) -> float:
        return self.clock()

    def set_timeout(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.clock() + max(0, delay_ms), next(self._seq), callback)
        heapq.heappush(self._heap, handle)
        return handle

    def cancel(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancelled = True

    def clear(self) -> None:
        for handle in self._heap:
            handle.cancelled = True
        self._heap = []

    def pending_count(self) -> int:
        return sum(1 for handle in self._heap if handle.active)

    def next_due_ms(self) -> float | None:
        self._drop_cancelled()
        return self._heap[0].due_ms if self._heap else None

    def _drop_cancelled(self) -> None:
        while self._heap and not self._heap[0].active:
            heapq.heappop(self._heap)

    def pump(self, now_ms: float | None = None) -> int:
        now = self.clock() if now_ms is None else now_ms
        # Timers armed by these callbacks wait for the next pump.
        due = []
        while self._heap and self._heap[0].due_ms <= now:
            due.append(heapq.heappop(self._heap))

        fired = 0
        for handle in due:
            if not handle.active:
                continue
            handle.fired = True
            handle.callback()
            fired += 1
        return fired
