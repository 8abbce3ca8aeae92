"""
Polling for new radar frames.

After a good poll the next one is timed for when the provider should have
published its next frame. After a failed poll the delay backs off
exponentially, and the frames already in the window keep playing.
"""

from dataclasses import dataclass, replace
from typing import Callable

from radarloop.frames import FrameWindow, RadarSnapshot, WindowChange
from radarloop.providers import FetchError, RadarProvider
from radarloop.radar_log import log
from radarloop.timers import TimerHandle, TimerQueue

BASE_RETRY_DELAY_MS = 5000
MAX_RETRY_DELAY_MS = 60000
MAX_RETRY_COUNT = 5
PUBLICATION_SAFETY_MARGIN_MS = 15 * 1000
MIN_POLL_DELAY_MS = 5000
DEFAULT_PUBLICATION_INTERVAL_MS = 10 * 60 * 1000


def get_retry_delay_ms(retry_count: int) -> int:
    return min(BASE_RETRY_DELAY_MS * 2 ** max(retry_count, 0), MAX_RETRY_DELAY_MS)


def get_next_snapshot_delay_ms(
    latest_time_ms: float,
    now_ms: float,
    interval_ms: int = DEFAULT_PUBLICATION_INTERVAL_MS,
    margin_ms: int = PUBLICATION_SAFETY_MARGIN_MS,
    floor_ms: int = MIN_POLL_DELAY_MS,
) -> float:
    next_available = latest_time_ms + interval_ms + margin_ms
    return max(next_available - now_ms, floor_ms)


@dataclass(frozen=True)
class RefreshState:
    retry_count: int = 0
    primed: bool = False
    last_success_ms: float | None = None
    last_error: str | None = None
    next_poll_ms: float | None = None


def refresh_on_success(
    state: RefreshState,
    snapshot: RadarSnapshot,
    now_ms: float,
    interval_ms: int = DEFAULT_PUBLICATION_INTERVAL_MS,
) -> tuple[RefreshState, float]:
    delay = get_next_snapshot_delay_ms(snapshot.latest_time_ms, now_ms, interval_ms=interval_ms)
    new_state = replace(
        state,
        retry_count=0,
        primed=True,
        last_success_ms=now_ms,
        last_error=None,
        next_poll_ms=now_ms + delay,
    )
    return new_state, delay


def refresh_on_failure(state: RefreshState, now_ms: float, error: str | None = None) -> tuple[RefreshState, int]:
    delay = get_retry_delay_ms(state.retry_count)
    new_state = replace(
        state,
        retry_count=min(state.retry_count + 1, MAX_RETRY_COUNT),
        last_error=error,
        next_poll_ms=now_ms + delay,
    )
    return new_state, delay


class RefreshScheduler:
    def __init__(
        self,
        timers: TimerQueue,
        provider: RadarProvider,
        window: FrameWindow,
        on_window_changed: Callable[[WindowChange], None],
    ):
        self.timers = timers
        self.provider = provider
        self.window = window
        self.on_window_changed = on_window_changed
        self.state = RefreshState()
        self._timer: TimerHandle | None = None
        self._in_flight = False
        self._reset_pending = True
        self._stopped = False

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None and self._timer.active

    def start(self) -> None:
        self._stopped = False
        self.poll()

    def request_reset(self) -> None:
        self._reset_pending = True
        self.poll()

    def stop(self) -> None:
        self._stopped = True
        self._cancel()

    def _cancel(self) -> None:
        self.timers.cancel(self._timer)
        self._timer = None

    def _arm(self, delay_ms: float) -> None:
        self._cancel()
        if not self._stopped:
            self._timer = self.timers.set_timeout(delay_ms, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.poll()

    def poll(self) -> bool:
        if self._in_flight or self._stopped:
            return False
        self._in_flight = True
        self._cancel()
        try:
            return self._poll_once()
        finally:
            self._in_flight = False

    def _poll_once(self) -> bool:
        try:
            snapshot = self.provider.fetch_snapshot(now_ms=self.timers.now_ms())
        except FetchError as exc:
            now = self.timers.now_ms()
            self.state, delay = refresh_on_failure(self.state, now, error=repr(exc))
            log(f"Radar fetch from {self.provider.label} failed: {exc!r}; retrying in {delay / 1000:.0f}s")
            self._arm(delay)
            return False

        if self._reset_pending or not self.state.primed or len(self.window) == 0:
            change = self.window.replace_all(snapshot.frames)
            self._reset_pending = False
        else:
            change = self.window.merge_append(snapshot.frames, self.window.capacity)

        now = self.timers.now_ms()
        self.state, delay = refresh_on_success(
            self.state,
            snapshot,
            now,
            interval_ms=self.provider.poll_interval_ms,
        )
        if change.changed:
            log(
                f"Radar frames from {self.provider.label}: +{len(change.added)} -{len(change.evicted)} "
                f"({len(self.window)} in window)"
            )
            self.on_window_changed(change)
        self._arm(delay)
        return True
