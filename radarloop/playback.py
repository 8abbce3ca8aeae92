"""
Frame playback loop.

`playback_transition` is the whole state machine and has no timers in it;
`PlaybackScheduler` just carries out the effects it returns against a
`TimerQueue` and the frame window.
"""

from dataclasses import dataclass, replace
from typing import Callable

from radarloop.frames import FrameWindow
from radarloop.timers import TimerHandle, TimerQueue

IDLE = "idle"
PLAYING = "playing"
PAUSED_BEFORE_RESTART = "paused_before_restart"

DEFAULT_FRAME_DELAY_MS = 250
DEFAULT_RESTART_DELAY_MS = 1000


@dataclass(frozen=True)
class PlaybackState:
    visible_index: int = 0
    length: int = 0
    frame_delay_ms: int = DEFAULT_FRAME_DELAY_MS
    restart_delay_ms: int = DEFAULT_RESTART_DELAY_MS
    stopped: bool = False

    @property
    def phase(self) -> str:
        if self.stopped or self.length <= 1:
            return IDLE
        if self.visible_index == self.length - 1:
            return PAUSED_BEFORE_RESTART
        return PLAYING

    def next_delay_ms(self) -> int:
        if self.visible_index == self.length - 1:
            return self.restart_delay_ms
        return self.frame_delay_ms


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class WindowChanged:
    length: int
    visible_index: int


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class ShowFrame:
    index: int


@dataclass(frozen=True)
class ArmTimer:
    delay_ms: int


@dataclass(frozen=True)
class CancelTimer:
    pass


def _clamp(index: int, length: int) -> int:
    if length <= 0:
        return 0
    return min(max(index, 0), length - 1)


def playback_transition(state: PlaybackState, event) -> tuple[PlaybackState, list]:
    if isinstance(event, Stop):
        return replace(state, stopped=True), [CancelTimer()]

    if isinstance(event, WindowChanged):
        index = _clamp(event.visible_index, event.length)
        new_state = replace(state, length=event.length, visible_index=index, stopped=False)
        effects: list = [CancelTimer()]
        if event.length > 0:
            effects.append(ShowFrame(index))
        if event.length > 1:
            effects.append(ArmTimer(new_state.next_delay_ms()))
        return new_state, effects

    if isinstance(event, Tick):
        if state.stopped or state.length <= 1:
            return state, []
        index = (_clamp(state.visible_index, state.length) + 1) % state.length
        new_state = replace(state, visible_index=index)
        return new_state, [ShowFrame(index), ArmTimer(new_state.next_delay_ms())]

    raise TypeError(f"Unknown playback event: {event!r}")


class PlaybackScheduler:
    def __init__(
        self,
        timers: TimerQueue,
        window: FrameWindow,
        on_show: Callable[[int], None],
        frame_delay_ms: int = DEFAULT_FRAME_DELAY_MS,
        restart_delay_ms: int = DEFAULT_RESTART_DELAY_MS,
    ):
        self.timers = timers
        self.window = window
        self.on_show = on_show
        self.state = PlaybackState(frame_delay_ms=frame_delay_ms, restart_delay_ms=restart_delay_ms)
        self._timer: TimerHandle | None = None

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None and self._timer.active

    def window_changed(self) -> None:
        self._dispatch(WindowChanged(len(self.window), self.window.visible_index))

    def stop(self) -> None:
        self._dispatch(Stop())

    def _on_timer(self) -> None:
        self._timer = None
        # The window may have been merged or trimmed since the timer was armed.
        self.state = replace(
            self.state,
            length=len(self.window),
            visible_index=self.window.clamp_visible_index(),
        )
        self._dispatch(Tick())

    def _dispatch(self, event) -> None:
        self.state, effects = playback_transition(self.state, event)
        for effect in effects:
            if isinstance(effect, CancelTimer):
                self.timers.cancel(self._timer)
                self._timer = None
            elif isinstance(effect, ShowFrame):
                self.window.set_visible_index(effect.index)
                self.on_show(effect.index)
            elif isinstance(effect, ArmTimer):
                self.timers.cancel(self._timer)
                self._timer = self.timers.set_timeout(effect.delay_ms, self._on_timer)
