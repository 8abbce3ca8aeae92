import os

from radarloop.frames import FrameWindow, WindowChange, format_radar_timestamp
from radarloop.layers import MapSurface, TileLayerAdapter
from radarloop.playback import PlaybackScheduler
from radarloop.providers import RadarProvider, get_provider
from radarloop.radar_config import RadarCardConfig
from radarloop.radar_log import log
from radarloop.refresh import RefreshScheduler
from radarloop.timers import TimerQueue

LOCAL_TZ = os.getenv("LOCAL_TZ", "Australia/Sydney")
MIN_RERUN_DELAY_MS = 1000
MAX_RERUN_DELAY_MS = 15 * 60 * 1000
RERUN_SLACK_MS = 500


class RadarLoop:
    """
    One animated radar widget: frame window, overlay layers, playback and
    refresh, created and destroyed together.

    Any configuration change rebuilds all four; none of them is resized or
    re-pointed in place.
    """

    def __init__(
        self,
        config: RadarCardConfig,
        surface: MapSurface,
        timers: TimerQueue | None = None,
        provider: RadarProvider | None = None,
        tz_name: str = LOCAL_TZ,
    ):
        self.config = config
        self.surface = surface
        self.timers = timers or TimerQueue()
        self.tz_name = tz_name
        self._provider_override = provider
        self.provider: RadarProvider | None = None
        self.window: FrameWindow | None = None
        self.adapter: TileLayerAdapter | None = None
        self.playback: PlaybackScheduler | None = None
        self.refresh: RefreshScheduler | None = None

    @property
    def mounted(self) -> bool:
        return self.window is not None

    def mount(self) -> None:
        if self.mounted:
            return
        config = self.config
        self.provider = self._provider_override or get_provider(config.provider, frame_count=config.frame_count)
        self.window = FrameWindow(config.frame_count)
        self.adapter = TileLayerAdapter(self.surface, self.provider.build_tile_source, timers=self.timers)
        self.playback = PlaybackScheduler(
            self.timers,
            self.window,
            on_show=self._on_show,
            frame_delay_ms=config.frame_delay,
            restart_delay_ms=config.restart_delay,
        )
        self.refresh = RefreshScheduler(self.timers, self.provider, self.window, self._on_window_changed)
        log(f"Radar loop mounted: provider={self.provider.name} frames={config.frame_count}")
        self.refresh.start()

    def teardown(self) -> None:
        if not self.mounted:
            return
        self.refresh.stop()
        self.playback.stop()
        self.adapter.teardown()
        self.window.clear()
        self.window = None
        self.adapter = None
        self.playback = None
        self.refresh = None
        self.provider = None
        log("Radar loop torn down")

    def reconfigure(self, config: RadarCardConfig, provider: RadarProvider | None = None) -> None:
        log(f"Radar loop reconfigured: provider={config.provider} frames={config.frame_count}")
        self.teardown()
        self.config = config
        self._provider_override = provider
        self.mount()

    def pump(self, now_ms: float | None = None) -> int:
        return self.timers.pump(now_ms)

    def _on_window_changed(self, change: WindowChange) -> None:
        self.adapter.sync(self.window)
        self.playback.window_changed()

    def _on_show(self, index: int) -> None:
        self.adapter.apply_visibility(self.window, self.config.overlay_opacity)

    def timestamp_label(self) -> str:
        if self.refresh is None or (not self.refresh.state.primed and not self.window):
            return "Loading radar..."
        frame = self.window.visible_frame()
        if frame is None:
            return "No radar data"
        return format_radar_timestamp(frame.timestamp, self.tz_name)

    def frame_labels(self) -> list[tuple[str, str]]:
        if not self.window:
            return []
        return [(frame.id, format_radar_timestamp(frame.timestamp, self.tz_name)) for frame in self.window]

    def rerun_delay_ms(self) -> float:
        """How long the host can wait before the next poll is due."""
        if self.refresh is None or self.refresh.state.next_poll_ms is None:
            return MAX_RERUN_DELAY_MS
        delay = self.refresh.state.next_poll_ms - self.timers.now_ms() + RERUN_SLACK_MS
        return min(max(delay, MIN_RERUN_DELAY_MS), MAX_RERUN_DELAY_MS)

    def status(self) -> dict:
        refresh_state = self.refresh.state if self.refresh else None
        return {
            "provider": self.provider.label if self.provider else "--",
            "frames": len(self.window) if self.window is not None else 0,
            "capacity": self.config.frame_count,
            "visible_index": self.window.visible_index if self.window is not None else None,
            "phase": self.playback.state.phase if self.playback else "idle",
            "retry_count": refresh_state.retry_count if refresh_state else 0,
            "last_error": refresh_state.last_error if refresh_state else None,
            "next_poll_ms": refresh_state.next_poll_ms if refresh_state else None,
            "timestamp_label": self.timestamp_label(),
        }
