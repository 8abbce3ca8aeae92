from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class FrameDescriptor:
    id: str
    timestamp: datetime
    source_ref: str

    @property
    def time_ms(self) -> int:
        return int(self.timestamp.timestamp() * 1000)


@dataclass(frozen=True)
class RadarSnapshot:
    frames: tuple[FrameDescriptor, ...]
    newest_timestamp: datetime

    @property
    def latest_time_ms(self) -> int:
        return int(self.newest_timestamp.timestamp() * 1000)


@dataclass
class WindowChange:
    added: list[FrameDescriptor] = field(default_factory=list)
    evicted: list[FrameDescriptor] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.evicted)


def utc_from_ms(time_ms: int | float) -> datetime:
    return datetime.fromtimestamp(time_ms / 1000, tz=timezone.utc)


def iso_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_wmts_time(value: datetime) -> str:
    """WMTS TIME parameter: minute precision, no seconds."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%MZ")


def quantize_ms(time_ms: int | float, interval_ms: int) -> int:
    return int(time_ms // interval_ms) * interval_ms


def format_radar_timestamp(value: str | datetime, tz_name: str = "UTC") -> str:
    """Footer label, e.g. 'Sun Feb 15 23:30' in the dashboard's timezone."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(tz_name)).strftime("%a %b %d %H:%M")


def _ordered(frames) -> list[FrameDescriptor]:
    seen = set()
    ordered = []
    for frame in sorted(frames, key=lambda f: f.timestamp):
        if frame.id in seen:
            continue
        seen.add(frame.id)
        ordered.append(frame)
    return ordered


class FrameWindow:
    """
    Bounded, chronologically ordered frames eligible for playback.

    `visible_index` always points inside the window when it is non-empty.
    Front evictions shift it down so it keeps tracking the same frame until
    the final snap to the newest frame.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Frame window capacity must be at least 1")
        self.capacity = capacity
        self.frames: list[FrameDescriptor] = []
        self.visible_index = 0

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self):
        return iter(self.frames)

    @property
    def newest(self) -> FrameDescriptor | None:
        return self.frames[-1] if self.frames else None

    @property
    def last_index(self) -> int:
        return max(len(self.frames) - 1, 0)

    def ids(self) -> list[str]:
        return [frame.id for frame in self.frames]

    def visible_frame(self) -> FrameDescriptor | None:
        if not self.frames:
            return None
        return self.frames[self.visible_index]

    def set_visible_index(self, index: int) -> int:
        self.visible_index = index
        return self.clamp_visible_index()

    def clamp_visible_index(self) -> int:
        if not self.frames:
            self.visible_index = 0
        else:
            self.visible_index = min(max(self.visible_index, 0), len(self.frames) - 1)
        return self.visible_index

    def replace_all(self, frames) -> WindowChange:
        evicted = self.frames
        self.frames = _ordered(frames)[-self.capacity:]
        self.visible_index = self.last_index
        return WindowChange(added=list(self.frames), evicted=list(evicted))

    def merge_append(self, all_known_frames, capacity: int | None = None) -> WindowChange:
        """
        Append the provider frames newer than our newest one, then trim.

        If our newest id has dropped out of the provider's list, the most
        recent `capacity` provider frames are appended instead. A snapshot
        with nothing new leaves the window (and `visible_index`) untouched.
        """
        capacity = min(capacity or self.capacity, self.capacity)
        all_known = list(all_known_frames)
        newest = self.newest

        known_index = -1
        if newest is not None:
            for idx, frame in enumerate(all_known):
                if frame.id == newest.id:
                    known_index = idx
                    break

        if known_index >= 0:
            candidates = all_known[known_index + 1:]
        else:
            candidates = all_known[-capacity:]

        present = set(self.ids())
        to_add = []
        for frame in _ordered(candidates):
            if frame.id in present:
                continue
            if newest is not None and frame.timestamp <= newest.timestamp:
                continue
            to_add.append(frame)

        if not to_add:
            return WindowChange()

        self.frames.extend(to_add)
        evicted = []
        while len(self.frames) > capacity:
            evicted.append(self.frames.pop(0))
            if self.visible_index > 0:
                self.visible_index -= 1

        # Every successful refresh snaps playback to the newest frame.
        self.visible_index = self.last_index
        return WindowChange(added=to_add, evicted=evicted)

    def clear(self) -> list[FrameDescriptor]:
        evicted = self.frames
        self.frames = []
        self.visible_index = 0
        return evicted
