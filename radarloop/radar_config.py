import math
import os
import sqlite3
from dataclasses import asdict, dataclass

from radarloop.config_store import get_settings, set_settings

CONFIG_PREFIX = "radar."
PROVIDER_NAMES = ("rainviewer", "bom")
DEFAULT_PROVIDER = os.getenv("RADAR_PROVIDER", "rainviewer").strip().lower()
DEFAULT_FRAME_COUNTS = {"rainviewer": 7, "bom": 12}
DEFAULT_FRAME_DELAY = 250
DEFAULT_RESTART_DELAY = 1000
DEFAULT_ZOOM_LEVEL = 8
DEFAULT_CENTER = (-27.85, 133.75)


@dataclass(frozen=True)
class RadarCardConfig:
    provider: str = "rainviewer"
    card_title: str | None = None
    hide_header: bool = False
    map_style: str = "Light"
    zoom_level: int = DEFAULT_ZOOM_LEVEL
    center_latitude: float = DEFAULT_CENTER[0]
    center_longitude: float = DEFAULT_CENTER[1]
    show_zoom: bool = True
    show_recenter: bool = True
    show_scale: bool = True
    frame_count: int = DEFAULT_FRAME_COUNTS["rainviewer"]
    frame_delay: int = DEFAULT_FRAME_DELAY
    restart_delay: int = DEFAULT_RESTART_DELAY
    overlay_transparency: float = 0.0

    @property
    def overlay_opacity(self) -> float:
        return min(1.0, max(0.0, 1 - self.overlay_transparency / 100))


def _to_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


def _to_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _clamped_int(value, low: int, high: int, default: int) -> int:
    numeric = _to_number(value)
    if numeric is None:
        return default
    return int(_clamp(math.floor(numeric + 0.5), low, high))


def _bounded(value, low: float, high: float, default: float) -> float:
    numeric = _to_number(value)
    if numeric is None or numeric < low or numeric > high:
        return default
    return numeric


def normalize_config(raw: dict | None) -> RadarCardConfig:
    raw = raw or {}
    provider = str(raw.get("provider") or DEFAULT_PROVIDER).strip().lower()
    if provider not in PROVIDER_NAMES:
        provider = "rainviewer"

    title = raw.get("card_title")
    transparency = _to_number(raw.get("overlay_transparency"))

    return RadarCardConfig(
        provider=provider,
        card_title=title.strip() if isinstance(title, str) and title.strip() else None,
        hide_header=_to_bool(raw.get("hide_header"), False),
        map_style="Dark" if raw.get("map_style") == "Dark" else "Light",
        zoom_level=_clamped_int(raw.get("zoom_level"), 3, 10, DEFAULT_ZOOM_LEVEL),
        center_latitude=_bounded(raw.get("center_latitude"), -90, 90, DEFAULT_CENTER[0]),
        center_longitude=_bounded(raw.get("center_longitude"), -180, 180, DEFAULT_CENTER[1]),
        show_zoom=_to_bool(raw.get("show_zoom"), True),
        show_recenter=_to_bool(raw.get("show_recenter"), True),
        show_scale=_to_bool(raw.get("show_scale"), True),
        frame_count=_clamped_int(raw.get("frame_count"), 1, 24, DEFAULT_FRAME_COUNTS[provider]),
        frame_delay=_clamped_int(raw.get("frame_delay"), 100, 5000, DEFAULT_FRAME_DELAY),
        restart_delay=_clamped_int(raw.get("restart_delay"), 100, 10000, DEFAULT_RESTART_DELAY),
        overlay_transparency=_clamp(transparency, 0, 90) if transparency is not None else 0.0,
    )


def config_to_dict(config: RadarCardConfig) -> dict:
    return asdict(config)


def load_radar_config(conn: sqlite3.Connection) -> RadarCardConfig:
    return normalize_config(get_settings(conn, CONFIG_PREFIX))


def save_radar_config(conn: sqlite3.Connection, config: RadarCardConfig) -> None:
    values = {
        f"{CONFIG_PREFIX}{key}": ("" if value is None else value)
        for key, value in config_to_dict(config).items()
    }
    set_settings(conn, values)
