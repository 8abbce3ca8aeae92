"""
Upstream radar imagery sources.

RainViewer publishes a manifest of recent frames and serves tiles on the
standard web-mercator grid. The Bureau of Meteorology serves WMTS tiles on
its own GoogleMapsCompatible_BoM matrix, and its frame times are derived
from the clock because the capabilities document is not reachable from a
browser.
"""

from datetime import datetime
from urllib.parse import urlencode

import requests

from radarloop.frames import (
    FrameDescriptor,
    RadarSnapshot,
    format_wmts_time,
    iso_utc,
    quantize_ms,
    utc_from_ms,
)
from radarloop.grid import BOM_TILE_MATRICES
from radarloop.layers import MatrixTileSource, XyzTileSource
from radarloop.radar_log import log
from radarloop.timers import wall_clock_ms

HTTP_TIMEOUT = 10

RAINVIEWER_API = "https://api.rainviewer.com/public/weather-maps.json"
RAINVIEWER_DEFAULT_HOST = "https://tilecache.rainviewer.com"
RAINVIEWER_COLOR_SCHEME = 2
RAINVIEWER_SMOOTH = 1
RAINVIEWER_SNOW = 0

WMTS_KVP_BASE = "https://api.bom.gov.au/apikey/v1/mapping/timeseries/wmts"
WMTS_LAYER = "atm_surf_air_precip_reflectivity_dbz"
WMTS_TILE_MATRIX_SET = "GoogleMapsCompatible_BoM"

MINUTE_MS = 60 * 1000


class FetchError(RuntimeError):
    pass


class NoDataAvailable(FetchError):
    pass


def build_rainviewer_tile_url(host: str, path: str) -> str:
    return (
        f"{host}{path}/256/{{z}}/{{x}}/{{y}}/"
        f"{RAINVIEWER_COLOR_SCHEME}/{RAINVIEWER_SMOOTH}_{RAINVIEWER_SNOW}.png"
    )


def bom_kvp_url(z: int, row: int, col: int, time: str) -> str:
    params = {
        "SERVICE": "WMTS",
        "REQUEST": "GetTile",
        "VERSION": "1.0.0",
        "LAYER": WMTS_LAYER,
        "STYLE": "default",
        "FORMAT": "image/png",
        "TILEMATRIXSET": WMTS_TILE_MATRIX_SET,
        "TILEMATRIX": z,
        "TILEROW": row,
        "TILECOL": col,
        "TIME": time,
    }
    return f"{WMTS_KVP_BASE}?{urlencode(params, safe='/{}')}"


class RadarProvider:
    name: str
    label: str
    publication_interval_ms: int
    publication_lag_ms: int = 0
    default_frame_count: int
    max_native_zoom: int

    def fetch_snapshot(self, now_ms: float | None = None) -> RadarSnapshot:
        raise NotImplementedError

    @property
    def poll_interval_ms(self) -> int:
        """Time from a frame's nominal time until the next frame can be fetched."""
        return self.publication_interval_ms + self.publication_lag_ms

    def build_tile_source(self, frame: FrameDescriptor):
        raise NotImplementedError


class RainViewerProvider(RadarProvider):
    name = "rainviewer"
    label = "RainViewer"
    publication_interval_ms = 10 * MINUTE_MS
    default_frame_count = 7
    max_native_zoom = 7

    def __init__(self, http_get=requests.get, api_url: str = RAINVIEWER_API):
        self.http_get = http_get
        self.api_url = api_url

    def fetch_snapshot(self, now_ms: float | None = None) -> RadarSnapshot:
        try:
            resp = self.http_get(self.api_url, timeout=HTTP_TIMEOUT)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise FetchError(f"RainViewer manifest request failed: {exc!r}") from exc
        except ValueError as exc:
            raise FetchError("RainViewer manifest is not valid JSON") from exc
        return self.parse_manifest(payload)

    def parse_manifest(self, payload) -> RadarSnapshot:
        if not isinstance(payload, dict):
            raise FetchError("RainViewer manifest root is not an object")
        host = payload.get("host") or RAINVIEWER_DEFAULT_HOST
        radar = payload.get("radar") or {}
        if not isinstance(radar, dict):
            raise FetchError("RainViewer manifest has no radar section")
        raw_frames = radar.get("past") or []
        if not isinstance(raw_frames, list):
            raise FetchError("RainViewer radar.past is not a list")

        frames = []
        for raw in raw_frames:
            if not isinstance(raw, dict):
                continue
            time_s = raw.get("time")
            path = raw.get("path")
            if time_s is None or not path:
                continue
            try:
                timestamp = utc_from_ms(int(time_s) * 1000)
            except (TypeError, ValueError, OverflowError, OSError):
                log(f"Skipping RainViewer frame with bad time: {time_s!r}")
                continue
            frames.append(FrameDescriptor(iso_utc(timestamp), timestamp, f"{host}{path}"))

        if not frames:
            raise NoDataAvailable("No radar frames available")
        frames.sort(key=lambda f: f.timestamp)
        return RadarSnapshot(tuple(frames), frames[-1].timestamp)

    def build_tile_source(self, frame: FrameDescriptor) -> XyzTileSource:
        return XyzTileSource(
            build_rainviewer_tile_url(frame.source_ref, ""),
            max_native_zoom=self.max_native_zoom,
        )


class BomProvider(RadarProvider):
    name = "bom"
    label = "Bureau of Meteorology"
    publication_interval_ms = 5 * MINUTE_MS
    publication_lag_ms = 5 * MINUTE_MS
    default_frame_count = 12
    max_native_zoom = 8

    def __init__(self, frame_count: int | None = None, clock=wall_clock_ms):
        self.frame_count = frame_count or self.default_frame_count
        self.clock = clock

    def fetch_snapshot(self, now_ms: float | None = None) -> RadarSnapshot:
        now = self.clock() if now_ms is None else now_ms
        # The newest tile is assumed published one lag after its nominal time.
        latest_ms = quantize_ms(now - self.publication_lag_ms, self.publication_interval_ms)
        count = max(self.frame_count, 12) + 4

        frames = []
        for i in range(count - 1, -1, -1):
            timestamp: datetime = utc_from_ms(latest_ms - i * self.publication_interval_ms)
            frames.append(FrameDescriptor(iso_utc(timestamp), timestamp, format_wmts_time(timestamp)))
        return RadarSnapshot(tuple(frames), frames[-1].timestamp)

    def build_tile_source(self, frame: FrameDescriptor) -> MatrixTileSource:
        return MatrixTileSource(
            time=frame.source_ref,
            matrices=BOM_TILE_MATRICES,
            url_for=bom_kvp_url,
            max_native_zoom=self.max_native_zoom,
        )


PROVIDERS = {
    RainViewerProvider.name: RainViewerProvider,
    BomProvider.name: BomProvider,
}


def get_provider(name: str, frame_count: int | None = None, **kwargs) -> RadarProvider:
    key = (name or "").strip().lower()
    provider_cls = PROVIDERS.get(key)
    if provider_cls is None:
        raise ValueError(f"Unknown radar provider: {name!r}")
    if provider_cls is BomProvider:
        return BomProvider(frame_count=frame_count, **kwargs)
    return provider_cls(**kwargs)
