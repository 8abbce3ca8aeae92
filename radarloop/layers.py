"""
Overlay layers for radar frames.

Each frame becomes one overlay layer on the map surface. How a layer fills a
viewer tile depends on its tile source: an aligned provider maps 1:1 onto
the viewer grid, a misaligned one is composited from every provider tile
that overlaps the viewer tile.
"""

from dataclasses import dataclass, field
from typing import Callable, Mapping

from radarloop.frames import FrameDescriptor, FrameWindow
from radarloop.grid import TILE_SIZE, TileMatrixEntry, ViewerTile, overlapping_tiles_for_zoom
from radarloop.timers import TimerHandle, TimerQueue


@dataclass(frozen=True)
class TileImage:
    url: str
    left: int
    top: int
    size: int = TILE_SIZE


@dataclass(frozen=True)
class XyzTileSource:
    url_template: str
    max_native_zoom: int = 7

    def base_images(self, tile: ViewerTile) -> list[TileImage]:
        url = (
            self.url_template.replace("{z}", str(tile.zoom))
            .replace("{x}", str(tile.col))
            .replace("{y}", str(tile.row))
        )
        return [TileImage(url, 0, 0)]


@dataclass(frozen=True)
class MatrixTileSource:
    time: str
    matrices: Mapping[int, TileMatrixEntry]
    url_for: Callable[[int, int, int, str], str]
    max_native_zoom: int = 8

    def url_template(self) -> str:
        return self.url_for("{z}", "{row}", "{col}", self.time)

    def base_images(self, tile: ViewerTile) -> list[TileImage]:
        return [
            TileImage(
                self.url_for(tile.zoom, p.provider_row, p.provider_col, self.time),
                p.offset_x,
                p.offset_y,
                p.size,
            )
            for p in overlapping_tiles_for_zoom(tile, self.matrices)
        ]


class CompositeTile:
    """
    One viewer tile built from zero or more provider images.

    Readiness is reported once, after every image has either loaded or
    failed. A failed image only leaves a blank patch.
    """

    def __init__(self, tile: ViewerTile, images: list[TileImage], on_ready: Callable[["CompositeTile"], None] | None = None):
        self.tile = tile
        self.images = images
        self.on_ready = on_ready
        self.loaded = 0
        self.failed = 0
        self.ready = False

    @property
    def pending(self) -> int:
        return len(self.images) - self.loaded - self.failed

    def image_loaded(self) -> None:
        if self.pending > 0:
            self.loaded += 1
        self._settle()

    def image_failed(self) -> None:
        if self.pending > 0:
            self.failed += 1
        self._settle()

    def _settle(self) -> None:
        if self.ready or self.pending > 0:
            return
        self.ready = True
        if self.on_ready is not None:
            self.on_ready(self)


def compose_tile(tile: ViewerTile, source, tile_size: int = TILE_SIZE) -> CompositeTile:
    """
    Images that make up `tile` for `source`.

    Past the source's native zoom the ancestor tile at the native zoom is
    composed and scaled up, and only the part covering `tile` is kept.
    """
    dz = max(0, tile.zoom - source.max_native_zoom)
    base = ViewerTile(tile.zoom - dz, tile.col >> dz, tile.row >> dz)
    factor = 2 ** dz
    shift_x = (tile.col - (base.col << dz)) * tile_size
    shift_y = (tile.row - (base.row << dz)) * tile_size

    images = []
    for image in source.base_images(base):
        scaled = TileImage(
            image.url,
            image.left * factor - shift_x,
            image.top * factor - shift_y,
            image.size * factor,
        )
        if scaled.left >= tile_size or scaled.top >= tile_size:
            continue
        if scaled.left + scaled.size <= 0 or scaled.top + scaled.size <= 0:
            continue
        images.append(scaled)
    return CompositeTile(tile, images)


class MapSurface:
    """Overlay primitives the map library has to provide."""

    def add_overlay_layer(self, layer_id: str, source):
        raise NotImplementedError

    def set_opacity(self, handle, value: float) -> None:
        raise NotImplementedError

    def remove_overlay_layer(self, handle) -> None:
        raise NotImplementedError


@dataclass
class TileLayerHandle:
    frame_id: str
    source: object
    layers: list = field(default_factory=list)


class TileLayerAdapter:
    """Keeps one overlay layer per frame in the window, and nothing else."""

    def __init__(self, surface: MapSurface, build_tile_source: Callable[[FrameDescriptor], object], timers: TimerQueue | None = None):
        self.surface = surface
        self.build_tile_source = build_tile_source
        self.timers = timers
        self.handles: dict[str, TileLayerHandle] = {}
        self.settle_timers: dict[str, list[TimerHandle]] = {}

    def sync(self, window: FrameWindow) -> None:
        wanted = set(window.ids())
        for frame_id in [fid for fid in self.handles if fid not in wanted]:
            self._release(frame_id)
        for frame in window:
            if frame.id in self.handles:
                continue
            source = self.build_tile_source(frame)
            layer = self.surface.add_overlay_layer(frame.id, source)
            self.surface.set_opacity(layer, 0.0)
            self.handles[frame.id] = TileLayerHandle(frame.id, source, [layer])

    def apply_visibility(self, window: FrameWindow, opacity: float) -> None:
        visible = window.visible_frame()
        for frame in window:
            handle = self.handles.get(frame.id)
            if handle is None:
                continue
            target = opacity if visible is not None and frame.id == visible.id else 0.0
            for layer in handle.layers:
                self.surface.set_opacity(layer, target)

    def create_tile(self, frame_id: str, tile: ViewerTile, done: Callable[[CompositeTile], None]) -> CompositeTile | None:
        """Tile factory hook for surfaces that fetch tile images themselves."""
        handle = self.handles.get(frame_id)
        if handle is None:
            return None
        composite = compose_tile(tile, handle.source)
        composite.on_ready = done
        if not composite.images:
            if self.timers is not None:
                pending = self.settle_timers.setdefault(frame_id, [])
                pending[:] = [t for t in pending if t.active]
                pending.append(self.timers.set_timeout(0, composite._settle))
            else:
                composite._settle()
        return composite

    def _release(self, frame_id: str) -> None:
        handle = self.handles.pop(frame_id)
        for timer in self.settle_timers.pop(frame_id, []):
            self.timers.cancel(timer)
        for layer in handle.layers:
            self.surface.remove_overlay_layer(layer)

    def teardown(self) -> None:
        for frame_id in list(self.handles):
            self._release(frame_id)
