"""
Tile grid math shared by the viewer and the radar providers.

The viewer uses the standard web-mercator pyramid (EPSG:3857, 2^z tiles per
axis, origin at the top-left of the world). Some providers publish a tile
matrix with its own origin and extent per zoom level; `overlapping_tiles`
maps a viewer tile onto such a matrix and reports where each provider tile
lands inside it, in pixels.
"""

import math
from dataclasses import dataclass
from typing import Mapping

EARTH_HALF_CIRCUMFERENCE = 20037508.342789244
TILE_SIZE = 256
# Projected units shaved off the upper bound so a provider tile whose edge
# lands exactly on the viewer tile edge is not pulled in.
EDGE_EPSILON = 0.01


@dataclass(frozen=True)
class TileMatrixEntry:
    origin_x: float
    origin_y: float
    cols: int
    rows: int
    # Projected width of one provider tile; None means the viewer's span at the same zoom.
    span: float | None = None


@dataclass(frozen=True)
class ViewerTile:
    zoom: int
    col: int
    row: int


@dataclass(frozen=True)
class TilePlacement:
    provider_col: int
    provider_row: int
    offset_x: int
    offset_y: int
    size: int = TILE_SIZE


# GoogleMapsCompatible_BoM, as published in the BoM WMTS capabilities document.
BOM_TILE_MATRICES: dict[int, TileMatrixEntry] = {
    0: TileMatrixEntry(11584952, 34168990.685578, 1, 1),
    1: TileMatrixEntry(11584952, 14131482.342789, 1, 1),
    2: TileMatrixEntry(11584952, 4112728.171395, 1, 1),
    3: TileMatrixEntry(11584952, 4112728.171395, 2, 2),
    4: TileMatrixEntry(11584952, 1608039.628546, 3, 3),
    5: TileMatrixEntry(11584952, 355695.357122, 6, 5),
    6: TileMatrixEntry(11584952, -270476.778591, 11, 9),
    7: TileMatrixEntry(11584952, -583562.846447, 22, 17),
    8: TileMatrixEntry(11584952, -740105.880375, 43, 33),
}


def tile_span(zoom: int) -> float:
    return (2 * EARTH_HALF_CIRCUMFERENCE) / (2 ** zoom)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def viewer_tile_bounds(tile: ViewerTile) -> tuple[float, float, float, float]:
    """Return (min_x, min_y, max_x, max_y) of a viewer tile in projected metres."""
    span = tile_span(tile.zoom)
    min_x = -EARTH_HALF_CIRCUMFERENCE + tile.col * span
    max_y = EARTH_HALF_CIRCUMFERENCE - tile.row * span
    return min_x, max_y - span, min_x + span, max_y


def overlapping_tiles(
    tile: ViewerTile,
    matrix: TileMatrixEntry | None,
    tile_size: int = TILE_SIZE,
    epsilon: float = EDGE_EPSILON,
) -> list[TilePlacement]:
    """
    Provider tiles that overlap `tile`, each with its pixel offset inside it.

    Provider tiles outside the matrix extent do not exist and are skipped.
    A missing matrix (zoom without coverage) yields an empty list.
    """
    if matrix is None or matrix.cols <= 0 or matrix.rows <= 0:
        return []

    span = tile_span(tile.zoom)
    provider_span = matrix.span or span
    min_x, min_y, max_x, max_y = viewer_tile_bounds(tile)

    first_col = math.floor((min_x - matrix.origin_x) / provider_span)
    last_col = math.floor((max_x - matrix.origin_x - epsilon) / provider_span)
    # Rows count downwards from the origin while northing counts upwards.
    first_row = math.floor((matrix.origin_y - max_y) / provider_span)
    last_row = math.floor((matrix.origin_y - min_y - epsilon) / provider_span)

    size = _round_half_up(provider_span / span * tile_size)
    placements = []
    for row in range(max(0, first_row), min(matrix.rows - 1, last_row) + 1):
        for col in range(max(0, first_col), min(matrix.cols - 1, last_col) + 1):
            provider_min_x = matrix.origin_x + col * provider_span
            provider_max_y = matrix.origin_y - row * provider_span
            placements.append(
                TilePlacement(
                    provider_col=col,
                    provider_row=row,
                    offset_x=_round_half_up((provider_min_x - min_x) / span * tile_size),
                    offset_y=_round_half_up((max_y - provider_max_y) / span * tile_size),
                    size=size,
                )
            )
    return placements


def overlapping_tiles_for_zoom(
    tile: ViewerTile,
    matrices: Mapping[int, TileMatrixEntry],
    tile_size: int = TILE_SIZE,
) -> list[TilePlacement]:
    return overlapping_tiles(tile, matrices.get(tile.zoom), tile_size=tile_size)


def lonlat_to_tile(lat: float, lon: float, zoom: int) -> tuple[float, float]:
    """Fractional viewer tile coordinates of a WGS84 point."""
    lat = max(min(lat, 85.05112878), -85.05112878)
    n = 2 ** zoom
    x = (lon + 180.0) / 360.0 * n
    lat_rad = math.radians(lat)
    y = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n
    return x, y


def tile_at(lat: float, lon: float, zoom: int) -> ViewerTile:
    """Viewer tile containing a WGS84 point."""
    x, y = lonlat_to_tile(lat, lon, zoom)
    last = 2 ** zoom - 1
    return ViewerTile(zoom, min(max(int(math.floor(x)), 0), last), min(max(int(math.floor(y)), 0), last))
