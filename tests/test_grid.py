import unittest

from radarloop.grid import (
    BOM_TILE_MATRICES,
    TileMatrixEntry,
    ViewerTile,
    overlapping_tiles,
    overlapping_tiles_for_zoom,
    tile_at,
    tile_span,
    viewer_tile_bounds,
)


class OverlappingTilesTest(unittest.TestCase):
    def test_zoom_without_matrix_is_empty(self):
        self.assertEqual(overlapping_tiles_for_zoom(ViewerTile(9, 0, 0), BOM_TILE_MATRICES), [])
        self.assertEqual(overlapping_tiles(ViewerTile(4, 1, 1), None), [])
        self.assertEqual(overlapping_tiles(ViewerTile(4, 1, 1), TileMatrixEntry(0, 0, 0, 3)), [])

    def test_single_tile_matrix_yields_at_most_one_tile(self):
        tile = ViewerTile(4, 5, 6)
        span = tile_span(tile.zoom)
        min_x, _, _, max_y = viewer_tile_bounds(tile)
        matrix = TileMatrixEntry(min_x - span / 4, max_y + span / 4, 1, 1)

        placements = overlapping_tiles(tile, matrix)
        self.assertEqual(len(placements), 1)
        placement = placements[0]
        self.assertEqual((placement.provider_col, placement.provider_row), (0, 0))
        self.assertEqual((placement.offset_x, placement.offset_y), (-64, -64))
        self.assertEqual(placement.size, 256)

        far_away = TileMatrixEntry(min_x + 10 * span, max_y, 1, 1)
        self.assertEqual(overlapping_tiles(tile, far_away), [])

    def test_half_size_provider_tiles_split_viewer_tile(self):
        tile = ViewerTile(6, 10, 20)
        span = tile_span(tile.zoom)
        min_x, _, _, max_y = viewer_tile_bounds(tile)
        # The third column starts exactly on the viewer tile's right edge.
        matrix = TileMatrixEntry(min_x, max_y, 3, 1, span=span / 2)

        placements = overlapping_tiles(tile, matrix)
        self.assertEqual([(p.provider_col, p.provider_row) for p in placements], [(0, 0), (1, 0)])
        self.assertEqual([(p.offset_x, p.offset_y) for p in placements], [(0, 0), (128, 0)])
        self.assertTrue(all(p.size == 128 for p in placements))

    def test_bom_matrix_over_sydney(self):
        placements = overlapping_tiles_for_zoom(ViewerTile(5, 29, 19), BOM_TILE_MATRICES)
        self.assertEqual(
            [(p.provider_col, p.provider_row) for p in placements],
            [(3, 3), (4, 3), (3, 4), (4, 4)],
        )
        self.assertEqual((placements[0].offset_x, placements[0].offset_y), (-192, -73))
        for placement in placements:
            self.assertEqual(placement.size, 256)
            self.assertTrue(-256 < placement.offset_x < 256)
            self.assertTrue(-256 < placement.offset_y < 256)

    def test_placements_stay_inside_matrix(self):
        matrix = BOM_TILE_MATRICES[3]
        for col in range(8):
            for row in range(8):
                for p in overlapping_tiles(ViewerTile(3, col, row), matrix):
                    self.assertTrue(0 <= p.provider_col < matrix.cols)
                    self.assertTrue(0 <= p.provider_row < matrix.rows)


class TileAtTest(unittest.TestCase):
    def test_sydney(self):
        self.assertEqual(tile_at(-33.87, 151.21, 5), ViewerTile(5, 29, 19))

    def test_edges_stay_on_the_grid(self):
        self.assertEqual(tile_at(0.0, 180.0, 1), ViewerTile(1, 1, 1))
        self.assertEqual(tile_at(89.0, -180.0, 3), ViewerTile(3, 0, 0))
        self.assertEqual(tile_at(-89.0, 179.9, 3), ViewerTile(3, 7, 7))


if __name__ == "__main__":
    unittest.main()
