from datetime import datetime, timedelta, timezone
import unittest

from radarloop.frames import FrameDescriptor, FrameWindow, iso_utc
from radarloop.grid import ViewerTile
from radarloop.layers import (
    CompositeTile,
    TileImage,
    TileLayerAdapter,
    XyzTileSource,
    compose_tile,
)
from radarloop.timers import TimerQueue

XYZ = "https://tiles.test/{z}/{x}/{y}.png"


def make_frames(first: int, last: int) -> list[FrameDescriptor]:
    base = datetime(2024, 2, 15, 12, 0, tzinfo=timezone.utc)
    frames = []
    for i in range(first, last + 1):
        ts = base + timedelta(minutes=10 * i)
        frames.append(FrameDescriptor(iso_utc(ts), ts, f"/v2/radar/{i}"))
    return frames


class EmptySource:
    max_native_zoom = 8

    def base_images(self, tile):
        return []


class FakeSurface:
    def __init__(self):
        self.layers = {}
        self.removed = []
        self._next = 0

    def add_overlay_layer(self, layer_id, source):
        self._next += 1
        self.layers[self._next] = {"id": layer_id, "opacity": None}
        return self._next

    def set_opacity(self, handle, value):
        self.layers[handle]["opacity"] = value

    def remove_overlay_layer(self, handle):
        self.removed.append(self.layers.pop(handle)["id"])

    def opacities(self):
        return {layer["id"]: layer["opacity"] for layer in self.layers.values()}


class ComposeTileTest(unittest.TestCase):
    def test_native_zoom_is_one_to_one(self):
        composite = compose_tile(ViewerTile(6, 10, 20), XyzTileSource(XYZ, max_native_zoom=7))
        self.assertEqual(composite.images, [TileImage("https://tiles.test/6/10/20.png", 0, 0, 256)])

    def test_overzoom_scales_ancestor(self):
        composite = compose_tile(ViewerTile(9, 5, 6), XyzTileSource(XYZ, max_native_zoom=7))
        self.assertEqual(composite.images, [TileImage("https://tiles.test/7/1/1.png", -256, -512, 1024)])


class CompositeTileTest(unittest.TestCase):
    def test_ready_once_after_all_images_settle(self):
        ready = []
        images = [TileImage("a", 0, 0), TileImage("b", 128, 0)]
        composite = CompositeTile(ViewerTile(5, 0, 0), images, on_ready=ready.append)

        composite.image_failed()
        self.assertEqual(ready, [])
        composite.image_loaded()
        self.assertEqual(ready, [composite])
        composite.image_loaded()
        self.assertEqual(len(ready), 1)
        self.assertEqual((composite.loaded, composite.failed), (1, 1))


class TileLayerAdapterTest(unittest.TestCase):
    def setUp(self):
        self.surface = FakeSurface()
        self.timers = TimerQueue(clock=lambda: 0)
        self.adapter = TileLayerAdapter(
            self.surface,
            lambda frame: XyzTileSource(XYZ),
            timers=self.timers,
        )
        self.window = FrameWindow(3)

    def test_one_layer_per_frame(self):
        self.window.replace_all(make_frames(0, 2))
        self.adapter.sync(self.window)
        self.assertEqual(sorted(self.adapter.handles), sorted(self.window.ids()))
        self.assertEqual(set(self.surface.opacities().values()), {0.0})

        self.window.merge_append(make_frames(0, 4))
        self.adapter.sync(self.window)
        self.assertEqual(sorted(self.adapter.handles), sorted(self.window.ids()))
        self.assertEqual(len(self.surface.layers), 3)
        self.assertEqual(self.surface.removed, [f.id for f in make_frames(0, 1)])

    def test_only_visible_frame_is_opaque(self):
        self.window.replace_all(make_frames(0, 2))
        self.adapter.sync(self.window)
        self.window.set_visible_index(1)
        self.adapter.apply_visibility(self.window, 0.7)
        opacities = self.surface.opacities()
        self.assertEqual(opacities[self.window.visible_frame().id], 0.7)
        self.assertEqual(sorted(opacities.values()), [0.0, 0.0, 0.7])

    def test_empty_tile_settles_asynchronously(self):
        self.window.replace_all(make_frames(0, 0))
        self.adapter.build_tile_source = lambda frame: EmptySource()
        self.adapter.sync(self.window)

        ready = []
        composite = self.adapter.create_tile(self.window.ids()[0], ViewerTile(9, 0, 0), ready.append)
        self.assertEqual(composite.images, [])
        self.assertEqual(ready, [])
        self.timers.pump()
        self.assertEqual(ready, [composite])

    def test_teardown_cancels_pending_tile_callbacks(self):
        self.window.replace_all(make_frames(0, 1))
        self.adapter.build_tile_source = lambda frame: EmptySource()
        self.adapter.sync(self.window)

        ready = []
        for frame_id in self.window.ids():
            self.adapter.create_tile(frame_id, ViewerTile(9, 0, 0), ready.append)
        self.assertEqual(self.timers.pending_count(), 2)

        self.adapter.teardown()
        self.assertEqual(self.timers.pending_count(), 0)
        self.timers.pump()
        self.assertEqual(ready, [])

    def test_evicted_frame_drops_its_tile_callbacks(self):
        self.window.replace_all(make_frames(0, 2))
        self.adapter.build_tile_source = lambda frame: EmptySource()
        self.adapter.sync(self.window)

        ready = []
        oldest, newest = self.window.ids()[0], self.window.ids()[-1]
        self.adapter.create_tile(oldest, ViewerTile(9, 0, 0), ready.append)
        kept = self.adapter.create_tile(newest, ViewerTile(9, 0, 0), ready.append)

        self.window.merge_append(make_frames(0, 3))
        self.adapter.sync(self.window)
        self.timers.pump()
        self.assertEqual(ready, [kept])

    def test_unknown_frame_has_no_tile(self):
        self.assertIsNone(self.adapter.create_tile("missing", ViewerTile(3, 0, 0), lambda c: None))

    def test_teardown_removes_all_layers(self):
        self.window.replace_all(make_frames(0, 2))
        self.adapter.sync(self.window)
        self.adapter.teardown()
        self.assertEqual(self.surface.layers, {})
        self.assertEqual(self.adapter.handles, {})


if __name__ == "__main__":
    unittest.main()
