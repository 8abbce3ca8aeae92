from contextlib import closing
from pathlib import Path
import tempfile
import unittest

from radarloop.config_store import connect, get_settings, set_settings


class ConfigStoreTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmp.name) / "nested" / "radar.db"

    def tearDown(self):
        self.tmp.cleanup()

    def test_round_trip_settings(self):
        with closing(connect(self.db_path)) as conn:
            self.assertEqual(get_settings(conn, "radar."), {})
            set_settings(
                conn,
                {
                    "radar.provider": "bom",
                    "radar.show_zoom": True,
                    "radar.show_recenter": False,
                    "radar.center_latitude": -33.8688,
                    "radar.frame_count": 12,
                    "other.key": "x",
                },
            )

        with closing(connect(self.db_path)) as conn:
            settings = get_settings(conn, "radar.")
            self.assertEqual(settings["provider"], "bom")
            self.assertEqual(settings["show_zoom"], "1")
            self.assertEqual(settings["show_recenter"], "0")
            self.assertEqual(settings["center_latitude"], "-33.8688")
            self.assertEqual(settings["frame_count"], "12")
            self.assertNotIn("other.key", settings)
            self.assertNotIn("key", settings)

    def test_upsert_overwrites(self):
        with closing(connect(self.db_path)) as conn:
            set_settings(conn, {"radar.zoom_level": 5})
            set_settings(conn, {"radar.zoom_level": 9})
            self.assertEqual(get_settings(conn, "radar."), {"zoom_level": "9"})

    def test_prefix_is_literal(self):
        with closing(connect(self.db_path)) as conn:
            set_settings(conn, {"radar_x.zoom_level": 4, "radar.zoom_level": 6})
            self.assertEqual(get_settings(conn, "radar."), {"zoom_level": "6"})


if __name__ == "__main__":
    unittest.main()
