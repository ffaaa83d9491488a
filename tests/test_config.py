import os
import tempfile
import unittest
from datetime import date, timedelta
from pathlib import Path
from unittest import mock

from room_booking import BookingRules, ConfigError, OperatingWindow, load_config
from room_booking.config import CONFIG_ENV_VAR


class TestBookingRules(unittest.TestCase):
    def test_defaults_match_library_hours(self) -> None:
        rules = BookingRules()
        self.assertEqual(rules.rooms, ("1", "2", "3", "4"))
        self.assertEqual(rules.window_for(date(2025, 11, 3)), OperatingWindow(8, 18))
        self.assertEqual(rules.window_for(date(2025, 11, 8)), OperatingWindow(9, 15))
        self.assertIsNone(rules.window_for(date(2025, 11, 9)))
        self.assertEqual(rules.max_duration, timedelta(hours=2))
        self.assertEqual(rules.extension_increment, timedelta(hours=2))

    def test_closed_weekday_is_configurable(self) -> None:
        rules = BookingRules(closed_weekday=0)
        self.assertIsNone(rules.window_for(date(2025, 11, 3)))
        self.assertEqual(rules.window_for(date(2025, 11, 9)), OperatingWindow(9, 15))

    def test_rejects_invalid_window(self) -> None:
        with self.assertRaises(ConfigError):
            OperatingWindow(18, 8)
        with self.assertRaises(ConfigError):
            OperatingWindow(8, 24)

    def test_rejects_empty_rooms(self) -> None:
        with self.assertRaises(ConfigError):
            BookingRules(rooms=())


class TestLoadConfig(unittest.TestCase):
    def test_defaults_without_file(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config()
        self.assertEqual(config.storage.backend, "yaml")
        self.assertEqual(config.rules, BookingRules())

    def test_reads_yaml_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "booking.yaml"
            path.write_text(
                "\n".join(
                    [
                        "rules:",
                        "  rooms: [A, B, 3]",
                        "  closed_weekday: 0",
                        "  weekday_hours: {open_hour: 7, close_hour: 22}",
                        "  max_duration_hours: 3",
                        "  min_advance_notice_days: 2",
                        "storage:",
                        "  backend: sql",
                        "  url: sqlite:///bookings.db",
                        "  timeout_seconds: 2.5",
                    ]
                ),
                encoding="utf-8",
            )
            config = load_config(path)

        self.assertEqual(config.rules.rooms, ("A", "B", "3"))
        self.assertEqual(config.rules.closed_weekday, 0)
        self.assertEqual(config.rules.weekday_hours, OperatingWindow(7, 22))
        self.assertEqual(config.rules.weekend_hours, OperatingWindow(9, 15))
        self.assertEqual(config.rules.max_duration, timedelta(hours=3))
        self.assertEqual(config.rules.min_advance_notice, timedelta(days=2))
        self.assertEqual(config.storage.backend, "sql")
        self.assertEqual(config.storage.url, "sqlite:///bookings.db")
        self.assertEqual(config.storage.timeout_seconds, 2.5)

    def test_reads_path_from_environment(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "booking.yaml"
            path.write_text("rules:\n  min_persons: 3\n", encoding="utf-8")
            with mock.patch.dict(os.environ, {CONFIG_ENV_VAR: str(path)}):
                config = load_config()
        self.assertEqual(config.rules.min_persons, 3)

    def test_malformed_values_raise_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "booking.yaml"
            path.write_text("rules:\n  min_persons: many\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(path)

            path.write_text("storage:\n  backend: mongo\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(path)

            path.write_text("- just\n- a list\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_config(path)


if __name__ == "__main__":
    unittest.main()
