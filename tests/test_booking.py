import unittest
from datetime import time

from room_booking import TimeSlot, can_reserve, has_time_overlap
from room_booking.booking import format_clock_time, parse_clock_time, time_from_minutes


class TestTimeOverlap(unittest.TestCase):
    def setUp(self) -> None:
        self.exist_start = time(9, 0)
        self.exist_end = time(10, 0)

    def test_non_overlapping_before_passes(self) -> None:
        self.assertFalse(has_time_overlap(time(8, 0), time(8, 59), self.exist_start, self.exist_end))

    def test_exactly_touching_boundary_passes(self) -> None:
        self.assertFalse(has_time_overlap(time(10, 0), time(11, 0), self.exist_start, self.exist_end))
        self.assertFalse(has_time_overlap(time(8, 0), time(9, 0), self.exist_start, self.exist_end))

    def test_partially_overlapping_fails(self) -> None:
        self.assertTrue(has_time_overlap(time(9, 30), time(10, 30), self.exist_start, self.exist_end))

    def test_fully_contained_fails(self) -> None:
        self.assertTrue(has_time_overlap(time(9, 15), time(9, 45), self.exist_start, self.exist_end))

    def test_enclosing_interval_fails(self) -> None:
        self.assertTrue(has_time_overlap(time(8, 0), time(11, 0), self.exist_start, self.exist_end))

    def test_rejects_empty_interval(self) -> None:
        with self.assertRaises(ValueError):
            has_time_overlap(time(10, 0), time(10, 0), self.exist_start, self.exist_end)


class TestCanReserve(unittest.TestCase):
    def setUp(self) -> None:
        self.existing = [
            TimeSlot(time(9, 0), time(10, 0)),
            TimeSlot(time(10, 30), time(11, 30)),
        ]

    def test_can_reserve_returns_false_when_any_overlap(self) -> None:
        self.assertFalse(can_reserve(time(11, 0), time(12, 0), self.existing))

    def test_can_reserve_returns_true_in_gap(self) -> None:
        self.assertTrue(can_reserve(time(10, 0), time(10, 30), self.existing))

    def test_time_slot_requires_positive_length(self) -> None:
        with self.assertRaises(ValueError):
            TimeSlot(time(12, 0), time(11, 0))


class TestClockTime(unittest.TestCase):
    def test_parses_strict_24_hour_format(self) -> None:
        self.assertEqual(parse_clock_time("07:05"), time(7, 5))
        self.assertEqual(parse_clock_time("23:59"), time(23, 59))

    def test_rejects_loose_formats(self) -> None:
        for text in ("7:05", "24:00", "12:60", "12:5", "12:00 PM", "1200"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_clock_time(text)

    def test_formats_and_converts_minutes(self) -> None:
        self.assertEqual(format_clock_time(time(8, 0)), "08:00")
        self.assertEqual(time_from_minutes(12 * 60 + 30), time(12, 30))
        with self.assertRaises(ValueError):
            time_from_minutes(24 * 60)


if __name__ == "__main__":
    unittest.main()
