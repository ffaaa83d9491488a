import tempfile
import unittest
from datetime import date, time
from pathlib import Path

from booking_support import MONDAY, make_record

from room_booking import TimeSlot, YamlReservationStore, check_room_conflict, check_user_conflict, find_room_conflicts


class TestConflictChecks(unittest.TestCase):
    def setUp(self) -> None:
        temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(temp_dir.cleanup)
        self.store = YamlReservationStore(Path(temp_dir.name) / "data")
        with self.store.transaction() as session:
            self.existing = session.insert(make_record())

    def test_record_exposes_its_slot(self) -> None:
        self.assertEqual(self.existing.slot, TimeSlot(time(9, 0), time(10, 0)))

    def test_room_overlap(self) -> None:
        with self.store.transaction() as session:
            self.assertTrue(check_room_conflict(session, "2", MONDAY, time(9, 30), time(10, 30)))
            self.assertFalse(check_room_conflict(session, "2", MONDAY, time(10, 0), time(11, 0)))
            self.assertFalse(check_room_conflict(session, "3", MONDAY, time(9, 30), time(10, 30)))
            self.assertFalse(check_room_conflict(session, "2", date(2025, 11, 4), time(9, 0), time(10, 0)))

    def test_user_overlap_spans_rooms(self) -> None:
        with self.store.transaction() as session:
            self.assertTrue(check_user_conflict(session, "RD102312", MONDAY, time(8, 30), time(9, 30)))
            self.assertFalse(check_user_conflict(session, "RD102312", MONDAY, time(8, 0), time(9, 0)))
            self.assertFalse(check_user_conflict(session, "RD000001", MONDAY, time(9, 0), time(10, 0)))

    def test_excluded_reservation_is_ignored(self) -> None:
        with self.store.transaction() as session:
            self.assertFalse(
                check_room_conflict(
                    session, "2", MONDAY, time(9, 0), time(11, 0), exclude_id=self.existing.reservation_id
                )
            )
            self.assertEqual(
                find_room_conflicts(session, "2", MONDAY, time(9, 0), time(11, 0)),
                [self.existing],
            )


if __name__ == "__main__":
    unittest.main()
