import unittest
from datetime import date, datetime, time, timedelta

from booking_support import MONDAY_MORNING, candidate_data

from room_booking import BookingRules, ReservationCandidate, ValidationError, ValidationReason
from room_booking.rules import check_candidate, validate_candidate


def reason_for(rules: BookingRules = BookingRules(), now: datetime = MONDAY_MORNING, **overrides):
    error = check_candidate(ReservationCandidate.from_dict(candidate_data(**overrides)), rules, now)
    return error.reason if error is not None else None


class TestRuleValidator(unittest.TestCase):
    def test_valid_candidate_passes(self) -> None:
        self.assertIsNone(reason_for())

    def test_validate_candidate_returns_parsed_slot(self) -> None:
        slot = validate_candidate(ReservationCandidate.from_dict(candidate_data()), BookingRules(), MONDAY_MORNING)
        self.assertEqual(slot.date, date(2025, 11, 3))
        self.assertEqual(slot.time_start, time(9, 0))
        self.assertEqual(slot.time_end, time(10, 0))

    def test_validate_candidate_raises_first_violation(self) -> None:
        with self.assertRaises(ValidationError) as raised:
            validate_candidate(
                ReservationCandidate.from_dict(candidate_data(person_count=1)),
                BookingRules(),
                MONDAY_MORNING,
            )
        self.assertEqual(raised.exception.reason, ValidationReason.BELOW_MINIMUM_PERSONS)
        self.assertEqual(raised.exception.code, "BelowMinimumPersons")
        self.assertIn("Minimum 2 persons", raised.exception.message)

    def test_missing_fields(self) -> None:
        for field_name in ("date", "room", "requester_name", "requester_id", "time_start", "time_end", "person_count"):
            with self.subTest(field=field_name):
                self.assertEqual(reason_for(**{field_name: None}), ValidationReason.MISSING_FIELD)

    def test_blank_name_counts_as_missing(self) -> None:
        self.assertEqual(reason_for(requester_name="   "), ValidationReason.MISSING_FIELD)

    def test_unknown_room(self) -> None:
        self.assertEqual(reason_for(room="9"), ValidationReason.UNKNOWN_ROOM)

    def test_single_digit_month_and_day_are_accepted(self) -> None:
        self.assertIsNone(reason_for(date="2025-11-3"))

    def test_invalid_calendar_date(self) -> None:
        self.assertEqual(reason_for(date="2025-02-30"), ValidationReason.INVALID_DATE)
        self.assertEqual(reason_for(date="next monday"), ValidationReason.INVALID_DATE)

    def test_closed_day(self) -> None:
        self.assertEqual(reason_for(date="2025-11-09"), ValidationReason.CLOSED_DAY)

    def test_closed_day_wins_over_later_rules(self) -> None:
        self.assertEqual(reason_for(date="2025-11-09", person_count=1), ValidationReason.CLOSED_DAY)

    def test_public_holiday_is_closed_when_configured(self) -> None:
        rules = BookingRules(holiday_country="KR")
        # 2025-10-03 is National Foundation Day, a Friday.
        self.assertEqual(
            reason_for(rules, now=datetime(2025, 9, 30, 7, 0), date="2025-10-03"),
            ValidationReason.CLOSED_DAY,
        )
        self.assertIsNone(reason_for(rules, now=datetime(2025, 9, 30, 7, 0), date="2025-09-30"))

    def test_advance_notice_never_rejects_at_one_day(self) -> None:
        self.assertIsNone(reason_for(date="2025-11-04"))

    def test_advance_notice_applies_for_longer_notice(self) -> None:
        rules = BookingRules(min_advance_notice=timedelta(days=2))
        self.assertEqual(reason_for(rules, date="2025-11-04"), ValidationReason.INSUFFICIENT_ADVANCE_NOTICE)
        self.assertIsNone(reason_for(rules, date="2025-11-03"))
        self.assertIsNone(reason_for(rules, date="2025-11-05"))

    def test_advance_notice_can_be_suppressed(self) -> None:
        rules = BookingRules(min_advance_notice=timedelta(days=2))
        candidate = ReservationCandidate.from_dict(candidate_data(date="2025-11-04"))
        self.assertIsNone(check_candidate(candidate, rules, MONDAY_MORNING, check_advance_notice=False))

    def test_past_date(self) -> None:
        self.assertEqual(reason_for(date="2025-10-31"), ValidationReason.PAST_DATE)

    def test_below_minimum_persons(self) -> None:
        self.assertEqual(reason_for(person_count=1), ValidationReason.BELOW_MINIMUM_PERSONS)
        self.assertEqual(reason_for(person_count=0), ValidationReason.BELOW_MINIMUM_PERSONS)

    def test_below_minimum_persons_regardless_of_later_fields(self) -> None:
        self.assertEqual(
            reason_for(person_count=1, cleanliness_acknowledged=False, time_start="9am"),
            ValidationReason.BELOW_MINIMUM_PERSONS,
        )

    def test_acknowledgement_required(self) -> None:
        self.assertEqual(reason_for(cleanliness_acknowledged=False), ValidationReason.ACKNOWLEDGEMENT_REQUIRED)

    def test_invalid_time_format(self) -> None:
        self.assertEqual(reason_for(time_start="9:00"), ValidationReason.INVALID_TIME_FORMAT)
        self.assertEqual(reason_for(time_end="10:00:00"), ValidationReason.INVALID_TIME_FORMAT)

    def test_outside_weekday_hours(self) -> None:
        self.assertEqual(
            reason_for(time_start="07:30", time_end="08:30"),
            ValidationReason.OUTSIDE_OPERATING_HOURS,
        )
        self.assertEqual(
            reason_for(time_start="17:30", time_end="18:30"),
            ValidationReason.OUTSIDE_OPERATING_HOURS,
        )

    def test_slot_ending_at_closing_time_is_allowed(self) -> None:
        self.assertIsNone(reason_for(time_start="16:00", time_end="18:00"))

    def test_saturday_uses_weekend_hours(self) -> None:
        self.assertIsNone(reason_for(date="2025-11-08", time_start="13:00", time_end="15:00"))
        self.assertEqual(
            reason_for(date="2025-11-08", time_start="08:00", time_end="09:00"),
            ValidationReason.OUTSIDE_OPERATING_HOURS,
        )

    def test_end_before_start(self) -> None:
        self.assertEqual(reason_for(time_start="10:00", time_end="09:00"), ValidationReason.END_BEFORE_START)
        self.assertEqual(reason_for(time_start="10:00", time_end="10:00"), ValidationReason.END_BEFORE_START)

    def test_duration_exceeded(self) -> None:
        self.assertEqual(reason_for(time_start="09:00", time_end="11:01"), ValidationReason.DURATION_EXCEEDED)
        self.assertIsNone(reason_for(time_start="09:00", time_end="11:00"))

    def test_configured_minimum_persons(self) -> None:
        rules = BookingRules(min_persons=4)
        self.assertEqual(reason_for(rules, person_count=3), ValidationReason.BELOW_MINIMUM_PERSONS)


if __name__ == "__main__":
    unittest.main()
