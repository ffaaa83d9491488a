"""Static business rules for a proposed reservation.

Checks run in a fixed order and the first violation wins, since the caller
shows exactly one message to the person filling in the form.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time

from .booking import is_clock_time, minutes_of_day, parse_calendar_date, parse_clock_time
from .config import BookingRules
from .errors import ValidationError, ValidationReason
from .models import ReservationCandidate

_REQUIRED_FIELDS = (
    ("date", "Date"),
    ("time_start", "Start time"),
    ("time_end", "End time"),
    ("person_count", "Number of persons"),
    ("requester_name", "Name"),
    ("requester_id", "ID"),
    ("room", "Room"),
)


@dataclass(frozen=True)
class ValidatedSlot:
    date: date
    time_start: time
    time_end: time


def check_candidate(
    candidate: ReservationCandidate,
    rules: BookingRules,
    now: datetime,
    check_advance_notice: bool = True,
) -> ValidationError | None:
    """Return the first violated rule as a ValidationError, or None when valid."""
    for field_name, label in _REQUIRED_FIELDS:
        value = getattr(candidate, field_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            return ValidationError(ValidationReason.MISSING_FIELD, f"{label} is required.")

    if candidate.room not in rules.rooms:
        return ValidationError(ValidationReason.UNKNOWN_ROOM, f"Unknown room: {candidate.room}.")

    day = _parse_date(candidate.date)
    if day is None:
        return ValidationError(ValidationReason.INVALID_DATE, "Date must be a valid calendar date (YYYY-MM-DD).")

    if rules.is_closed(day):
        return ValidationError(ValidationReason.CLOSED_DAY, "The library is closed on the selected date.")

    today = now.date()
    # Never fires at date granularity with a one-day minimum; kept for sub-day notice settings.
    if check_advance_notice and day > today and (day - today) < rules.min_advance_notice:
        return ValidationError(
            ValidationReason.INSUFFICIENT_ADVANCE_NOTICE,
            "Future reservations require advance booking.",
        )

    if day < today:
        return ValidationError(ValidationReason.PAST_DATE, "Reservations must be for today or a later date.")

    if candidate.person_count < rules.min_persons:
        return ValidationError(
            ValidationReason.BELOW_MINIMUM_PERSONS,
            f"Minimum {rules.min_persons} persons required per reservation rule.",
        )

    if not candidate.cleanliness_acknowledged:
        return ValidationError(
            ValidationReason.ACKNOWLEDGEMENT_REQUIRED,
            "Please acknowledge keeping the room clean and tidy per reservation rule.",
        )

    if not (_is_clock_text(candidate.time_start) and _is_clock_text(candidate.time_end)):
        return ValidationError(ValidationReason.INVALID_TIME_FORMAT, "Times must use the HH:MM 24-hour format.")

    start = parse_clock_time(candidate.time_start)
    end = parse_clock_time(candidate.time_end)

    window = rules.window_for(day)
    if window is None or not (window.contains(start) and window.contains(end)):
        return ValidationError(
            ValidationReason.OUTSIDE_OPERATING_HOURS,
            "Reservations must fall within library hours for the selected day.",
        )

    if end <= start:
        return ValidationError(ValidationReason.END_BEFORE_START, "End time must be after start time.")

    max_minutes = rules.max_duration.total_seconds() / 60
    if minutes_of_day(end) - minutes_of_day(start) > max_minutes:
        return ValidationError(
            ValidationReason.DURATION_EXCEEDED,
            f"Maximum {max_minutes / 60:g} hours per slot allowed per reservation rule.",
        )

    return None


def validate_candidate(
    candidate: ReservationCandidate,
    rules: BookingRules,
    now: datetime,
    check_advance_notice: bool = True,
) -> ValidatedSlot:
    """Raise ValidationError for the first violated rule; return the parsed slot otherwise."""
    error = check_candidate(candidate, rules, now, check_advance_notice=check_advance_notice)
    if error is not None:
        raise error
    return ValidatedSlot(
        date=_parse_date(candidate.date),
        time_start=parse_clock_time(candidate.time_start),
        time_end=parse_clock_time(candidate.time_end),
    )


def _parse_date(value: date | str | None) -> date | None:
    if value is None:
        return None
    try:
        return parse_calendar_date(value)
    except ValueError:
        return None


def _is_clock_text(value: str | None) -> bool:
    return isinstance(value, str) and is_clock_time(value)
