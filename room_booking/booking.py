from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
import re
from typing import Iterable

_CLOCK_TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class TimeSlot:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("Slot start time must be earlier than end time.")


def has_time_overlap(new_start: time, new_end: time, exist_start: time, exist_end: time) -> bool:
    """Return True when two time-of-day intervals overlap by even one minute.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 09:00-10:00 and 10:00-11:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValueError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and exist_start < new_end


def can_reserve(new_start: time, new_end: time, existing_slots: Iterable[TimeSlot]) -> bool:
    """Return True if the requested interval does not overlap any existing slot."""
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")

    for slot in existing_slots:
        if has_time_overlap(new_start, new_end, slot.start, slot.end):
            return False
    return True


def parse_calendar_date(value: date | str) -> date:
    """Parse a ``YYYY-MM-DD`` calendar date; date and datetime values pass through."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()


def is_clock_time(text: str) -> bool:
    return bool(_CLOCK_TIME_RE.match(text))


def parse_clock_time(text: str) -> time:
    """Parse a strict 24-hour ``HH:MM`` string."""
    if not isinstance(text, str) or not is_clock_time(text):
        raise ValueError(f"Time must use the HH:MM 24-hour format: {text!r}")
    hour, minute = text.split(":")
    return time(int(hour), int(minute))


def format_clock_time(value: time) -> str:
    return value.strftime("%H:%M")


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError("minutes must fall within a single day")
    return time(minutes // 60, minutes % 60)
