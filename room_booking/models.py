from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, datetime, time
from typing import Any

from .booking import TimeSlot, format_clock_time, parse_clock_time

DEFAULT_PURPOSE = "Study"

CANDIDATE_FIELDS = (
    "date",
    "room",
    "requester_name",
    "requester_id",
    "time_start",
    "time_end",
    "person_count",
    "purpose",
    "remark",
    "cleanliness_acknowledged",
)


@dataclass(frozen=True)
class ReservationCandidate:
    """Unvalidated reservation input, exactly as the caller supplied it."""

    date: date | str | None = None
    room: str | None = None
    requester_name: str | None = None
    requester_id: str | None = None
    time_start: str | None = None
    time_end: str | None = None
    person_count: int | None = None
    purpose: str = DEFAULT_PURPOSE
    remark: str = ""
    cleanliness_acknowledged: bool = False

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationCandidate":
        return ReservationCandidate(
            date=_optional_str(data.get("date")),
            room=_optional_str(data.get("room")),
            requester_name=_optional_str(data.get("requester_name")),
            requester_id=_optional_str(data.get("requester_id")),
            time_start=_optional_str(data.get("time_start")),
            time_end=_optional_str(data.get("time_end")),
            person_count=_optional_int(data.get("person_count")),
            purpose=str(data.get("purpose") or DEFAULT_PURPOSE),
            remark=str(data.get("remark") or ""),
            cleanliness_acknowledged=data.get("cleanliness_acknowledged") is True,
        )


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    sequence_number: int
    date: date
    room: str
    requester_name: str
    requester_id: str
    time_start: time
    time_end: time
    person_count: int
    purpose: str
    remark: str
    cleanliness_acknowledged: bool
    created_at: datetime
    updated_at: datetime

    @property
    def requester_label(self) -> str:
        return f"{self.requester_name}-{self.requester_id}"

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot(self.time_start, self.time_end)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.time_start)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.time_end)

    def sort_key(self) -> tuple[date, time, int]:
        return (self.date, self.time_start, self.sequence_number)

    def with_changes(self, **changes: Any) -> "ReservationRecord":
        return replace(self, **changes)

    def to_candidate(self) -> ReservationCandidate:
        return ReservationCandidate(
            date=self.date,
            room=self.room,
            requester_name=self.requester_name,
            requester_id=self.requester_id,
            time_start=format_clock_time(self.time_start),
            time_end=format_clock_time(self.time_end),
            person_count=self.person_count,
            purpose=self.purpose,
            remark=self.remark,
            cleanliness_acknowledged=self.cleanliness_acknowledged,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "reservation_id": self.reservation_id,
            "sequence_number": self.sequence_number,
            "date": self.date.isoformat(),
            "room": self.room,
            "requester_name": self.requester_name,
            "requester_id": self.requester_id,
            "requester_label": self.requester_label,
            "time_start": format_clock_time(self.time_start),
            "time_end": format_clock_time(self.time_end),
            "person_count": self.person_count,
            "purpose": self.purpose,
            "remark": self.remark,
            "cleanliness_acknowledged": self.cleanliness_acknowledged,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            sequence_number=int(data["sequence_number"]),
            date=date.fromisoformat(str(data["date"])),
            room=str(data["room"]),
            requester_name=str(data["requester_name"]),
            requester_id=str(data["requester_id"]),
            time_start=parse_clock_time(str(data["time_start"])),
            time_end=parse_clock_time(str(data["time_end"])),
            person_count=int(data["person_count"]),
            purpose=str(data.get("purpose") or DEFAULT_PURPOSE),
            remark=str(data.get("remark") or ""),
            cleanliness_acknowledged=bool(data.get("cleanliness_acknowledged", False)),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
        )


RECORD_FIELDS = tuple(item.name for item in fields(ReservationRecord))


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None
