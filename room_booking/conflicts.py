from __future__ import annotations

from datetime import date, time

from .booking import can_reserve, has_time_overlap
from .models import ReservationRecord
from .store import ReservationFilter, StoreSession


def find_room_conflicts(
    session: StoreSession,
    room: str,
    day: date,
    start: time,
    end: time,
    exclude_id: str | None = None,
) -> list[ReservationRecord]:
    """Reservations for ``room`` on ``day`` whose slot overlaps [start, end)."""
    existing = session.find(ReservationFilter(date=day, room=room, exclude_id=exclude_id))
    return _overlapping(existing, start, end)


def find_user_conflicts(
    session: StoreSession,
    requester_id: str,
    day: date,
    start: time,
    end: time,
    exclude_id: str | None = None,
) -> list[ReservationRecord]:
    """Reservations held by ``requester_id`` on ``day`` in any room that overlap [start, end)."""
    existing = session.find(ReservationFilter(date=day, requester_id=requester_id, exclude_id=exclude_id))
    return _overlapping(existing, start, end)


def check_room_conflict(
    session: StoreSession,
    room: str,
    day: date,
    start: time,
    end: time,
    exclude_id: str | None = None,
) -> bool:
    existing = session.find(ReservationFilter(date=day, room=room, exclude_id=exclude_id))
    return not can_reserve(start, end, (record.slot for record in existing))


def check_user_conflict(
    session: StoreSession,
    requester_id: str,
    day: date,
    start: time,
    end: time,
    exclude_id: str | None = None,
) -> bool:
    existing = session.find(ReservationFilter(date=day, requester_id=requester_id, exclude_id=exclude_id))
    return not can_reserve(start, end, (record.slot for record in existing))


def _overlapping(records: list[ReservationRecord], start: time, end: time) -> list[ReservationRecord]:
    return sorted(
        (record for record in records if has_time_overlap(start, end, record.time_start, record.time_end)),
        key=ReservationRecord.sort_key,
    )
