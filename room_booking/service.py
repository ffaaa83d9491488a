from __future__ import annotations

from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Callable, Iterator

from .booking import format_clock_time, has_time_overlap, minutes_of_day, parse_calendar_date, time_from_minutes
from .config import BookingRules
from .conflicts import find_room_conflicts, find_user_conflicts
from .errors import (
    ConflictError,
    ConflictKind,
    ExtensionError,
    ExtensionRefusal,
    NotFoundError,
    StorageError,
    ValidationError,
    ValidationReason,
)
from .models import CANDIDATE_FIELDS, ReservationCandidate, ReservationRecord
from .rules import ValidatedSlot, validate_candidate
from .store import ReservationFilter, ReservationStore, StoreSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotAvailability:
    start: time
    end: time
    reservations: tuple[ReservationRecord, ...] = ()

    @property
    def is_booked(self) -> bool:
        return bool(self.reservations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": format_clock_time(self.start),
            "end": format_clock_time(self.end),
            "status": "booked" if self.is_booked else "available",
            "reservations": [
                {
                    "reservation_id": record.reservation_id,
                    "requester_label": record.requester_label,
                    "purpose": record.purpose,
                    "time_start": format_clock_time(record.time_start),
                    "time_end": format_clock_time(record.time_end),
                }
                for record in self.reservations
            ],
        }


class RoomBookingService:
    """Admits, changes and removes study-room reservations.

    Validation runs before any storage access. Conflict checks, sequence
    number assignment and the write itself share one store transaction, so
    two requests racing for the same slot cannot both be admitted.
    """

    def __init__(
        self,
        store: ReservationStore,
        rules: BookingRules | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.rules = rules or BookingRules()
        self.clock: Callable[[], datetime] = now_provider or datetime.now

    def list_reservations(self, date: date | str | None = None, room: str | None = None) -> list[ReservationRecord]:
        day = _parse_filter_date(date)
        with self._unit_of_work("list", room=room, date=day) as session:
            records = session.find(ReservationFilter(date=day, room=room))
        return sorted(records, key=ReservationRecord.sort_key)

    def get_reservation(self, reservation_id: str) -> ReservationRecord:
        with self._unit_of_work("get", reservation_id=reservation_id) as session:
            record = session.get(reservation_id)
        if record is None:
            raise NotFoundError(reservation_id)
        return record

    def create_reservation(self, candidate: ReservationCandidate | dict[str, Any]) -> ReservationRecord:
        if isinstance(candidate, dict):
            candidate = ReservationCandidate.from_dict(candidate)
        now = self.clock()
        slot = validate_candidate(candidate, self.rules, now)

        with self._unit_of_work("create", room=candidate.room, date=slot.date) as session:
            self._ensure_no_conflicts(session, candidate.room, candidate.requester_id, slot)
            record = ReservationRecord(
                reservation_id="",
                sequence_number=session.max_sequence_number() + 1,
                date=slot.date,
                room=candidate.room,
                requester_name=candidate.requester_name,
                requester_id=candidate.requester_id,
                time_start=slot.time_start,
                time_end=slot.time_end,
                person_count=candidate.person_count,
                purpose=candidate.purpose,
                remark=candidate.remark,
                cleanliness_acknowledged=candidate.cleanliness_acknowledged,
                created_at=now,
                updated_at=now,
            )
            created = session.insert(record)

        logger.info(
            "Reservation %s created: room %s on %s %s-%s",
            created.reservation_id,
            created.room,
            created.date.isoformat(),
            format_clock_time(created.time_start),
            format_clock_time(created.time_end),
        )
        return created

    def update_reservation(self, reservation_id: str, patch: dict[str, Any]) -> ReservationRecord:
        """Apply ``patch`` to a reservation, re-running every rule except advance notice.

        Keys outside the editable reservation fields are ignored.
        """
        now = self.clock()
        with self._unit_of_work("update", reservation_id=reservation_id) as session:
            current = session.get(reservation_id)
            if current is None:
                raise NotFoundError(reservation_id)

            merged = asdict(current.to_candidate())
            merged.update({key: value for key, value in patch.items() if key in CANDIDATE_FIELDS})
            candidate = ReservationCandidate.from_dict(merged)
            slot = validate_candidate(candidate, self.rules, now, check_advance_notice=False)

            self._ensure_no_conflicts(
                session,
                candidate.room,
                candidate.requester_id,
                slot,
                exclude_id=reservation_id,
            )
            updated = session.update_where(
                reservation_id,
                {
                    "date": slot.date,
                    "room": candidate.room,
                    "requester_name": candidate.requester_name,
                    "requester_id": candidate.requester_id,
                    "time_start": slot.time_start,
                    "time_end": slot.time_end,
                    "person_count": candidate.person_count,
                    "purpose": candidate.purpose,
                    "remark": candidate.remark,
                    "cleanliness_acknowledged": candidate.cleanliness_acknowledged,
                    "updated_at": now,
                },
            )
            if updated is None:
                raise NotFoundError(reservation_id)

        logger.info("Reservation %s updated", reservation_id)
        return updated

    def extend_reservation(self, reservation_id: str, increment_hours: float | None = None) -> ReservationRecord:
        """Push ``time_end`` back by the increment once the current slot has ended."""
        if increment_hours is not None and not 0 < increment_hours < 24:
            raise ValueError("Extension increment must be between 0 and 24 hours.")
        increment = self.rules.extension_increment if increment_hours is None else timedelta(hours=increment_hours)
        increment_minutes = increment.total_seconds() / 60
        if increment_minutes < 1 or not increment_minutes.is_integer():
            raise ValueError("Extension increment must be a positive whole number of minutes.")

        now = self.clock()
        with self._unit_of_work("extend", reservation_id=reservation_id) as session:
            current = session.get(reservation_id)
            if current is None:
                raise NotFoundError(reservation_id)

            if now < current.ends_at:
                raise ExtensionError(
                    ExtensionRefusal.TOO_EARLY_TO_EXTEND,
                    "A reservation can only be extended once its current slot has ended.",
                )

            window = self.rules.window_for(current.date)
            candidate_end = minutes_of_day(current.time_end) + int(increment_minutes)
            if window is None or candidate_end > minutes_of_day(window.closes_at):
                raise ExtensionError(
                    ExtensionRefusal.CLOSING_TIME_EXCEEDED,
                    "The extended reservation would run past closing time.",
                )

            extended_slot = ValidatedSlot(
                date=current.date,
                time_start=current.time_end,
                time_end=time_from_minutes(candidate_end),
            )
            self._ensure_no_conflicts(
                session,
                current.room,
                current.requester_id,
                extended_slot,
                exclude_id=reservation_id,
            )
            updated = session.update_where(
                reservation_id,
                {"time_end": extended_slot.time_end, "updated_at": now},
            )
            if updated is None:
                raise NotFoundError(reservation_id)

        logger.info(
            "Reservation %s extended to %s",
            reservation_id,
            format_clock_time(updated.time_end),
        )
        return updated

    def delete_reservation(self, reservation_id: str) -> ReservationRecord:
        with self._unit_of_work("delete", reservation_id=reservation_id) as session:
            deleted = session.delete_where(reservation_id)
        if deleted is None:
            raise NotFoundError(reservation_id)

        logger.info("Reservation %s deleted", reservation_id)
        return deleted

    def room_availability(self, room: str, day: date | str) -> list[SlotAvailability]:
        """Hourly slots between opening and closing time, each with its overlapping reservations."""
        if room not in self.rules.rooms:
            raise ValidationError(ValidationReason.UNKNOWN_ROOM, f"Unknown room: {room}.")
        target_day = _parse_filter_date(day)
        if target_day is None:
            raise ValidationError(ValidationReason.MISSING_FIELD, "Date is required.")

        window = self.rules.window_for(target_day)
        if window is None:
            return []

        reservations = self.list_reservations(date=target_day, room=room)
        slots: list[SlotAvailability] = []
        for hour in range(window.open_hour, window.close_hour):
            start = time(hour, 0)
            end = time(hour + 1, 0)
            overlapping = tuple(
                record for record in reservations if has_time_overlap(start, end, record.time_start, record.time_end)
            )
            slots.append(SlotAvailability(start=start, end=end, reservations=overlapping))
        return slots

    def _ensure_no_conflicts(
        self,
        session: StoreSession,
        room: str,
        requester_id: str,
        slot: ValidatedSlot,
        exclude_id: str | None = None,
    ) -> None:
        room_conflicts = find_room_conflicts(
            session, room, slot.date, slot.time_start, slot.time_end, exclude_id=exclude_id
        )
        if room_conflicts:
            raise ConflictError(
                ConflictKind.ROOM,
                "This room/time slot is already booked.",
                conflicting=room_conflicts,
            )

        user_conflicts = find_user_conflicts(
            session, requester_id, slot.date, slot.time_start, slot.time_end, exclude_id=exclude_id
        )
        if user_conflicts:
            raise ConflictError(
                ConflictKind.USER,
                "You already have a reservation that overlaps this time.",
                conflicting=user_conflicts,
            )

    @contextmanager
    def _unit_of_work(self, operation: str, **context: Any) -> Iterator[StoreSession]:
        try:
            with self.store.transaction() as session:
                yield session
        except StorageError:
            details = ", ".join(f"{key}={_describe(value)}" for key, value in context.items())
            logger.error("Reservation storage failure during %s (%s)", operation, details, exc_info=True)
            raise


def _parse_filter_date(value: date | str | None) -> date | None:
    if value is None or value == "":
        return None
    try:
        return parse_calendar_date(value)
    except ValueError:
        raise ValidationError(ValidationReason.INVALID_DATE, f"Invalid date: {value}.") from None


def _describe(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return "-" if value is None else str(value)
