from __future__ import annotations

from enum import Enum
from typing import Any


class ValidationReason(str, Enum):
    MISSING_FIELD = "MissingField"
    UNKNOWN_ROOM = "UnknownRoom"
    INVALID_DATE = "InvalidDate"
    CLOSED_DAY = "ClosedDay"
    INSUFFICIENT_ADVANCE_NOTICE = "InsufficientAdvanceNotice"
    PAST_DATE = "PastDate"
    BELOW_MINIMUM_PERSONS = "BelowMinimumPersons"
    ACKNOWLEDGEMENT_REQUIRED = "AcknowledgementRequired"
    INVALID_TIME_FORMAT = "InvalidTimeFormat"
    OUTSIDE_OPERATING_HOURS = "OutsideOperatingHours"
    END_BEFORE_START = "EndBeforeStart"
    DURATION_EXCEEDED = "DurationExceeded"


class ConflictKind(str, Enum):
    ROOM = "RoomConflict"
    USER = "UserConflict"


class ExtensionRefusal(str, Enum):
    TOO_EARLY_TO_EXTEND = "TooEarlyToExtend"
    CLOSING_TIME_EXCEEDED = "ClosingTimeExceeded"


class BookingError(Exception):
    code = "BookingError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.code, "message": self.message}


class ValidationError(BookingError):
    def __init__(self, reason: ValidationReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.code = reason.value


class ConflictError(BookingError):
    def __init__(self, kind: ConflictKind, message: str, conflicting: list[Any] | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.code = kind.value
        self.conflicting = list(conflicting or [])


class ExtensionError(BookingError):
    def __init__(self, reason: ExtensionRefusal, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.code = reason.value


class NotFoundError(BookingError):
    code = "NotFound"

    def __init__(self, reservation_id: str) -> None:
        super().__init__(f"Reservation not found: {reservation_id}")
        self.reservation_id = reservation_id


class StorageError(BookingError):
    code = "StorageUnavailable"


class ConfigError(ValueError):
    pass
