"""Storage abstraction shared by the YAML and SQL backends.

Every read and write the booking service performs happens inside
``ReservationStore.transaction()``. Backends guarantee that transactions
touching reservations are serialized, so a conflict check and the insert
that follows it cannot interleave with another writer.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from typing import Any

from .config import StorageSettings
from .models import ReservationRecord


@dataclass(frozen=True)
class ReservationFilter:
    date: date | None = None
    room: str | None = None
    requester_id: str | None = None
    exclude_id: str | None = None

    def matches(self, record: ReservationRecord) -> bool:
        if self.date is not None and record.date != self.date:
            return False
        if self.room is not None and record.room != self.room:
            return False
        if self.requester_id is not None and record.requester_id != self.requester_id:
            return False
        if self.exclude_id is not None and record.reservation_id == self.exclude_id:
            return False
        return True


class StoreSession(ABC):
    @abstractmethod
    def find(self, criteria: ReservationFilter) -> list[ReservationRecord]:
        raise NotImplementedError

    @abstractmethod
    def get(self, reservation_id: str) -> ReservationRecord | None:
        raise NotImplementedError

    @abstractmethod
    def insert(self, record: ReservationRecord) -> ReservationRecord:
        """Persist ``record`` and return it with the store-assigned id."""
        raise NotImplementedError

    @abstractmethod
    def update_where(self, reservation_id: str, patch: dict[str, Any]) -> ReservationRecord | None:
        raise NotImplementedError

    @abstractmethod
    def delete_where(self, reservation_id: str) -> ReservationRecord | None:
        raise NotImplementedError

    @abstractmethod
    def max_sequence_number(self) -> int:
        raise NotImplementedError


class ReservationStore(ABC):
    @abstractmethod
    def transaction(self) -> AbstractContextManager[StoreSession]:
        """Open a serialized unit of work; changes are committed only on clean exit."""
        raise NotImplementedError


def open_store(settings: StorageSettings) -> ReservationStore:
    if settings.backend == "sql":
        from .sql_store import SqlReservationStore

        return SqlReservationStore(settings.url, timeout_seconds=settings.timeout_seconds)

    from .yaml_store import YamlReservationStore

    return YamlReservationStore(settings.data_dir, timeout_seconds=settings.timeout_seconds)
