from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
from pathlib import Path
import shutil
from typing import Any, Iterator
from uuid import uuid4

from filelock import FileLock, Timeout
import yaml

from .booking import format_clock_time
from .errors import ConflictError, ConflictKind, StorageError
from .models import RECORD_FIELDS, ReservationRecord
from .store import ReservationFilter, ReservationStore, StoreSession

logger = logging.getLogger(__name__)

_LOCK_POLL_SECONDS = 0.01
_IMMUTABLE_FIELDS = {"reservation_id", "sequence_number", "created_at"}


class YamlReservationStore(ReservationStore):
    """Reservations kept in a YAML document guarded by an OS-level file lock.

    Every process and thread sharing ``base_dir`` takes turns on
    ``reservations.lock``; the operating system drops the lock when its holder
    exits, so a crashed process never wedges the store. A transaction reads
    the whole document, mutates it in memory and replaces the file atomically
    on commit.
    """

    def __init__(self, base_dir: str | Path = "data", timeout_seconds: float = 5.0) -> None:
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self.lock_file = self.base_dir / "reservations.lock"
        self.timeout_seconds = timeout_seconds
        self._ensure_files()
        self._lock = FileLock(self.lock_file, thread_local=True)

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.reservations_file, self.log_file):
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise StorageError(f"Failed to initialise reservation store in {self.base_dir}") from error

    @contextmanager
    def transaction(self) -> Iterator["YamlStoreSession"]:
        with self._exclusive_lock():
            session = YamlStoreSession(self._load_records())
            yield session
            if session.changed:
                self._write_yaml_list(self.reservations_file, [record.to_dict() for record in session.records])
            try:
                for event_type, payload in session.events:
                    self._log_event(event_type, payload)
            except StorageError:
                logger.warning("Committed reservations but could not record events in %s", self.log_file, exc_info=True)

    @contextmanager
    def _exclusive_lock(self) -> Iterator[None]:
        try:
            self._lock.acquire(timeout=self.timeout_seconds, poll_interval=_LOCK_POLL_SECONDS)
        except Timeout:
            raise StorageError(f"Timed out waiting for reservation store lock: {self.lock_file}") from None
        except OSError as error:
            raise StorageError(f"Failed to acquire reservation store lock: {self.lock_file}") from error

        try:
            yield
        finally:
            self._lock.release()

    def _load_records(self) -> list[ReservationRecord]:
        records: list[ReservationRecord] = []
        for index, row in enumerate(self._read_yaml_list(self.reservations_file)):
            try:
                records.append(ReservationRecord.from_dict(row))
            except (KeyError, TypeError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(self.reservations_file.name),
                        "index": index,
                        "reason": f"invalid reservation row: {error}",
                    },
                )
        return records

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []
        except OSError as error:
            raise StorageError(f"Failed to read YAML file: {path}") from error

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            else:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise StorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError as copy_error:
            logger.warning("Could not back up corrupted file %s: %s", path, copy_error)

        logger.warning("Recovered corrupted YAML file %s (%s)", path, error)
        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        events = self._read_yaml_list(self.log_file)
        events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
        self._write_yaml_list(self.log_file, events)


class YamlStoreSession(StoreSession):
    def __init__(self, records: list[ReservationRecord]) -> None:
        self.records = records
        self.changed = False
        self.events: list[tuple[str, dict[str, Any]]] = []

    def find(self, criteria: ReservationFilter) -> list[ReservationRecord]:
        return [record for record in self.records if criteria.matches(record)]

    def get(self, reservation_id: str) -> ReservationRecord | None:
        for record in self.records:
            if record.reservation_id == reservation_id:
                return record
        return None

    def insert(self, record: ReservationRecord) -> ReservationRecord:
        created = record.with_changes(reservation_id=str(uuid4()))
        self._ensure_slot_unclaimed(created)
        self.records.append(created)
        self.changed = True
        self.events.append(("RESERVATION_CREATED", _event_payload(created)))
        return created

    def update_where(self, reservation_id: str, patch: dict[str, Any]) -> ReservationRecord | None:
        unknown = set(patch) - set(RECORD_FIELDS)
        if unknown or set(patch) & _IMMUTABLE_FIELDS:
            raise ValueError(f"Cannot patch fields: {sorted(unknown | (set(patch) & _IMMUTABLE_FIELDS))}")

        for index, record in enumerate(self.records):
            if record.reservation_id != reservation_id:
                continue
            updated = record.with_changes(**patch)
            self._ensure_slot_unclaimed(updated)
            self.records[index] = updated
            self.changed = True
            self.events.append(("RESERVATION_UPDATED", _event_payload(updated)))
            return updated
        return None

    def delete_where(self, reservation_id: str) -> ReservationRecord | None:
        for index, record in enumerate(self.records):
            if record.reservation_id == reservation_id:
                del self.records[index]
                self.changed = True
                self.events.append(("RESERVATION_DELETED", _event_payload(record)))
                return record
        return None

    def max_sequence_number(self) -> int:
        return max((record.sequence_number for record in self.records), default=0)

    def _ensure_slot_unclaimed(self, candidate: ReservationRecord) -> None:
        # Same guarantee as the SQL unique constraint on (room, date, time_start).
        for record in self.records:
            if record.reservation_id == candidate.reservation_id:
                continue
            if (record.room, record.date, record.time_start) == (candidate.room, candidate.date, candidate.time_start):
                raise ConflictError(
                    ConflictKind.ROOM,
                    "This room/time slot is already booked.",
                    conflicting=[record],
                )


def _event_payload(record: ReservationRecord) -> dict[str, Any]:
    return {
        "reservation_id": record.reservation_id,
        "sequence_number": record.sequence_number,
        "room": record.room,
        "date": record.date.isoformat(),
        "time_start": format_clock_time(record.time_start),
        "time_end": format_clock_time(record.time_end),
        "requester": record.requester_label,
    }
