from __future__ import annotations

from contextlib import contextmanager
import math
import logging
from typing import Any, Iterator

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .errors import ConflictError, ConflictKind, StorageError
from .models import RECORD_FIELDS, ReservationRecord
from .store import ReservationFilter, ReservationStore, StoreSession

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {"reservation_id", "sequence_number", "created_at"}


class Base(DeclarativeBase):
    pass


class ReservationRow(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        # Database-level protection against double booking the same slot
        UniqueConstraint("room", "date", "time_start", name="uq_reservation_room_slot"),
        CheckConstraint("time_end > time_start", name="check_reservation_time_order"),
        CheckConstraint("person_count >= 1", name="check_reservation_person_count"),
        Index("ix_reservation_room_date", "room", "date"),
        Index("ix_reservation_requester_date", "requester_id", "date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sequence_number = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    room = Column(String(32), nullable=False)
    requester_name = Column(String(120), nullable=False)
    requester_id = Column(String(64), nullable=False)
    time_start = Column(Time, nullable=False)
    time_end = Column(Time, nullable=False)
    person_count = Column(Integer, nullable=False)
    purpose = Column(String(64), nullable=False)
    remark = Column(Text, nullable=False, default="")
    cleanliness_acknowledged = Column(Boolean, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def to_record(self) -> ReservationRecord:
        return ReservationRecord(
            reservation_id=str(self.id),
            sequence_number=self.sequence_number,
            date=self.date,
            room=self.room,
            requester_name=self.requester_name,
            requester_id=self.requester_id,
            time_start=self.time_start,
            time_end=self.time_end,
            person_count=self.person_count,
            purpose=self.purpose,
            remark=self.remark or "",
            cleanliness_acknowledged=self.cleanliness_acknowledged,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class SqlReservationStore(ReservationStore):
    """Relational backend; every transaction is serialized by the database.

    SQLite transactions start with ``BEGIN IMMEDIATE`` so the write lock is
    taken before the conflict queries run. Other databases run at
    SERIALIZABLE isolation. The unique constraint on (room, date, time_start)
    turns any double insert that slips through into an IntegrityError.
    """

    def __init__(self, url: str, timeout_seconds: float = 5.0, engine: Engine | None = None) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.engine = engine or _create_engine(url, timeout_seconds)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as error:
            raise StorageError(f"Failed to initialise reservation database: {url}") from error

    @contextmanager
    def transaction(self) -> Iterator["SqlStoreSession"]:
        session = self._session_factory()
        try:
            with session.begin():
                yield SqlStoreSession(session)
        except IntegrityError as error:
            logger.info("Reservation insert rejected by slot constraint: %s", error.orig)
            raise ConflictError(ConflictKind.ROOM, "This room/time slot is already booked.") from error
        except SQLAlchemyError as error:
            raise StorageError(f"Reservation database unavailable: {error.__class__.__name__}") from error
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


class SqlStoreSession(StoreSession):
    def __init__(self, session: Session) -> None:
        self.session = session

    def find(self, criteria: ReservationFilter) -> list[ReservationRecord]:
        statement = select(ReservationRow)
        if criteria.date is not None:
            statement = statement.where(ReservationRow.date == criteria.date)
        if criteria.room is not None:
            statement = statement.where(ReservationRow.room == criteria.room)
        if criteria.requester_id is not None:
            statement = statement.where(ReservationRow.requester_id == criteria.requester_id)
        if criteria.exclude_id is not None:
            exclude = _row_id(criteria.exclude_id)
            if exclude is not None:
                statement = statement.where(ReservationRow.id != exclude)
        statement = statement.order_by(ReservationRow.date, ReservationRow.time_start, ReservationRow.sequence_number)
        return [row.to_record() for row in self.session.scalars(statement)]

    def get(self, reservation_id: str) -> ReservationRecord | None:
        row = self._get_row(reservation_id)
        return row.to_record() if row is not None else None

    def insert(self, record: ReservationRecord) -> ReservationRecord:
        values = {name: getattr(record, name) for name in RECORD_FIELDS if name != "reservation_id"}
        row = ReservationRow(**values)
        self.session.add(row)
        self.session.flush()
        return row.to_record()

    def update_where(self, reservation_id: str, patch: dict[str, Any]) -> ReservationRecord | None:
        unknown = set(patch) - set(RECORD_FIELDS)
        if unknown or set(patch) & _IMMUTABLE_FIELDS:
            raise ValueError(f"Cannot patch fields: {sorted(unknown | (set(patch) & _IMMUTABLE_FIELDS))}")

        row = self._get_row(reservation_id)
        if row is None:
            return None
        for name, value in patch.items():
            setattr(row, name, value)
        self.session.flush()
        return row.to_record()

    def delete_where(self, reservation_id: str) -> ReservationRecord | None:
        row = self._get_row(reservation_id)
        if row is None:
            return None
        record = row.to_record()
        self.session.delete(row)
        self.session.flush()
        return record

    def max_sequence_number(self) -> int:
        return self.session.scalar(select(func.max(ReservationRow.sequence_number))) or 0

    def _get_row(self, reservation_id: str) -> ReservationRow | None:
        row_id = _row_id(reservation_id)
        if row_id is None:
            return None
        return self.session.get(ReservationRow, row_id)


def _row_id(reservation_id: str) -> int | None:
    try:
        return int(reservation_id)
    except (TypeError, ValueError):
        return None


def _create_engine(url: str, timeout_seconds: float) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"timeout": timeout_seconds, "check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection: Any, connection_record: Any) -> None:
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(connection: Any) -> None:
            connection.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(
        url,
        connect_args=_lock_timeout_args(url, timeout_seconds),
        isolation_level="SERIALIZABLE",
        pool_timeout=timeout_seconds,
        pool_pre_ping=True,
    )


def _lock_timeout_args(url: str, timeout_seconds: float) -> dict[str, Any]:
    """Driver options that bound lock waits and statements by ``timeout_seconds``."""
    backend = make_url(url).get_backend_name()
    if backend == "postgresql":
        milliseconds = max(1, int(timeout_seconds * 1000))
        return {"options": f"-c lock_timeout={milliseconds} -c statement_timeout={milliseconds}"}
    if backend in ("mysql", "mariadb"):
        return {"init_command": f"SET SESSION innodb_lock_wait_timeout={max(1, math.ceil(timeout_seconds))}"}
    return {}
