from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Callable

from flask import Flask, jsonify, request

from .config import AppConfig, load_config
from .errors import (
    BookingError,
    ConflictError,
    ExtensionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .models import ReservationRecord
from .service import RoomBookingService
from .store import open_store


def create_app(
    service: RoomBookingService | None = None,
    config: AppConfig | None = None,
    now_provider: Callable[[], datetime] | None = None,
) -> Flask:
    app = Flask(__name__)
    if service is None:
        config = config or load_config()
        service = RoomBookingService(open_store(config.storage), config.rules, now_provider=now_provider)
    app.config["BOOKING_SERVICE"] = service

    def _serialize(record: ReservationRecord) -> dict[str, Any]:
        return record.to_dict()

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(BookingError)
    def handle_booking_error(error: BookingError) -> Any:
        payload = error.to_dict()
        if isinstance(error, ConflictError):
            payload["conflicting"] = [_serialize(record) for record in error.conflicting]
        return jsonify(payload), _status_for(error)

    @app.get("/api/rooms")
    def list_rooms() -> Any:
        return jsonify({"ok": True, "rooms": list(service.rules.rooms)})

    @app.get("/api/reservations")
    def list_reservations() -> Any:
        records = service.list_reservations(
            date=request.args.get("date") or None,
            room=request.args.get("room") or None,
        )
        return jsonify({"ok": True, "reservations": [_serialize(record) for record in records]})

    @app.get("/api/reservations/<reservation_id>")
    def get_reservation(reservation_id: str) -> Any:
        record = service.get_reservation(reservation_id)
        return jsonify({"ok": True, "reservation": _serialize(record)})

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        payload = _json_body()
        created = service.create_reservation(payload)
        return jsonify({"ok": True, "reservation": _serialize(created)}), 201

    @app.put("/api/reservations/<reservation_id>")
    def update_reservation(reservation_id: str) -> Any:
        payload = _json_body()
        updated = service.update_reservation(reservation_id, payload)
        return jsonify({"ok": True, "reservation": _serialize(updated)})

    @app.post("/api/reservations/<reservation_id>/extend")
    def extend_reservation(reservation_id: str) -> Any:
        payload = _json_body()
        hours = payload.get("hours")
        if hours is not None:
            try:
                hours = float(hours)
            except (TypeError, ValueError):
                return jsonify({"ok": False, "error": "InvalidIncrement", "message": "hours must be a number."}), 400

        try:
            extended = service.extend_reservation(reservation_id, increment_hours=hours)
        except ValueError as error:
            return jsonify({"ok": False, "error": "InvalidIncrement", "message": str(error)}), 400
        return jsonify({"ok": True, "reservation": _serialize(extended)})

    @app.delete("/api/reservations/<reservation_id>")
    def delete_reservation(reservation_id: str) -> Any:
        deleted = service.delete_reservation(reservation_id)
        return jsonify({"ok": True, "reservation": _serialize(deleted)})

    @app.get("/api/availability")
    def room_availability() -> Any:
        room = str(request.args.get("room", "")).strip()
        day = str(request.args.get("date", "")).strip()
        slots = service.room_availability(room, day)
        return jsonify(
            {
                "ok": True,
                "room": room,
                "date": day,
                "closed": not slots,
                "slots": [slot.to_dict() for slot in slots],
            }
        )

    return app


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _status_for(error: BookingError) -> int:
    if isinstance(error, (ValidationError, ExtensionError)):
        return 400
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, StorageError):
        return 503
    return 500


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
