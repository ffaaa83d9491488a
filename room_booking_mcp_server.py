from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from room_booking import RoomBookingService, load_config, open_store

mcp = FastMCP(
    "Room Booking MCP Server",
    instructions="Expose study-room reservations and booking operations from the room_booking project.",
    json_response=True,
)

_SERVICE: RoomBookingService | None = None


def configure(service: RoomBookingService) -> None:
    global _SERVICE
    _SERVICE = service


def get_service() -> RoomBookingService:
    global _SERVICE
    if _SERVICE is None:
        config = load_config()
        _SERVICE = RoomBookingService(open_store(config.storage), config.rules)
    return _SERVICE


@mcp.resource("booking://rooms")
def list_rooms() -> list[str]:
    """List the configured study room identifiers."""
    return list(get_service().rules.rooms)


@mcp.tool()
def list_reservations(date: str | None = None, room: str | None = None) -> list[dict[str, Any]]:
    """Return reservations ordered by date and start time, optionally filtered by date and room."""
    records = get_service().list_reservations(date=date, room=room)
    return [record.to_dict() for record in records]


@mcp.tool()
def create_reservation(
    date: str,
    room: str,
    requester_name: str,
    requester_id: str,
    time_start: str,
    time_end: str,
    person_count: int,
    cleanliness_acknowledged: bool,
    purpose: str = "Study",
    remark: str = "",
) -> dict[str, Any]:
    """Book a room. Times use HH:MM, the date uses YYYY-MM-DD."""
    created = get_service().create_reservation(
        {
            "date": date,
            "room": room,
            "requester_name": requester_name,
            "requester_id": requester_id,
            "time_start": time_start,
            "time_end": time_end,
            "person_count": person_count,
            "cleanliness_acknowledged": cleanliness_acknowledged,
            "purpose": purpose,
            "remark": remark,
        }
    )
    return created.to_dict()


@mcp.tool()
def update_reservation(
    reservation_id: str,
    date: str | None = None,
    room: str | None = None,
    requester_name: str | None = None,
    requester_id: str | None = None,
    time_start: str | None = None,
    time_end: str | None = None,
    person_count: int | None = None,
    cleanliness_acknowledged: bool | None = None,
    purpose: str | None = None,
    remark: str | None = None,
) -> dict[str, Any]:
    """Change a reservation. Omitted fields keep their current values; every rule except advance notice is rechecked."""
    patch = {
        "date": date,
        "room": room,
        "requester_name": requester_name,
        "requester_id": requester_id,
        "time_start": time_start,
        "time_end": time_end,
        "person_count": person_count,
        "cleanliness_acknowledged": cleanliness_acknowledged,
        "purpose": purpose,
        "remark": remark,
    }
    changes = {key: value for key, value in patch.items() if value is not None}
    return get_service().update_reservation(reservation_id, changes).to_dict()


@mcp.tool()
def extend_reservation(reservation_id: str, hours: float | None = None) -> dict[str, Any]:
    """Extend a reservation whose slot has already ended."""
    return get_service().extend_reservation(reservation_id, increment_hours=hours).to_dict()


@mcp.tool()
def delete_reservation(reservation_id: str) -> dict[str, Any]:
    """Remove a reservation."""
    return get_service().delete_reservation(reservation_id).to_dict()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
