"""Plain-dict snapshots of rooms and bookings as carried by change events."""

from __future__ import annotations

from typing import Any


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def room_row(room) -> dict[str, Any]:
    return {
        "id": room.pk,
        "hostel_id": room.hostel_id,
        "room_number": room.room_number,
        "room_type": room.room_type,
        "capacity": room.capacity,
        "occupied": room.occupied,
        "is_available": room.occupied < room.capacity,
        "price_per_semester": str(room.price_per_semester),
        "updated_at": _iso(room.updated_at),
    }


def booking_row(booking) -> dict[str, Any]:
    return {
        "id": booking.pk,
        "student_id": booking.student_id,
        "hostel_id": booking.hostel_id,
        "room_id": booking.room_id,
        "status": booking.status,
        "payment_status": booking.payment_status,
        "hold_expires_at": _iso(booking.hold_expires_at),
    }
