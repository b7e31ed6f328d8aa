"""
Live room availability for one hostel.

``RoomAvailabilitySync`` keeps an in-memory list of a hostel's rooms in step
with the database: it loads the rooms once, then applies change events from
the feed. Another student's new booking in the same hostel is surfaced as a
notice; room state itself only changes through room events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from apps.hostels.models import Room

from .feed import ChangeEvent, ChangeFeed, Subscription, get_feed
from .rows import room_row
from .signals import BOOKINGS_TABLE, ROOMS_TABLE

logger = logging.getLogger(__name__)

RoomLoader = Callable[[Any], Iterable[dict[str, Any]]]


def load_hostel_rooms(hostel_id) -> list[dict[str, Any]]:
    rooms = Room.objects.filter(hostel_id=hostel_id).order_by("room_number")
    return [room_row(room) for room in rooms]


@dataclass(frozen=True)
class AvailabilityNotice:
    title: str
    description: str
    booking_id: Any = None
    room_id: Any = None


def _with_availability(row: dict[str, Any]) -> dict[str, Any]:
    capacity = row.get("capacity")
    occupied = row.get("occupied")
    if capacity is not None and occupied is not None:
        row["is_available"] = occupied < capacity
    return row


class RoomAvailabilitySync:
    """Reconcile a hostel's room list against the change feed."""

    def __init__(
        self,
        hostel_id,
        student_id=None,
        *,
        feed: ChangeFeed | None = None,
        loader: RoomLoader = load_hostel_rooms,
    ):
        self.hostel_id = hostel_id
        self.student_id = student_id
        self.feed = feed or get_feed()
        self.loader = loader
        self._rooms: dict[Any, dict[str, Any]] = {}
        self._notices: list[AvailabilityNotice] = []
        self._subscriptions: list[Subscription] = []
        self.started = False
        self.closed = False
        self.refetches = 0

    def __enter__(self) -> "RoomAvailabilitySync":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def rooms(self) -> list[dict[str, Any]]:
        return sorted(self._rooms.values(), key=lambda row: str(row.get("room_number", "")))

    def room(self, room_id) -> dict[str, Any] | None:
        return self._rooms.get(room_id)

    @property
    def notices(self) -> list[AvailabilityNotice]:
        return list(self._notices)

    def pop_notices(self) -> list[AvailabilityNotice]:
        notices, self._notices = self._notices, []
        return notices

    def start(self) -> None:
        """Load the current rooms, then begin listening for changes.

        A change committed between the load and the subscription is missed
        until the next refetch.
        """
        if self.started:
            return
        self._load()
        filters = {"hostel_id": self.hostel_id}
        self._subscriptions = [
            self.feed.subscribe(ROOMS_TABLE, filters),
            self.feed.subscribe(BOOKINGS_TABLE, filters),
        ]
        self.started = True
        logger.info("Watching %s rooms of hostel %s", len(self._rooms), self.hostel_id)

    def _load(self) -> None:
        self._rooms = {row["id"]: _with_availability(dict(row)) for row in self.loader(self.hostel_id)}

    def refetch(self) -> None:
        self._load()
        self.refetches += 1
        logger.info("Reloaded rooms of hostel %s", self.hostel_id)

    def pump(self, timeout: float | None = 0) -> int:
        """Apply every queued event; returns how many were applied.

        With a positive ``timeout`` waits that long for the first event when
        nothing is queued yet.
        """
        if self.closed or not self.started:
            return 0

        applied = 0
        for subscription in self._subscriptions:
            for event in subscription.drain():
                if self.closed:
                    return applied
                self.apply(event)
                applied += 1

        if not applied and timeout:
            rooms_subscription = self._subscriptions[0]
            event = rooms_subscription.get(timeout=timeout)
            if event is not None and not self.closed:
                self.apply(event)
                applied += 1 + self.pump(timeout=0)

        if any(subscription.reset_overflow() for subscription in self._subscriptions) and not self.closed:
            self.refetch()
        return applied

    def apply(self, event: ChangeEvent) -> None:
        if event.table == ROOMS_TABLE:
            self._apply_room(event)
        elif event.table == BOOKINGS_TABLE:
            self._apply_booking(event)

    def _apply_room(self, event: ChangeEvent) -> None:
        if event.type == "delete":
            room_id = (event.old or {}).get("id")
            self._rooms.pop(room_id, None)
            return

        row = event.row
        if event.type == "insert":
            self._rooms[row["id"]] = _with_availability(dict(row))
            return

        current = self._rooms.get(row["id"])
        if current is None:
            # Update for a room we never saw: treat it as new.
            self._rooms[row["id"]] = _with_availability(dict(row))
            return
        current.update(row)
        _with_availability(current)

    def _apply_booking(self, event: ChangeEvent) -> None:
        if event.type != "insert":
            return
        row = event.row
        if self.student_id is not None and row.get("student_id") == self.student_id:
            return
        self._notices.append(
            AvailabilityNotice(
                title="Room Status Update",
                description=f"Room {row.get('room_id')} booking status changed",
                booking_id=row.get("id"),
                room_id=row.get("room_id"),
            )
        )

    def close(self) -> None:
        """Stop listening. Events arriving afterwards are discarded."""
        if self.closed:
            return
        self.closed = True
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []
        logger.info("Stopped watching hostel %s", self.hostel_id)
