"""Concurrent bed claims, run from real threads against the test database."""

from __future__ import annotations

import threading
from decimal import Decimal
from types import SimpleNamespace

import pytest
from django.db import connection, connections
from rest_framework.exceptions import ValidationError

from apps.bookings.controller import BookingLifecycleController, RoomUnavailable, StudentContext
from apps.bookings.models import Booking
from apps.hostels.models import Room
from apps.hostels.serializers import RoomWriteSerializer

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture(autouse=True)
def _shared_database():
    if connection.vendor == "sqlite" and connection.is_in_memory_db():
        pytest.skip("threads need a database file or server")


def race(*calls):
    """Start every call at the same moment, each on its own connection."""
    barrier = threading.Barrier(len(calls), timeout=10)
    outcomes = [None] * len(calls)

    def run(index, call):
        try:
            barrier.wait()
            outcomes[index] = call()
        except Exception as exc:  # noqa: BLE001 - the outcome is asserted by the test
            outcomes[index] = exc
        finally:
            connections.close_all()

    threads = [threading.Thread(target=run, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def book(student, room_id):
    return lambda: BookingLifecycleController(StudentContext(user=student)).book_room(Room.objects.get(pk=room_id))


def edit_room(landlord, loaded, **data):
    def call():
        serializer = RoomWriteSerializer(
            loaded,
            data=data,
            partial=True,
            context={"request": SimpleNamespace(user=landlord)},
        )
        serializer.is_valid(raise_exception=True)
        return serializer.save()

    return call


def test_two_students_racing_for_last_bed(student, other_student, room):
    outcomes = race(book(student, room.pk), book(other_student, room.pk))

    booked = [o for o in outcomes if isinstance(o, Booking)]
    refused = [o for o in outcomes if isinstance(o, RoomUnavailable)]
    assert len(booked) == 1 and len(refused) == 1, outcomes
    assert Room.objects.get(pk=room.pk).occupied == 1
    assert Booking.objects.filter(room=room, claims_bed=True).count() == 1


def test_landlord_edit_racing_a_booking_keeps_the_claim(landlord, student, other_student, room):
    loaded = Room.objects.get(pk=room.pk)

    outcomes = race(edit_room(landlord, loaded, price_per_semester="2600.00"), book(student, room.pk))

    assert not any(isinstance(o, Exception) for o in outcomes), outcomes
    fresh = Room.objects.get(pk=room.pk)
    assert fresh.occupied == 1
    assert fresh.price_per_semester == Decimal("2600.00")
    with pytest.raises(RoomUnavailable):
        book(other_student, room.pk)()


def test_capacity_shrink_racing_a_booking_never_overfills(landlord, student, other_student, make_room):
    room = make_room("B1", capacity=2)
    book(other_student, room.pk)()
    loaded = Room.objects.get(pk=room.pk)

    shrunk, booked = race(edit_room(landlord, loaded, capacity=1), book(student, room.pk))

    # Exactly one of them gets the remaining bed slot.
    assert isinstance(shrunk, Room) != isinstance(booked, Booking), (shrunk, booked)
    assert isinstance(shrunk, (Room, ValidationError))
    assert isinstance(booked, (Booking, RoomUnavailable))
    fresh = Room.objects.get(pk=room.pk)
    assert fresh.occupied <= fresh.capacity
    assert fresh.occupied == Booking.objects.filter(room=room, claims_bed=True).count()
