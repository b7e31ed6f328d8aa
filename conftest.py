"""Shared pytest fixtures."""

from __future__ import annotations

from decimal import Decimal

import pytest


@pytest.fixture(autouse=True)
def _fresh_change_feed():
    from apps.realtime.feed import reset_feed

    reset_feed()
    yield
    reset_feed()


@pytest.fixture
def landlord(db, django_user_model):
    return django_user_model.objects.create_user(
        email="landlord@example.com",
        password="LandlordPass123",
        role="landlord",
        business_name="Campus Stays",
    )


@pytest.fixture
def student(db, django_user_model):
    return django_user_model.objects.create_user(email="ama@example.com", password="StudentPass123", first_name="Ama")


@pytest.fixture
def other_student(db, django_user_model):
    return django_user_model.objects.create_user(email="kofi@example.com", password="StudentPass123", first_name="Kofi")


@pytest.fixture
def hostel(landlord):
    from apps.hostels.models import Hostel

    return Hostel.objects.create(
        landlord=landlord,
        name="Legon Heights",
        address="East Legon Road 4",
        city="Accra",
        region="Greater Accra",
        price_per_semester=Decimal("2500.00"),
    )


@pytest.fixture
def make_room(hostel):
    from apps.hostels.models import Room

    def _make_room(room_number="A1", capacity=1, occupied=0, price=Decimal("2500.00"), **extra):
        return Room.objects.create(
            hostel=extra.pop("hostel", hostel),
            room_number=room_number,
            room_type=Room.RoomType.SINGLE if capacity == 1 else Room.RoomType.DOUBLE,
            capacity=capacity,
            occupied=occupied,
            price_per_semester=price,
            **extra,
        )

    return _make_room


@pytest.fixture
def room(make_room):
    return make_room()
