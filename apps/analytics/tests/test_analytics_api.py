"""Tests for the role-scoped analytics overview."""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from apps.bookings import services as booking_services
from apps.payments import services as payment_services
from apps.users.models import User

pytestmark = pytest.mark.django_db


@pytest.fixture
def paid_booking(student, make_room):
    make_room("A1", capacity=2)
    make_room("B1", capacity=1, occupied=1)
    hold = booking_services.create_hold(student=student, room=make_room("C1", capacity=1))
    payment = payment_services.start_checkout(hold)
    payment_services.verify_payment(payment.session_id, hold.pk)
    return hold


def overview(user):
    client = APIClient()
    client.force_authenticate(user)
    response = client.get(reverse("analytics-overview"))
    assert response.status_code == 200, response.data
    return response.data


def test_landlord_sees_own_hostels(landlord, paid_booking):
    data = overview(landlord)

    assert data["scope"] == "landlord"
    assert data["hostels"] == 1
    assert data["bookings_by_status"]["confirmed"] == 1
    assert data["bookings_by_status"]["pending"] == 0
    assert data["revenue"] == Decimal("2500.00")
    assert data["rooms"] == 3
    assert data["beds"] == 4
    assert data["occupied_beds"] == 2
    assert data["available_rooms"] == 1
    assert data["occupancy_rate"] == 50.0


def test_other_landlord_sees_nothing(paid_booking):
    stranger = User.objects.create_user(
        email="stranger@example.com",
        password="StrangerPass123",
        role=User.RoleChoices.LANDLORD,
    )

    data = overview(stranger)

    assert data["hostels"] == 0
    assert data["revenue"] == Decimal("0")
    assert data["occupancy_rate"] == 0.0


def test_student_sees_own_spending(student, other_student, paid_booking):
    data = overview(student)

    assert data == {
        "scope": "student",
        "bookings_by_status": {
            "pending": 0,
            "on_hold": 0,
            "confirmed": 1,
            "cancelled": 0,
            "completed": 0,
        },
        "total_spent": Decimal("2500.00"),
        "reviews": 0,
    }
    assert overview(other_student)["total_spent"] == Decimal("0")


def test_admin_sees_platform(paid_booking):
    admin = User.objects.create_superuser(email="admin@example.com", password="AdminPass123")

    data = overview(admin)

    assert data["scope"] == "platform"
    assert data["users_by_role"] == {"student": 1, "landlord": 1, "admin": 1}
    assert data["hostels"] == 1
    assert data["regions"][0]["region"] == "Greater Accra"
    assert data["occupied_beds"] == 2


def test_requires_authentication():
    response = APIClient().get(reverse("analytics-overview"))

    assert response.status_code == 401
