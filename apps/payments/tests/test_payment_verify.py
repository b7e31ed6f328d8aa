"""Tests for checkout, payment verification and the provider client."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
import stripe
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from apps.bookings import services as booking_services
from apps.bookings.models import Booking
from apps.hostels.models import Room
from apps.notifications.models import Notification
from apps.payments import services, stripe_service
from apps.payments.models import Payment

pytestmark = pytest.mark.django_db


def occupied(room) -> int:
    return Room.objects.get(pk=room.pk).occupied


@pytest.fixture
def hold(student, room):
    return booking_services.create_hold(student=student, room=room)


@pytest.fixture
def checkout(hold):
    return services.start_checkout(hold, success_url="https://hostelhub.test/ok?session_id={CHECKOUT_SESSION_ID}")


def test_start_checkout_records_emulated_session(hold, checkout):
    assert checkout.session_id.startswith(stripe_service.EMULATED_SESSION_PREFIX)
    assert checkout.checkout_url == f"https://hostelhub.test/ok?session_id={checkout.session_id}"
    assert checkout.status == Payment.Status.PENDING
    assert checkout.amount == Decimal("2500.00")
    assert checkout.metadata["booking_id"] == str(hold.pk)


def test_verify_confirms_paid_hold(hold, checkout, room, student, landlord, mailoutbox):
    result = services.verify_payment(checkout.session_id, hold.pk)

    assert result == {"success": True, "status": Booking.Status.CONFIRMED}
    hold.refresh_from_db()
    checkout.refresh_from_db()
    assert hold.status == Booking.Status.CONFIRMED
    assert hold.payment_status == Booking.PaymentStatus.PAID
    assert hold.amount_paid == Decimal("2500.00")
    assert checkout.status == Payment.Status.SUCCESS
    assert checkout.payment_intent.startswith("pi_emulated_")
    assert occupied(room) == 1
    assert Notification.objects.filter(user=student, title__contains="confirmed").exists()
    assert Notification.objects.filter(user=landlord, title__startswith="New booking").exists()
    assert sorted(message.to[0] for message in mailoutbox) == ["ama@example.com", "landlord@example.com"]


def test_verify_is_idempotent(hold, checkout, room):
    services.verify_payment(checkout.session_id, hold.pk)
    result = services.verify_payment(checkout.session_id, hold.pk)

    assert result == {"success": True, "status": Booking.Status.CONFIRMED}
    assert occupied(room) == 1


def test_verify_reports_unpaid_session(hold, checkout, room):
    unpaid = {"payment_status": "unpaid", "amount_total": 250000, "payment_intent": None, "metadata": {}}
    with mock.patch.object(stripe_service, "retrieve_session", return_value=unpaid):
        result = services.verify_payment(checkout.session_id, hold.pk)

    assert result == {"success": False, "status": "unpaid"}
    hold.refresh_from_db()
    assert hold.status == Booking.Status.ON_HOLD
    assert occupied(room) == 0


def test_verify_uses_amount_reported_by_provider(hold, checkout):
    paid = {"payment_status": "paid", "amount_total": 120050, "payment_intent": "pi_123", "metadata": {}}
    with mock.patch.object(stripe_service, "retrieve_session", return_value=paid):
        services.verify_payment(checkout.session_id, hold.pk)

    hold.refresh_from_db()
    assert hold.amount_paid == Decimal("1200.50")


def test_payment_for_lost_bed_is_refunded(hold, checkout, other_student, room):
    rival = booking_services.create_hold(student=other_student, room=room)
    rival_checkout = services.start_checkout(rival)
    services.verify_payment(rival_checkout.session_id, rival.pk)

    result = services.verify_payment(checkout.session_id, hold.pk)

    assert result == {"success": False, "status": "refunded"}
    hold.refresh_from_db()
    checkout.refresh_from_db()
    assert hold.status == Booking.Status.CANCELLED
    assert hold.payment_status == Booking.PaymentStatus.REFUNDED
    assert hold.cancellation_source == Booking.CancellationSource.SYSTEM
    assert checkout.status == Payment.Status.REFUNDED
    assert occupied(room) == 1


def test_payment_for_expired_hold_is_refunded(student, room):
    hold = booking_services.create_hold(student=student, room=room, now=timezone.now() - timedelta(hours=25))
    payment = services.start_checkout(hold)

    result = services.verify_payment(payment.session_id, hold.pk)

    assert result == {"success": False, "status": "refunded"}
    hold.refresh_from_db()
    assert hold.status == Booking.Status.CANCELLED
    assert occupied(room) == 0


def test_second_payment_for_confirmed_booking_is_refunded(hold, checkout, room):
    duplicate = services.start_checkout(hold)
    services.verify_payment(checkout.session_id, hold.pk)

    result = services.verify_payment(duplicate.session_id, hold.pk)

    assert result == {"success": False, "status": "refunded"}
    hold.refresh_from_db()
    duplicate.refresh_from_db()
    assert hold.status == Booking.Status.CONFIRMED
    assert duplicate.status == Payment.Status.REFUNDED
    assert occupied(room) == 1


def test_unknown_session_is_not_found(hold):
    with pytest.raises(services.PaymentNotFound):
        services.verify_payment("cs_missing", hold.pk)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def api(student):
    client = APIClient()
    client.force_authenticate(student)
    return client


def test_verify_endpoint_confirms_booking(api, hold, checkout):
    response = api.post(
        reverse("payment-verify"),
        {"session_id": checkout.session_id, "booking_id": hold.pk},
        format="json",
    )

    assert response.status_code == 200, response.data
    assert response.data == {"success": True, "status": "confirmed"}


def test_verify_endpoint_hides_other_students_payments(other_student, hold, checkout):
    client = APIClient()
    client.force_authenticate(other_student)

    response = client.post(
        reverse("payment-verify"),
        {"session_id": checkout.session_id, "booking_id": hold.pk},
        format="json",
    )

    assert response.status_code == 404


def test_verify_endpoint_maps_provider_outage_to_503(api, hold, checkout):
    with mock.patch.object(
        stripe_service,
        "retrieve_session",
        side_effect=stripe_service.StripePaymentError("timeout"),
    ):
        response = api.post(
            reverse("payment-verify"),
            {"session_id": checkout.session_id, "booking_id": hold.pk},
            format="json",
        )

    assert response.status_code == 503
    assert response.data["title"] == "Service unavailable"


def test_payment_history_is_scoped_to_student(api, checkout, other_student):
    response = api.get(reverse("payment-list"))
    assert [item["session_id"] for item in response.data["results"]] == [checkout.session_id]

    client = APIClient()
    client.force_authenticate(other_student)
    assert client.get(reverse("payment-list")).data["count"] == 0


def test_webhook_rejects_unsigned_payload():
    response = APIClient().post(reverse("payment-stripe-webhook"), data=b"{}", content_type="application/json")

    assert response.status_code == 400


def test_webhook_confirms_completed_session(hold, checkout):
    event = {
        "type": "checkout.session.completed",
        "data": {"object": {"id": checkout.session_id, "metadata": {"booking_id": str(hold.pk)}}},
    }
    with mock.patch.object(stripe_service, "construct_webhook_event", return_value=event):
        response = APIClient().post(
            reverse("payment-stripe-webhook"),
            data=b"{}",
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
        )

    assert response.status_code == 200
    hold.refresh_from_db()
    assert hold.status == Booking.Status.CONFIRMED


# ---------------------------------------------------------------------------
# provider client
# ---------------------------------------------------------------------------

def test_minor_unit_conversion():
    assert stripe_service.to_minor_units(Decimal("2500.00")) == 250000
    assert stripe_service.to_minor_units(Decimal("12.345")) == 1235
    assert stripe_service.from_minor_units(1235) == Decimal("12.35")


def test_live_checkout_uses_stripe(settings):
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.DEBUG = False
    session = mock.Mock(id="cs_live_1", url="https://checkout.stripe.com/c/pay/cs_live_1")
    with mock.patch.object(stripe.checkout.Session, "create", return_value=session) as create:
        result = stripe_service.create_checkout_session(
            amount=Decimal("2500.00"),
            product_name="Legon Heights - Room A1",
            metadata={"booking_id": "1"},
            success_url="https://hostelhub.test/ok",
            cancel_url="https://hostelhub.test/cancel",
        )

    assert result == {"session_id": "cs_live_1", "url": "https://checkout.stripe.com/c/pay/cs_live_1"}
    line_item = create.call_args.kwargs["line_items"][0]
    assert line_item["price_data"]["unit_amount"] == 250000
    assert line_item["price_data"]["currency"] == "ghs"


def test_live_checkout_failure_is_wrapped(settings):
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.DEBUG = False
    with mock.patch.object(stripe.checkout.Session, "create", side_effect=stripe.StripeError("card declined")):
        with pytest.raises(stripe_service.StripePaymentError):
            stripe_service.create_checkout_session(
                amount=Decimal("10.00"),
                product_name="Room",
                metadata={},
                success_url="https://hostelhub.test/ok",
                cancel_url="https://hostelhub.test/cancel",
            )
