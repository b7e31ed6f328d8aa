"""Checkout and verification of booking payments."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from django.conf import settings  # type: ignore

from apps.bookings.models import Booking, InvalidTransition
from apps.bookings.services import (
    BookingConflictError,
    HoldExpiredError,
    cancel_booking,
    confirm_paid_booking,
)
from apps.bookings.tasks import notify_booking_cancelled, notify_booking_confirmed

from . import stripe_service
from .models import Payment

logger = logging.getLogger(__name__)


class PaymentNotFound(Exception):
    """No checkout session with this id was issued for the booking."""


def _default_urls(booking: Booking) -> tuple[str, str]:
    site_url = getattr(settings, "SITE_URL", "").rstrip("/")
    success_url = (
        f"{site_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}&booking_id={booking.pk}"
    )
    cancel_url = f"{site_url}/hostels/{booking.hostel_id}?payment=cancelled"
    return success_url, cancel_url


def start_checkout(
    booking: Booking,
    *,
    success_url: str | None = None,
    cancel_url: str | None = None,
) -> Payment:
    """Create a provider checkout session and record it.

    The booking itself is not touched: it only becomes confirmed once the
    session is verified as paid.
    """
    default_success, default_cancel = _default_urls(booking)
    room_number = booking.room.room_number if booking.room_id else ""
    metadata = {
        "booking_id": str(booking.pk),
        "booking_code": booking.booking_code,
        "hostel_name": booking.hostel.name,
        "room_number": room_number,
    }
    session = stripe_service.create_checkout_session(
        amount=booking.total_amount,
        product_name=f"{booking.hostel.name} - Room {room_number}".strip(" -"),
        metadata=metadata,
        success_url=success_url or default_success,
        cancel_url=cancel_url or default_cancel,
        customer_email=booking.student.email,
    )
    payment = Payment.objects.create(
        booking=booking,
        session_id=session["session_id"],
        checkout_url=session["url"],
        amount=booking.total_amount,
        currency=getattr(settings, "STRIPE_CURRENCY", "ghs"),
        metadata=metadata,
    )
    logger.info("Checkout session %s created for booking %s", payment.session_id, booking.booking_code)
    return payment


def _refund_unfulfillable(payment: Payment, booking: Booking, reason: str, *, release_booking: bool = True) -> None:
    """Give the money back for a payment whose booking can no longer be honoured."""
    try:
        stripe_service.refund_payment(payment.payment_intent)
    except stripe_service.StripePaymentError:
        # Record stays in success state so staff can settle it by hand.
        logger.error("Refund failed for payment %s (booking %s)", payment.session_id, booking.booking_code)
        raise
    payment.mark_refunded(reason)

    if not release_booking:
        return
    if booking.can_transition(Booking.Status.CANCELLED):
        cancel_booking(
            booking.pk,
            source=Booking.CancellationSource.SYSTEM,
            reason=reason,
            payment_status=Booking.PaymentStatus.REFUNDED,
        )
        notify_booking_cancelled.delay(booking.pk)
    else:
        Booking.objects.filter(pk=booking.pk).update(payment_status=Booking.PaymentStatus.REFUNDED)


def verify_payment(session_id: str, booking_id: int) -> dict[str, Any]:
    """
    Confirm a booking once its checkout session reports ``paid``.

    Safe to call repeatedly for the same session.

    Returns:
        dict: ``{"success": bool, "status": str}`` where status is the booking
        status on success, otherwise the provider's payment status or
        ``"refunded"``.
    """
    try:
        payment = Payment.objects.select_related("booking").get(session_id=session_id, booking_id=booking_id)
    except Payment.DoesNotExist as exc:
        raise PaymentNotFound(f"Unknown checkout session {session_id} for booking {booking_id}.") from exc

    if payment.status == Payment.Status.SUCCESS and payment.booking.status == Booking.Status.CONFIRMED:
        return {"success": True, "status": payment.booking.status}
    if payment.status == Payment.Status.REFUNDED:
        return {"success": False, "status": "refunded"}

    session = stripe_service.retrieve_session(session_id)
    if session["payment_status"] != "paid":
        logger.info("Checkout session %s not paid yet: %s", session_id, session["payment_status"])
        return {"success": False, "status": session["payment_status"]}

    amount_total = session.get("amount_total")
    amount_paid = stripe_service.from_minor_units(amount_total) if amount_total is not None else payment.amount

    if payment.status != Payment.Status.SUCCESS:
        payment.mark_success(session.get("payment_intent"))

    already_paid = (
        Payment.objects.filter(booking_id=booking_id, status=Payment.Status.SUCCESS).exclude(pk=payment.pk).exists()
    )
    if already_paid:
        logger.warning("Booking %s was already paid, refunding session %s", booking_id, session_id)
        _refund_unfulfillable(payment, payment.booking, "Booking was already paid", release_booking=False)
        return {"success": False, "status": "refunded"}

    try:
        booking = confirm_paid_booking(booking_id, amount_paid=Decimal(amount_paid))
    except (BookingConflictError, HoldExpiredError, InvalidTransition) as exc:
        logger.warning("Paid booking %s cannot be confirmed: %s", booking_id, exc)
        booking = Booking.objects.get(pk=booking_id)
        _refund_unfulfillable(payment, booking, str(exc))
        return {"success": False, "status": "refunded"}

    notify_booking_confirmed.delay(booking.pk)
    return {"success": True, "status": booking.status}
