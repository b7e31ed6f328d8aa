"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Booking
from .services import expire_booking, stale_bookings

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bookings.expire_stale_bookings")
def expire_stale_bookings() -> dict[str, int]:
    """
    Cancel holds past their expiry and unpaid bookings past their deadline.

    Each booking is handled in its own transaction; a failure on one is
    logged and the sweep moves on. Cancelling an unpaid booking gives its
    bed back to the room.

    Runs every minute via Celery Beat.

    Returns:
        dict: {"expired_holds": n, "expired_unpaid": n, "failed": n}
    """
    now = timezone.now()
    result = {"expired_holds": 0, "expired_unpaid": 0, "failed": 0}

    for booking_id, status in stale_bookings(now).values_list("pk", "status"):
        try:
            booking = expire_booking(booking_id, now=now)
        except Exception:  # noqa: BLE001 - keep sweeping the rest
            result["failed"] += 1
            logger.error("Error expiring booking %s", booking_id, exc_info=True)
            continue

        if booking is None:
            continue
        if status == Booking.Status.ON_HOLD:
            result["expired_holds"] += 1
        else:
            result["expired_unpaid"] += 1
        notify_booking_cancelled.delay(booking.pk)

    if result["expired_holds"] or result["expired_unpaid"]:
        logger.info(
            "Expired %s holds and %s unpaid bookings",
            result["expired_holds"],
            result["expired_unpaid"],
        )
    return result


# ============================================================================
# NOTIFICATIONS
# ============================================================================

def _load(booking_id: int) -> Booking | None:
    try:
        return Booking.objects.select_related("student", "hostel", "hostel__landlord", "room").get(pk=booking_id)
    except Booking.DoesNotExist:
        logger.error("Booking %s not found for notification", booking_id)
        return None


@shared_task(name="bookings.notify_hold_placed")
def notify_hold_placed(booking_id: int) -> bool:
    """In-app note to the student with the hold deadline."""
    booking = _load(booking_id)
    if booking is None:
        return False

    from apps.notifications.services import create_in_app_notification

    deadline = timezone.localtime(booking.hold_expires_at).strftime("%d.%m.%Y %H:%M") if booking.hold_expires_at else ""
    create_in_app_notification(
        user=booking.student,
        title=f"Room held at {booking.hostel.name}",
        message=f"Your hold is valid until {deadline}. Pay before then to secure the bed.",
        type="booking",
        data={"booking_id": booking.pk, "hostel_id": booking.hostel_id},
    )
    return True


@shared_task(name="bookings.notify_booking_confirmed")
def notify_booking_confirmed(booking_id: int) -> bool:
    """Student and landlord are told about a confirmed booking."""
    booking = _load(booking_id)
    if booking is None:
        return False

    from apps.notifications.services import (
        create_in_app_notification,
        send_booking_confirmation_email,
        send_new_booking_to_landlord_email,
    )

    send_booking_confirmation_email(booking)
    send_new_booking_to_landlord_email(booking)
    create_in_app_notification(
        user=booking.student,
        title=f"Booking #{booking.booking_code} confirmed",
        message=f"Payment received. Your bed at {booking.hostel.name} is confirmed.",
        type="booking",
        data={"booking_id": booking.pk, "hostel_id": booking.hostel_id},
    )
    create_in_app_notification(
        user=booking.hostel.landlord,
        title=f"New booking #{booking.booking_code}",
        message=f"{booking.student.display_name} booked a bed at {booking.hostel.name}.",
        type="booking",
        data={"booking_id": booking.pk, "hostel_id": booking.hostel_id},
    )
    logger.info("Confirmation notifications sent for booking %s", booking.booking_code)
    return True


@shared_task(name="bookings.notify_booking_cancelled")
def notify_booking_cancelled(booking_id: int) -> bool:
    """Tell the student their hold or booking was cancelled."""
    booking = _load(booking_id)
    if booking is None:
        return False

    from apps.notifications.services import create_in_app_notification, send_booking_cancelled_email

    send_booking_cancelled_email(booking)
    create_in_app_notification(
        user=booking.student,
        title=f"Booking #{booking.booking_code} cancelled",
        message=booking.cancellation_reason or "Your booking was cancelled.",
        type="booking",
        data={"booking_id": booking.pk, "hostel_id": booking.hostel_id},
    )
    return True
