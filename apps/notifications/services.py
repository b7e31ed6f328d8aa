"""Notification services for sending e-mails and in-app notifications."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils.html import strip_tags  # type: ignore

if TYPE_CHECKING:  # pragma: no cover
    from apps.bookings.models import Booking
    from apps.users.models import CustomUser

logger = logging.getLogger(__name__)


# ============================================================================
# EMAIL NOTIFICATIONS
# ============================================================================

def send_email_notification(
    recipient_email: str,
    subject: str,
    message: str,
    *,
    html_message: str | None = None,
) -> bool:
    """
    Send a single e-mail.

    Args:
        recipient_email: Recipient address
        subject: Subject line
        message: Plain-text body, derived from ``html_message`` when empty
        html_message: Optional HTML body

    Returns:
        bool: True if the message was handed to the mail backend
    """
    if html_message and not message:
        message = strip_tags(html_message)
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            html_message=html_message,
            fail_silently=False,
        )
    except Exception as e:  # noqa: BLE001 - any backend failure
        logger.error("Failed to send email to %s: %s", recipient_email, e, exc_info=True)
        return False

    logger.info("Email sent to %s: %s", recipient_email, subject)
    return True


def _booking_summary(booking: "Booking") -> str:
    room = f", room {booking.room.room_number}" if booking.room_id else ""
    return f"{booking.hostel.name}{room} ({booking.get_semester_display()}, {booking.academic_year})"


def send_booking_confirmation_email(booking: "Booking") -> bool:
    """Confirmation e-mail to the student once payment went through."""
    student = booking.student
    html_message = f"""
    <html>
    <body>
        <h2>Hello, {student.display_name}!</h2>
        <p>Your booking is confirmed.</p>
        <ul>
            <li><strong>Booking code:</strong> {booking.booking_code}</li>
            <li><strong>Hostel:</strong> {_booking_summary(booking)}</li>
            <li><strong>Amount paid:</strong> {booking.amount_paid}</li>
        </ul>
        <p>The landlord has been notified and will contact you about move-in.</p>
    </body>
    </html>
    """
    return send_email_notification(
        recipient_email=student.email,
        subject=f"Booking #{booking.booking_code} confirmed",
        message="",
        html_message=html_message,
    )


def send_new_booking_to_landlord_email(booking: "Booking") -> bool:
    landlord = booking.hostel.landlord
    html_message = f"""
    <html>
    <body>
        <h2>New confirmed booking</h2>
        <p>{booking.student.display_name} booked {_booking_summary(booking)}.</p>
        <p>Booking code: {booking.booking_code}</p>
    </body>
    </html>
    """
    return send_email_notification(
        recipient_email=landlord.email,
        subject=f"New booking #{booking.booking_code}",
        message="",
        html_message=html_message,
    )


def send_booking_cancelled_email(booking: "Booking") -> bool:
    reason = booking.cancellation_reason or "no reason given"
    return send_email_notification(
        recipient_email=booking.student.email,
        subject=f"Booking #{booking.booking_code} cancelled",
        message=(
            f"Your booking for {_booking_summary(booking)} was cancelled: {reason}.\n"
            "The room may still be available - you can book it again from the hostel page."
        ),
    )


# ============================================================================
# IN-APP NOTIFICATIONS
# ============================================================================

def create_in_app_notification(
    user: "CustomUser",
    title: str,
    message: str,
    *,
    type: str = "system",
    data: dict[str, Any] | None = None,
):
    """
    Store an in-app notification.

    Args:
        user: Recipient
        title: Notification title
        message: Notification text
        type: One of ``Notification.Type``
        data: Extra payload for the client (ids to link to)

    Returns:
        Notification: the created record
    """
    from .models import Notification

    notification = Notification.objects.create(
        user=user,
        type=type,
        title=title,
        message=message,
        data=data or {},
    )
    logger.info("In-app notification created for user %s: %s", user.pk, title)
    return notification
