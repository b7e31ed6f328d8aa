"""Booking lifecycle controller.

Runs hold, book and pay requests on behalf of a single student and turns
store outcomes into a small set of errors, each carrying the notice the
client should show. The controller never computes availability itself: the
store's conflict check is the only authority, and a refused booking comes
back with the room as the store sees it now.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from django.db import DatabaseError  # type: ignore

from apps.hostels.models import Room
from apps.payments import services as payment_services
from apps.payments.stripe_service import StripePaymentError

from . import services
from .models import Booking
from .tasks import notify_hold_placed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: str = "destructive"

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "description": self.description, "variant": self.variant}


class BookingError(Exception):
    """Base error of the lifecycle controller."""

    title = "Booking failed"
    default_description = "Something went wrong. Please try again."
    status_code = 400

    def __init__(self, description: str | None = None):
        self.description = description or self.default_description
        super().__init__(self.description)

    @property
    def notice(self) -> Notice:
        return Notice(self.title, self.description)


class AuthenticationRequired(BookingError):
    title = "Authentication required"
    default_description = "Please log in to book a room."
    status_code = 401


class StudentAccountRequired(AuthenticationRequired):
    default_description = "Only student accounts can hold or book rooms."
    status_code = 403


class DuplicateBooking(BookingError):
    title = "Booking exists"
    default_description = services.DUPLICATE_MESSAGE
    status_code = 409


class RoomUnavailable(BookingError):
    title = "Room unavailable"
    default_description = services.ROOM_FULL_MESSAGE
    status_code = 409

    def __init__(self, description: str | None = None, *, room: Room | None = None):
        super().__init__(description)
        self.room = room


class PaymentSessionFailure(BookingError):
    title = "Payment error"
    default_description = "Failed to process payment. Please try again."
    status_code = 502


class NetworkOrBackendError(BookingError):
    title = "Service unavailable"
    default_description = "We could not reach the booking service. Please try again."
    status_code = 503


@dataclass(frozen=True)
class StudentContext:
    """Who is acting. Built per request and passed in explicitly."""

    user: Any

    @classmethod
    def from_request(cls, request) -> "StudentContext":
        return cls(user=request.user)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user is not None and self.user.is_authenticated)

    def require_student(self):
        if not self.is_authenticated:
            raise AuthenticationRequired()
        if not self.user.is_student():
            raise StudentAccountRequired()
        return self.user


@dataclass(frozen=True)
class CheckoutRedirect:
    url: str
    session_id: str
    payment_id: int


@contextmanager
def _backend_errors():
    try:
        yield
    except DatabaseError as exc:
        logger.error("Booking store error: %s", exc, exc_info=True)
        raise NetworkOrBackendError() from exc


class BookingLifecycleController:
    """Hold, book and pay for rooms as one student."""

    def __init__(self, context: StudentContext):
        self.context = context

    def _refetch_room(self, room: Room) -> Room | None:
        return Room.objects.select_related("hostel").filter(pk=room.pk).first()

    def hold_room(
        self,
        room: Room,
        *,
        semester: str = Booking.Semester.FIRST,
        academic_year: str | None = None,
    ) -> Booking:
        """Place an advisory hold for the configured number of hours."""
        student = self.context.require_student()
        with _backend_errors():
            try:
                booking = services.create_hold(
                    student=student,
                    room=room,
                    semester=semester,
                    academic_year=academic_year,
                )
            except services.DuplicateBookingError as exc:
                raise DuplicateBooking(str(exc)) from exc

        notify_hold_placed.delay(booking.pk)
        return booking

    def book_room(
        self,
        room: Room,
        *,
        semester: str = Booking.Semester.FIRST,
        academic_year: str | None = None,
        notes: str = "",
    ) -> Booking:
        """Book a bed through the store's atomic conflict check."""
        student = self.context.require_student()
        with _backend_errors():
            result = services.create_booking_with_conflict_check(
                student=student,
                room=room,
                amount=services.quote_amount(room, semester),
                semester=semester,
                academic_year=academic_year,
                notes=notes,
            )
            if result.success:
                return Booking.objects.select_related("hostel", "room").get(pk=result.booking_id)

            if result.error_code == "duplicate":
                raise DuplicateBooking(result.error_message)
            logger.info("Room %s refused booking for student %s: %s", room.pk, student.pk, result.error_message)
            raise RoomUnavailable(result.error_message, room=self._refetch_room(room))

    def process_payment(
        self,
        booking: Booking,
        *,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> CheckoutRedirect:
        """Open a hosted checkout for the booking and return where to send the browser.

        The booking status is left alone; confirmation happens when the
        payment is verified.
        """
        student = self.context.require_student()
        if booking.student_id != student.pk:
            raise AuthenticationRequired("You can only pay for your own bookings.")
        if booking.status not in (Booking.Status.PENDING, Booking.Status.ON_HOLD):
            raise PaymentSessionFailure(f"A {booking.get_status_display().lower()} booking cannot be paid.")
        if booking.payment_status == Booking.PaymentStatus.PAID:
            raise PaymentSessionFailure("This booking is already paid.")

        with _backend_errors():
            try:
                payment = payment_services.start_checkout(
                    booking,
                    success_url=success_url,
                    cancel_url=cancel_url,
                )
            except StripePaymentError as exc:
                raise PaymentSessionFailure() from exc

        return CheckoutRedirect(url=payment.checkout_url, session_id=payment.session_id, payment_id=payment.pk)
