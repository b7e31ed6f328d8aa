"""Atomic store operations for the booking lifecycle.

Every function here runs inside its own transaction and is the only code
allowed to change a room's ``occupied`` counter. Bed claims go through
``Room.objects.claim_bed`` (a conditional UPDATE), so two callers racing for
the last bed can never both succeed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.contrib.auth import get_user_model  # type: ignore
from django.db import IntegrityError, transaction  # type: ignore
from django.db.models import Q  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.hostels.models import Room

from .models import Booking, current_academic_year

logger = logging.getLogger(__name__)


def _hold_hours() -> int:
    return getattr(settings, "BOOKING_HOLD_HOURS", 24)


def _payment_window_minutes() -> int:
    return getattr(settings, "BOOKING_PAYMENT_WINDOW_MINUTES", 30)


DUPLICATE_MESSAGE = "You already have an active booking for this hostel."
ROOM_FULL_MESSAGE = "Room is no longer available."


class BookingServiceError(Exception):
    """Base class for failures of the atomic booking operations."""


class DuplicateBookingError(BookingServiceError):
    """The student already has a pending, held or confirmed booking for the hostel."""


class BookingConflictError(BookingServiceError):
    """The room has no free bed left."""


class HoldExpiredError(BookingServiceError):
    """A payment arrived for a hold whose deadline has already passed."""


@dataclass(frozen=True)
class ConflictCheckResult:
    success: bool
    booking_id: int | None = None
    error_message: str = ""
    error_code: str = ""


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _lock_student(student) -> None:
    # Serialises concurrent requests of one student so the duplicate check
    # and the insert below see the same state.
    User = get_user_model()
    list(_lock_queryset_if_possible(User.objects.filter(pk=student.pk)).values_list("pk", flat=True))


def _has_active_booking(student, hostel_id) -> bool:
    return Booking.objects.filter(
        student=student,
        hostel_id=hostel_id,
        status__in=Booking.ACTIVE_STATUSES,
    ).exists()


def quote_amount(room: Room, semester: str) -> Decimal:
    """Price of one bed in ``room`` for the given billing period."""
    if semester == Booking.Semester.FULL_YEAR:
        if room.price_per_academic_year is not None:
            return room.price_per_academic_year
        return room.price_per_semester * 2
    return room.price_per_semester


def create_hold(
    *,
    student,
    room: Room,
    semester: str = Booking.Semester.FIRST,
    academic_year: str | None = None,
    notes: str = "",
    now: datetime | None = None,
) -> Booking:
    """Insert an advisory on-hold booking.

    A hold does not claim a bed: two students may hold the same last bed
    and whoever pays first gets it.
    """
    now = now or timezone.now()
    hold_hours = _hold_hours()
    try:
        with transaction.atomic():
            _lock_student(student)
            if _has_active_booking(student, room.hostel_id):
                raise DuplicateBookingError(DUPLICATE_MESSAGE)
            booking = Booking.objects.create(
                student=student,
                hostel_id=room.hostel_id,
                room=room,
                semester=semester,
                academic_year=academic_year or current_academic_year(now),
                status=Booking.Status.ON_HOLD,
                payment_status=Booking.PaymentStatus.PENDING,
                total_amount=quote_amount(room, semester),
                hold_expires_at=now + timedelta(hours=hold_hours),
                notes=notes or f"Room held for {hold_hours} hours",
            )
    except IntegrityError as exc:
        raise DuplicateBookingError(DUPLICATE_MESSAGE) from exc

    logger.info(
        "Hold %s placed on room %s by student %s until %s",
        booking.booking_code,
        room.pk,
        student.pk,
        booking.hold_expires_at.isoformat(),
    )
    return booking


def create_booking_with_conflict_check(
    *,
    student,
    room: Room,
    amount: Decimal | None = None,
    semester: str = Booking.Semester.FIRST,
    academic_year: str | None = None,
    notes: str = "",
    now: datetime | None = None,
) -> ConflictCheckResult:
    """Create a pending booking only if a bed can be claimed right now.

    Returns a result object instead of raising so callers can surface the
    failure message as-is.
    """
    now = now or timezone.now()
    try:
        with transaction.atomic():
            _lock_student(student)
            if _has_active_booking(student, room.hostel_id):
                return ConflictCheckResult(False, error_message=DUPLICATE_MESSAGE, error_code="duplicate")
            if not Room.objects.claim_bed(room.pk):
                return ConflictCheckResult(False, error_message=ROOM_FULL_MESSAGE, error_code="room_unavailable")
            booking = Booking.objects.create(
                student=student,
                hostel_id=room.hostel_id,
                room=room,
                semester=semester,
                academic_year=academic_year or current_academic_year(now),
                status=Booking.Status.PENDING,
                payment_status=Booking.PaymentStatus.PENDING,
                total_amount=amount if amount is not None else quote_amount(room, semester),
                claims_bed=True,
                payment_deadline=now + timedelta(minutes=_payment_window_minutes()),
                notes=notes,
            )
    except IntegrityError:
        # The partial unique index caught a concurrent duplicate; the bed
        # claim above was rolled back with it.
        return ConflictCheckResult(False, error_message=DUPLICATE_MESSAGE, error_code="duplicate")

    logger.info(
        "Booking %s created for room %s by student %s",
        booking.booking_code,
        room.pk,
        student.pk,
    )
    return ConflictCheckResult(True, booking_id=booking.pk)


def confirm_paid_booking(
    booking_id: int,
    *,
    amount_paid: Decimal,
    now: datetime | None = None,
) -> Booking:
    """Mark a booking as paid and confirmed.

    Idempotent: a booking that is already confirmed and paid is returned
    untouched. A paid hold claims its bed here; if the room filled up in
    the meantime ``BookingConflictError`` is raised and nothing changes.
    """
    now = now or timezone.now()
    with transaction.atomic():
        booking = _lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).get()

        if booking.status == Booking.Status.CONFIRMED and booking.payment_status == Booking.PaymentStatus.PAID:
            return booking

        if booking.hold_has_lapsed(now):
            raise HoldExpiredError(f"Hold {booking.booking_code} expired at {booking.hold_expires_at}.")
        booking.ensure_transition(Booking.Status.CONFIRMED)

        if not booking.claims_bed:
            if booking.room_id is None or not Room.objects.claim_bed(booking.room_id):
                raise BookingConflictError(ROOM_FULL_MESSAGE)
            booking.claims_bed = True

        booking.status = Booking.Status.CONFIRMED
        booking.payment_status = Booking.PaymentStatus.PAID
        booking.amount_paid = amount_paid
        booking.hold_expires_at = None
        booking.payment_deadline = None
        booking.save(
            update_fields=[
                "status",
                "payment_status",
                "amount_paid",
                "claims_bed",
                "hold_expires_at",
                "payment_deadline",
                "updated_at",
            ]
        )

    logger.info("Booking %s confirmed, amount paid %s", booking.booking_code, amount_paid)
    return booking


def _release_claim(booking: Booking) -> None:
    if booking.claims_bed and booking.room_id is not None:
        if not Room.objects.release_bed(booking.room_id):
            logger.error(
                "Room %s had no occupied bed to release for booking %s",
                booking.room_id,
                booking.booking_code,
            )
    booking.claims_bed = False


def cancel_booking(
    booking_id: int,
    *,
    source: str,
    reason: str = "",
    payment_status: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Cancel a pending or held booking and give back its bed, if any."""
    now = now or timezone.now()
    with transaction.atomic():
        booking = _lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).get()
        booking.ensure_transition(Booking.Status.CANCELLED)
        _release_claim(booking)
        booking.status = Booking.Status.CANCELLED
        booking.hold_expires_at = None
        booking.payment_deadline = None
        booking.cancelled_at = now
        booking.cancellation_source = source
        booking.cancellation_reason = reason[:255]
        if payment_status:
            booking.payment_status = payment_status
        booking.save(
            update_fields=[
                "status",
                "payment_status",
                "claims_bed",
                "hold_expires_at",
                "payment_deadline",
                "cancelled_at",
                "cancellation_source",
                "cancellation_reason",
                "updated_at",
            ]
        )

    logger.info("Booking %s cancelled by %s: %s", booking.booking_code, source, reason or "-")
    return booking


def complete_booking(booking_id: int) -> Booking:
    """Close a confirmed booking at the end of the stay and free the bed."""
    with transaction.atomic():
        booking = _lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).get()
        booking.ensure_transition(Booking.Status.COMPLETED)
        _release_claim(booking)
        booking.status = Booking.Status.COMPLETED
        booking.save(update_fields=["status", "claims_bed", "updated_at"])

    logger.info("Booking %s completed", booking.booking_code)
    return booking


def stale_bookings(now: datetime | None = None):
    """Queryset of holds and unpaid bookings whose deadline has passed."""
    now = now or timezone.now()
    return Booking.objects.filter(
        Q(status=Booking.Status.ON_HOLD, hold_expires_at__lte=now)
        | Q(status=Booking.Status.PENDING, payment_deadline__lte=now)
    )


def expire_booking(booking_id: int, *, now: datetime | None = None) -> Booking | None:
    """Cancel one stale booking. Returns None if it is no longer stale."""
    now = now or timezone.now()
    with transaction.atomic():
        booking = _lock_queryset_if_possible(Booking.objects.filter(pk=booking_id)).get()
        if booking.hold_has_lapsed(now):
            reason = "Hold expired"
        elif booking.payment_window_has_lapsed(now):
            reason = "Payment window elapsed"
        else:
            return None
        return cancel_booking(
            booking.pk,
            source=Booking.CancellationSource.SYSTEM,
            reason=reason,
            payment_status=Booking.PaymentStatus.FAILED,
            now=now,
        )
