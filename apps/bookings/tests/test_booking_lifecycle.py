"""Tests for the booking store operations and the lifecycle controller."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from apps.bookings import services
from apps.bookings.controller import (
    AuthenticationRequired,
    BookingLifecycleController,
    DuplicateBooking,
    NetworkOrBackendError,
    RoomUnavailable,
    StudentAccountRequired,
    StudentContext,
)
from apps.bookings.models import Booking, InvalidTransition
from apps.bookings.tasks import expire_stale_bookings
from apps.hostels.models import Room
from apps.notifications.models import Notification

pytestmark = pytest.mark.django_db


def controller_for(user) -> BookingLifecycleController:
    return BookingLifecycleController(StudentContext(user=user))


def occupied(room) -> int:
    return Room.objects.get(pk=room.pk).occupied


# ---------------------------------------------------------------------------
# hold_room
# ---------------------------------------------------------------------------

def test_hold_places_advisory_hold_without_claiming_a_bed(student, room):
    before = timezone.now()

    booking = controller_for(student).hold_room(room, academic_year="2025/2026")

    assert booking.status == Booking.Status.ON_HOLD
    assert booking.payment_status == Booking.PaymentStatus.PENDING
    assert booking.claims_bed is False
    assert booking.notes == "Room held for 24 hours"
    assert booking.total_amount == Decimal("2500.00")
    assert before + timedelta(hours=24) <= booking.hold_expires_at <= timezone.now() + timedelta(hours=24)
    assert occupied(room) == 0


def test_hold_notifies_student(student, room):
    controller_for(student).hold_room(room)

    notification = Notification.objects.get(user=student)
    assert notification.title == "Room held at Legon Heights"


def test_second_hold_for_same_hostel_is_a_duplicate(student, make_room):
    first = make_room("A1")
    second = make_room("A2")
    controller_for(student).hold_room(first)

    with pytest.raises(DuplicateBooking) as excinfo:
        controller_for(student).hold_room(second)

    assert excinfo.value.status_code == 409
    assert excinfo.value.notice.title == "Booking exists"
    assert Booking.objects.filter(student=student).count() == 1


def test_two_students_may_hold_the_last_bed(student, other_student, room):
    controller_for(student).hold_room(room)
    controller_for(other_student).hold_room(room)

    assert Booking.objects.filter(room=room, status=Booking.Status.ON_HOLD).count() == 2
    assert occupied(room) == 0


def test_full_year_hold_falls_back_to_two_semesters(student, room):
    booking = controller_for(student).hold_room(room, semester=Booking.Semester.FULL_YEAR)

    assert booking.total_amount == Decimal("5000.00")


# ---------------------------------------------------------------------------
# book_room
# ---------------------------------------------------------------------------

def test_book_claims_a_bed_and_opens_payment_window(student, room):
    booking = controller_for(student).book_room(room)

    assert booking.status == Booking.Status.PENDING
    assert booking.claims_bed is True
    assert booking.payment_deadline is not None
    assert booking.hold_expires_at is None
    assert occupied(room) == 1


def test_last_bed_goes_to_exactly_one_student(student, other_student, room):
    winner = controller_for(student).book_room(room)

    with pytest.raises(RoomUnavailable) as excinfo:
        controller_for(other_student).book_room(room)

    assert winner.status == Booking.Status.PENDING
    assert excinfo.value.description == "Room is no longer available."
    assert excinfo.value.room.occupied == 1
    assert excinfo.value.room.is_available is False
    assert occupied(room) == 1
    assert not Booking.objects.filter(student=other_student).exists()


def test_duplicate_booking_leaves_occupancy_untouched(student, make_room):
    first = make_room("A1", capacity=2)
    second = make_room("A2", capacity=2)
    controller_for(student).book_room(first)

    with pytest.raises(DuplicateBooking) as excinfo:
        controller_for(student).book_room(second)

    assert excinfo.value.description == "You already have an active booking for this hostel."
    assert occupied(first) == 1
    assert occupied(second) == 0


def test_conflict_check_reports_failures_as_results(student, other_student, room):
    ok = services.create_booking_with_conflict_check(student=student, room=room)
    refused = services.create_booking_with_conflict_check(student=other_student, room=room)

    assert ok.success and ok.booking_id
    assert not refused.success
    assert refused.error_code == "room_unavailable"
    assert refused.error_message == services.ROOM_FULL_MESSAGE


def test_anonymous_user_must_log_in(room):
    with pytest.raises(AuthenticationRequired) as excinfo:
        controller_for(AnonymousUser()).book_room(room)

    assert excinfo.value.status_code == 401
    assert excinfo.value.notice.to_dict() == {
        "title": "Authentication required",
        "description": "Please log in to book a room.",
        "variant": "destructive",
    }


def test_landlord_cannot_book(landlord, room):
    with pytest.raises(StudentAccountRequired):
        controller_for(landlord).hold_room(room)


def test_store_failure_becomes_backend_error(student, room):
    with mock.patch.object(services, "create_booking_with_conflict_check", side_effect=DatabaseError("gone")):
        with pytest.raises(NetworkOrBackendError) as excinfo:
            controller_for(student).book_room(room)

    assert excinfo.value.status_code == 503


def test_occupied_can_never_exceed_capacity(room):
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            Room.objects.filter(pk=room.pk).update(occupied=2)


# ---------------------------------------------------------------------------
# confirm / cancel / complete
# ---------------------------------------------------------------------------

def test_paid_hold_claims_bed_on_confirmation(student, room):
    hold = controller_for(student).hold_room(room)

    booking = services.confirm_paid_booking(hold.pk, amount_paid=Decimal("2500.00"))

    assert booking.status == Booking.Status.CONFIRMED
    assert booking.payment_status == Booking.PaymentStatus.PAID
    assert booking.hold_expires_at is None
    assert booking.claims_bed is True
    assert occupied(room) == 1


def test_confirmation_is_idempotent(student, room):
    booking = controller_for(student).book_room(room)

    services.confirm_paid_booking(booking.pk, amount_paid=Decimal("2500.00"))
    again = services.confirm_paid_booking(booking.pk, amount_paid=Decimal("2500.00"))

    assert again.status == Booking.Status.CONFIRMED
    assert occupied(room) == 1


def test_second_paid_hold_on_last_bed_conflicts(student, other_student, room):
    first = controller_for(student).hold_room(room)
    second = controller_for(other_student).hold_room(room)
    services.confirm_paid_booking(first.pk, amount_paid=Decimal("2500.00"))

    with pytest.raises(services.BookingConflictError):
        services.confirm_paid_booking(second.pk, amount_paid=Decimal("2500.00"))

    second.refresh_from_db()
    assert second.status == Booking.Status.ON_HOLD
    assert occupied(room) == 1


def test_payment_after_hold_expiry_is_refused(student, room):
    hold = services.create_hold(student=student, room=room, now=timezone.now() - timedelta(hours=25))

    with pytest.raises(services.HoldExpiredError):
        services.confirm_paid_booking(hold.pk, amount_paid=Decimal("2500.00"))

    assert occupied(room) == 0


def test_cancel_releases_claimed_bed(student, room):
    booking = controller_for(student).book_room(room)

    cancelled = services.cancel_booking(
        booking.pk,
        source=Booking.CancellationSource.STUDENT,
        reason="Changed plans",
    )

    assert cancelled.status == Booking.Status.CANCELLED
    assert cancelled.claims_bed is False
    assert cancelled.cancellation_reason == "Changed plans"
    assert cancelled.payment_deadline is None
    assert occupied(room) == 0


def test_cancelled_booking_cannot_be_cancelled_again(student, room):
    booking = controller_for(student).hold_room(room)
    services.cancel_booking(booking.pk, source=Booking.CancellationSource.STUDENT)

    with pytest.raises(InvalidTransition):
        services.cancel_booking(booking.pk, source=Booking.CancellationSource.STUDENT)


def test_confirmed_booking_cannot_be_cancelled(student, room):
    booking = controller_for(student).book_room(room)
    services.confirm_paid_booking(booking.pk, amount_paid=Decimal("2500.00"))

    with pytest.raises(InvalidTransition):
        services.cancel_booking(booking.pk, source=Booking.CancellationSource.STUDENT)
    assert occupied(room) == 1


def test_complete_frees_the_bed(student, room):
    booking = controller_for(student).book_room(room)
    services.confirm_paid_booking(booking.pk, amount_paid=Decimal("2500.00"))

    completed = services.complete_booking(booking.pk)

    assert completed.status == Booking.Status.COMPLETED
    assert occupied(room) == 0


def test_pending_booking_cannot_be_completed(student, room):
    booking = controller_for(student).book_room(room)

    with pytest.raises(InvalidTransition):
        services.complete_booking(booking.pk)


def test_cancelled_booking_frees_the_student_to_book_again(student, room):
    booking = controller_for(student).book_room(room)
    services.cancel_booking(booking.pk, source=Booking.CancellationSource.STUDENT)

    again = controller_for(student).book_room(room)

    assert again.status == Booking.Status.PENDING
    assert occupied(room) == 1


# ---------------------------------------------------------------------------
# expiry sweep
# ---------------------------------------------------------------------------

def test_sweep_cancels_lapsed_hold_and_lets_student_book(student, room):
    stale = services.create_hold(student=student, room=room, now=timezone.now() - timedelta(hours=25))

    result = expire_stale_bookings()

    stale.refresh_from_db()
    assert result == {"expired_holds": 1, "expired_unpaid": 0, "failed": 0}
    assert stale.status == Booking.Status.CANCELLED
    assert stale.cancellation_source == Booking.CancellationSource.SYSTEM
    assert stale.cancellation_reason == "Hold expired"
    assert stale.payment_status == Booking.PaymentStatus.FAILED
    assert Notification.objects.filter(user=student, title__contains="cancelled").exists()

    booking = controller_for(student).book_room(room)
    assert booking.status == Booking.Status.PENDING


def test_another_student_books_the_bed_after_a_lapsed_hold(student, other_student, room):
    services.create_hold(student=student, room=room, now=timezone.now() - timedelta(hours=24, minutes=1))

    expire_stale_bookings()
    booking = controller_for(other_student).book_room(room)

    assert booking.status == Booking.Status.PENDING
    assert booking.student == other_student
    assert occupied(room) == 1
    assert not Booking.objects.filter(student=student, status__in=Booking.ACTIVE_STATUSES).exists()


def test_sweep_releases_bed_of_unpaid_booking(student, other_student, room):
    result = services.create_booking_with_conflict_check(
        student=student,
        room=room,
        now=timezone.now() - timedelta(minutes=31),
    )
    assert occupied(room) == 1

    outcome = expire_stale_bookings()

    booking = Booking.objects.get(pk=result.booking_id)
    assert outcome["expired_unpaid"] == 1
    assert booking.status == Booking.Status.CANCELLED
    assert booking.cancellation_reason == "Payment window elapsed"
    assert occupied(room) == 0
    assert controller_for(other_student).book_room(room).claims_bed is True


def test_sweep_ignores_live_holds(student, room):
    hold = controller_for(student).hold_room(room)

    result = expire_stale_bookings()

    hold.refresh_from_db()
    assert result == {"expired_holds": 0, "expired_unpaid": 0, "failed": 0}
    assert hold.status == Booking.Status.ON_HOLD


def test_sweep_keeps_going_after_a_failure(student, other_student, make_room):
    first = services.create_hold(student=student, room=make_room("A1"), now=timezone.now() - timedelta(hours=30))
    second = services.create_hold(
        student=other_student,
        room=make_room("A2"),
        now=timezone.now() - timedelta(hours=30),
    )
    real_expire = services.expire_booking

    def flaky(booking_id, **kwargs):
        if booking_id == first.pk:
            raise DatabaseError("row locked")
        return real_expire(booking_id, **kwargs)

    with mock.patch("apps.bookings.tasks.expire_booking", side_effect=flaky):
        result = expire_stale_bookings()

    assert result == {"expired_holds": 1, "expired_unpaid": 0, "failed": 1}
    second.refresh_from_db()
    assert second.status == Booking.Status.CANCELLED


def test_expire_booking_skips_bookings_that_are_no_longer_stale(student, room):
    hold = controller_for(student).hold_room(room)

    assert services.expire_booking(hold.pk) is None
