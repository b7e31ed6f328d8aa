"""Booking domain models."""

from __future__ import annotations

import secrets
from datetime import datetime
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.db.models import Q  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class InvalidTransition(Exception):
    """Raised when a booking is asked to move to a status it cannot reach."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move booking from {current} to {target}.")
        self.current = current
        self.target = target


def current_academic_year(now: datetime | None = None) -> str:
    year = (now or timezone.now()).year
    return f"{year}/{year + 1}"


class Booking(models.Model):
    """A student's hold or booking of a bed in a hostel room."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending payment")
        ON_HOLD = "on_hold", _("On hold")
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")
        COMPLETED = "completed", _("Completed")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Awaiting payment")
        PARTIAL = "partial", _("Partially paid")
        PAID = "paid", _("Paid")
        FAILED = "failed", _("Payment failed")
        REFUNDED = "refunded", _("Refunded")

    class Semester(models.TextChoices):
        FIRST = "first", _("First semester")
        SECOND = "second", _("Second semester")
        FULL_YEAR = "full_year", _("Full academic year")

    class CancellationSource(models.TextChoices):
        STUDENT = "student", _("Student")
        LANDLORD = "landlord", _("Landlord")
        SYSTEM = "system", _("System")

    ACTIVE_STATUSES = (Status.PENDING, Status.ON_HOLD, Status.CONFIRMED)
    TERMINAL_STATUSES = (Status.CANCELLED, Status.COMPLETED)

    TRANSITIONS = {
        Status.PENDING: {Status.ON_HOLD, Status.CONFIRMED, Status.CANCELLED},
        Status.ON_HOLD: {Status.CONFIRMED, Status.CANCELLED},
        Status.CONFIRMED: {Status.COMPLETED},
        Status.CANCELLED: set(),
        Status.COMPLETED: set(),
    }

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    hostel = models.ForeignKey(
        "hostels.Hostel",
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    room = models.ForeignKey(
        "hostels.Room",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings",
    )
    booking_code = models.CharField(max_length=12, unique=True, editable=False)
    semester = models.CharField(
        max_length=20,
        choices=Semester.choices,
        default=Semester.FIRST,
    )
    academic_year = models.CharField(max_length=9, default=current_academic_year)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    claims_bed = models.BooleanField(
        default=False,
        help_text=_("Whether this booking accounts for one bed in the room's occupancy."),
    )
    hold_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("End of the hold; set only while the booking is on hold."),
    )
    payment_deadline = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("Payment is due by this time or the claimed bed is released."),
    )
    notes = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_source = models.CharField(
        max_length=20,
        choices=CancellationSource.choices,
        blank=True,
    )
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(status="on_hold") | Q(hold_expires_at__isnull=True),
                name="booking_hold_expiry_only_on_hold",
            ),
            models.CheckConstraint(
                condition=Q(status="pending") | Q(payment_deadline__isnull=True),
                name="booking_payment_deadline_only_pending",
            ),
            models.CheckConstraint(
                condition=Q(claims_bed=False) | Q(status__in=["pending", "confirmed"]),
                name="booking_bed_claim_only_when_active",
            ),
            models.CheckConstraint(
                condition=Q(amount_paid__gte=0),
                name="booking_amount_paid_non_negative",
            ),
            models.UniqueConstraint(
                fields=["student", "hostel"],
                condition=Q(status__in=["pending", "on_hold", "confirmed"]),
                name="booking_one_active_per_student_hostel",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "hold_expires_at"]),
            models.Index(fields=["status", "payment_deadline"]),
            models.Index(fields=["hostel", "status"]),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.booking_code} ({self.status})"

    def save(self, *args, **kwargs):  # type: ignore
        if self._state.adding and not self.booking_code:
            self.booking_code = self.generate_booking_code()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_booking_code() -> str:
        return secrets.token_hex(4).upper()

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    def can_transition(self, target: str) -> bool:
        return target in self.TRANSITIONS.get(self.status, set())

    def ensure_transition(self, target: str) -> None:
        if not self.can_transition(target):
            raise InvalidTransition(self.status, target)

    def hold_has_lapsed(self, now: datetime | None = None) -> bool:
        return bool(
            self.status == self.Status.ON_HOLD
            and self.hold_expires_at
            and self.hold_expires_at <= (now or timezone.now())
        )

    def payment_window_has_lapsed(self, now: datetime | None = None) -> bool:
        return bool(
            self.status == self.Status.PENDING
            and self.payment_deadline
            and self.payment_deadline <= (now or timezone.now())
        )
