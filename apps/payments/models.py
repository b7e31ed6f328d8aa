"""Payment records for booking checkouts."""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Payment(models.Model):
    """One checkout attempt for a booking."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Created, awaiting payment")
        SUCCESS = "success", _("Paid")
        FAILED = "failed", _("Failed")
        REFUNDED = "refunded", _("Refunded")

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="payments",
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    provider = models.CharField(max_length=50, default="stripe")
    session_id = models.CharField(max_length=255, unique=True)
    payment_intent = models.CharField(max_length=255, blank=True)
    checkout_url = models.URLField(max_length=1024, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="ghs")
    metadata = models.JSONField(default=dict, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Payment {self.session_id} for booking {self.booking_id} ({self.status})"

    def mark_success(self, payment_intent: str | None = None) -> None:
        self.status = self.Status.SUCCESS
        if payment_intent:
            self.payment_intent = payment_intent
        self.paid_at = timezone.now()
        self.save(update_fields=["status", "payment_intent", "paid_at", "updated_at"])

    def mark_refunded(self, reason: str | None = None) -> None:
        self.status = self.Status.REFUNDED
        if reason:
            self.metadata["refund_reason"] = reason
        self.refunded_at = timezone.now()
        self.save(update_fields=["status", "metadata", "refunded_at", "updated_at"])
