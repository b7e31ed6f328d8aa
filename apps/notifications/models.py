"""Notification model.

Defines a notification entity delivered to users in the web client.
Notifications are created by domain services (hold placed, booking
confirmed, hold expired, new message) and consumed by recipients. Each
notification can be marked as read.
"""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Notification(models.Model):
    """A message sent to a user about some event."""

    class Type(models.TextChoices):
        BOOKING = "booking", _("Booking")
        PAYMENT = "payment", _("Payment")
        MESSAGE = "message", _("Message")
        REVIEW = "review", _("Review")
        SYSTEM = "system", _("System")

    user = models.ForeignKey(
        'users.CustomUser', on_delete=models.CASCADE, related_name='notifications'
    )
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.SYSTEM)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [models.Index(fields=['user', 'read_at'])]

    def __str__(self) -> str:
        return f"Notification to {self.user_id}: {self.title}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def mark_read(self) -> None:
        if self.read_at is None:
            self.read_at = timezone.now()
            self.save(update_fields=['read_at'])
