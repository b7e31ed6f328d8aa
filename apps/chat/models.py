"""Messaging between students and landlords.

A conversation always pairs one student with one landlord and may carry a
hostel or booking for context. Unread state lives on each message
(``read_at``), so counts are always derived from the messages themselves.
"""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.db.models import F, Q  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Conversation(models.Model):
    """A thread between a student and a landlord."""

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="student_conversations",
    )
    landlord = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="landlord_conversations",
    )
    hostel = models.ForeignKey(
        "hostels.Hostel",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="conversations",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="conversations",
    )
    last_message_at = models.DateTimeField(null=True, blank=True)
    last_message_preview = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Conversation")
        verbose_name_plural = _("Conversations")
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(fields=["student", "-last_message_at"]),
            models.Index(fields=["landlord", "-last_message_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(student=F("landlord")),
                name="chat_conversation_different_users",
            ),
            models.UniqueConstraint(
                fields=["student", "landlord", "hostel"],
                name="chat_conversation_unique_per_hostel",
            ),
        ]

    def __str__(self) -> str:
        return f"Conversation {self.pk}: student {self.student_id} / landlord {self.landlord_id}"

    def has_participant(self, user) -> bool:
        return user.pk in (self.student_id, self.landlord_id)

    def other_participant(self, user):
        if user.pk == self.student_id:
            return self.landlord
        if user.pk == self.landlord_id:
            return self.student
        return None

    def unread_count_for(self, user) -> int:
        return self.messages.filter(recipient=user, read_at__isnull=True).count()


class Message(models.Model):
    class Type(models.TextChoices):
        TEXT = "text", _("Text")
        BOOKING_INQUIRY = "booking_inquiry", _("Booking inquiry")
        SYSTEM = "system", _("System")

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name="messages")
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_messages",
    )
    message_type = models.CharField(max_length=20, choices=Type.choices, default=Type.TEXT)
    content = models.TextField()
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Message")
        verbose_name_plural = _("Messages")
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["conversation", "created_at"]),
            models.Index(fields=["recipient", "read_at"]),
        ]

    def __str__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"Message from {self.sender_id} at {self.created_at}: {preview}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def save(self, *args, **kwargs):
        """Keep the conversation's last-message fields in step with new messages."""
        is_new = self.pk is None
        super().save(*args, **kwargs)

        if is_new:
            self.conversation.last_message_at = self.created_at or timezone.now()
            self.conversation.last_message_preview = self.content[:200]
            self.conversation.save(update_fields=["last_message_at", "last_message_preview", "updated_at"])
