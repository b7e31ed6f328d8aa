"""Conversation and message operations shared by the API views."""

from __future__ import annotations

import logging

from django.db import IntegrityError, transaction  # type: ignore
from django.db.models import Q  # type: ignore
from django.utils import timezone  # type: ignore

from apps.notifications.services import create_in_app_notification

from .models import Conversation, Message

logger = logging.getLogger(__name__)


class ConversationError(Exception):
    """The requested conversation cannot be started or used."""


def conversations_for(user):
    return Conversation.objects.filter(Q(student=user) | Q(landlord=user)).select_related(
        "student", "landlord", "hostel"
    )


def start_conversation(*, student, landlord, hostel=None, booking=None) -> tuple[Conversation, bool]:
    """Return the pair's conversation about ``hostel``, creating it if needed."""
    if student.pk == landlord.pk:
        raise ConversationError("You cannot start a conversation with yourself.")

    lookup = {"student": student, "landlord": landlord, "hostel": hostel}
    existing = Conversation.objects.filter(**lookup).first()
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            conversation = Conversation.objects.create(booking=booking, **lookup)
    except IntegrityError:
        # Both sides opened the thread at the same moment.
        return Conversation.objects.get(**lookup), False

    logger.info("Conversation %s started between %s and %s", conversation.pk, student.pk, landlord.pk)
    return conversation, True


def send_message(
    conversation: Conversation,
    sender,
    content: str,
    *,
    message_type: str = Message.Type.TEXT,
) -> Message:
    """Store a message and drop an in-app notification on the recipient."""
    recipient = conversation.other_participant(sender)
    if recipient is None:
        raise ConversationError("You are not a participant of this conversation.")

    message = Message.objects.create(
        conversation=conversation,
        sender=sender,
        recipient=recipient,
        content=content,
        message_type=message_type,
    )
    create_in_app_notification(
        user=recipient,
        title="New Message",
        message=f"You have a new message from {sender.display_name}",
        type="message",
        data={"conversation_id": conversation.pk, "sender_id": sender.pk},
    )
    return message


def mark_conversation_read(conversation: Conversation, user) -> int:
    """Mark every message addressed to ``user`` as read; returns how many changed."""
    return conversation.messages.filter(recipient=user, read_at__isnull=True).update(read_at=timezone.now())


def unread_message_count(user) -> int:
    return Message.objects.filter(recipient=user, read_at__isnull=True).count()
