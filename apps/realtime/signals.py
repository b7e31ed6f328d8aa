"""Publish room and booking changes to the change feed once they commit."""

import logging

from django.db import transaction  # type: ignore
from django.db.models.signals import post_delete, post_save  # type: ignore
from django.dispatch import receiver  # type: ignore

from apps.bookings.models import Booking
from apps.hostels.models import Room
from apps.hostels.signals import occupancy_changed

from .feed import ChangeEvent, get_feed
from .rows import booking_row, room_row

logger = logging.getLogger(__name__)

ROOMS_TABLE = "rooms"
BOOKINGS_TABLE = "bookings"


def _publish_on_commit(event: ChangeEvent) -> None:
    transaction.on_commit(lambda: get_feed().publish(event))


@receiver(post_save, sender=Room)
def room_saved(sender, instance, created, **kwargs):
    _publish_on_commit(ChangeEvent(ROOMS_TABLE, "insert" if created else "update", room_row(instance)))


@receiver(post_delete, sender=Room)
def room_deleted(sender, instance, **kwargs):
    _publish_on_commit(ChangeEvent(ROOMS_TABLE, "delete", {}, old=room_row(instance)))


@receiver(occupancy_changed)
def room_occupancy_changed(sender, room_id, delta, **kwargs):
    # The counter was changed by a queryset update; read the committed row.
    def publish():
        room = Room.objects.filter(pk=room_id).first()
        if room is None:
            logger.debug("Room %s vanished before its occupancy change was published", room_id)
            return
        get_feed().publish(ChangeEvent(ROOMS_TABLE, "update", room_row(room)))

    transaction.on_commit(publish)


@receiver(post_save, sender=Booking)
def booking_saved(sender, instance, created, **kwargs):
    _publish_on_commit(ChangeEvent(BOOKINGS_TABLE, "insert" if created else "update", booking_row(instance)))


@receiver(post_delete, sender=Booking)
def booking_deleted(sender, instance, **kwargs):
    _publish_on_commit(ChangeEvent(BOOKINGS_TABLE, "delete", {}, old=booking_row(instance)))
