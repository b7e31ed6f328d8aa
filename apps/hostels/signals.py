"""Signals raised by the hostels domain."""

from django.dispatch import Signal  # type: ignore

# Sent after a conditional occupancy update changed a room's ``occupied``
# counter. Queryset updates bypass ``post_save``, so listeners that mirror
# room state subscribe to this instead. Arguments: ``room_id``, ``delta``.
occupancy_changed = Signal()
