"""Hostel and room models.

A hostel belongs to a landlord and owns a set of rooms. Each room carries
its bed ``capacity`` and the number of beds currently ``occupied``. Room
availability is never stored: it is derived from ``occupied < capacity``
whenever it is read, and the database refuses any row where occupancy
exceeds capacity.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.db.models import Count, F, Q  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from .signals import occupancy_changed


class Amenity(models.Model):
    """Amenity that can be attached to a hostel or a room."""

    class Category(models.TextChoices):
        BASIC = "basic", _("Basic")
        STUDY = "study", _("Study")
        SAFETY = "safety", _("Safety")
        LEISURE = "leisure", _("Leisure")

    name = models.CharField(max_length=100, unique=True)
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        default=Category.BASIC,
    )
    icon = models.CharField(
        max_length=100,
        blank=True,
        help_text=_("Icon identifier used by the web client."),
    )

    class Meta:
        verbose_name = _("Amenity")
        verbose_name_plural = _("Amenities")
        ordering = ["category", "name"]

    def __str__(self) -> str:
        return self.name


class HostelQuerySet(models.QuerySet):
    def active(self) -> "HostelQuerySet":
        return self.filter(is_active=True)

    def with_room_counts(self) -> "HostelQuerySet":
        return self.annotate(
            total_rooms=Count("rooms", distinct=True),
            available_rooms=Count(
                "rooms",
                filter=Q(rooms__occupied__lt=F("rooms__capacity")),
                distinct=True,
            ),
        )


class Hostel(models.Model):
    """A hostel listed by a landlord."""

    class HostelType(models.TextChoices):
        MALE = "male", _("Male only")
        FEMALE = "female", _("Female only")
        MIXED = "mixed", _("Mixed")

    landlord = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="hostels",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    address = models.CharField(max_length=255)
    city = models.CharField(max_length=100)
    region = models.CharField(max_length=100, blank=True)
    hostel_type = models.CharField(
        max_length=10,
        choices=HostelType.choices,
        default=HostelType.MIXED,
    )
    amenities = models.ManyToManyField(Amenity, blank=True, related_name="hostels")
    price_per_semester = models.DecimalField(max_digits=10, decimal_places=2)
    price_per_academic_year = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
    )
    security_deposit = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    is_verified = models.BooleanField(default=False)
    rating = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(0), MaxValueValidator(5)],
    )
    total_reviews = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = HostelQuerySet.as_manager()

    class Meta:
        verbose_name = _("Hostel")
        verbose_name_plural = _("Hostels")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["city", "is_active"]),
            models.Index(fields=["landlord", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.city})"


class RoomQuerySet(models.QuerySet):
    def available(self) -> "RoomQuerySet":
        return self.filter(occupied__lt=F("capacity"))

    def claim_bed(self, room_id) -> bool:
        """Take one bed in a single conditional UPDATE.

        Returns False when the room is already full; the row is never
        read-modified-written, so concurrent callers cannot both take the
        last bed.
        """
        updated = self.filter(pk=room_id, occupied__lt=F("capacity")).update(
            occupied=F("occupied") + 1
        )
        if updated:
            occupancy_changed.send(sender=Room, room_id=room_id, delta=1)
        return bool(updated)

    def release_bed(self, room_id) -> bool:
        updated = self.filter(pk=room_id, occupied__gt=0).update(occupied=F("occupied") - 1)
        if updated:
            occupancy_changed.send(sender=Room, room_id=room_id, delta=-1)
        return bool(updated)


class Room(models.Model):
    """A room inside a hostel with a fixed number of beds."""

    class RoomType(models.TextChoices):
        SINGLE = "single", _("Single")
        DOUBLE = "double", _("Double")
        TRIPLE = "triple", _("Triple")
        QUAD = "quad", _("Quad")
        DORMITORY = "dormitory", _("Dormitory")

    hostel = models.ForeignKey(Hostel, on_delete=models.CASCADE, related_name="rooms")
    room_number = models.CharField(max_length=20)
    room_type = models.CharField(max_length=20, choices=RoomType.choices)
    floor = models.SmallIntegerField(null=True, blank=True)
    capacity = models.PositiveSmallIntegerField(validators=[MinValueValidator(1)])
    occupied = models.PositiveSmallIntegerField(default=0)
    price_per_semester = models.DecimalField(max_digits=10, decimal_places=2)
    price_per_academic_year = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
    )
    description = models.TextField(blank=True)
    amenities = models.ManyToManyField(Amenity, blank=True, related_name="rooms")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RoomQuerySet.as_manager()

    class Meta:
        verbose_name = _("Room")
        verbose_name_plural = _("Rooms")
        ordering = ["hostel_id", "room_number"]
        constraints = [
            models.UniqueConstraint(fields=["hostel", "room_number"], name="room_unique_number_per_hostel"),
            models.CheckConstraint(condition=Q(capacity__gte=1), name="room_capacity_positive"),
            models.CheckConstraint(condition=Q(occupied__gte=0), name="room_occupied_non_negative"),
            models.CheckConstraint(
                condition=Q(occupied__lte=F("capacity")),
                name="room_occupied_within_capacity",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.hostel.name} #{self.room_number}"

    @property
    def is_available(self) -> bool:
        return self.occupied < self.capacity

    @property
    def available_beds(self) -> int:
        return max(self.capacity - self.occupied, 0)
