"""Serializers for the booking domain."""

from __future__ import annotations

import re

from rest_framework import serializers  # type: ignore

from apps.hostels.models import Room

from .models import Booking

ACADEMIC_YEAR_RE = re.compile(r"^(\d{4})/(\d{4})$")


class RoomRequestSerializer(serializers.Serializer):
    """Input of the hold and book endpoints."""

    room = serializers.PrimaryKeyRelatedField(queryset=Room.objects.select_related("hostel"))
    semester = serializers.ChoiceField(choices=Booking.Semester.choices, default=Booking.Semester.FIRST)
    academic_year = serializers.CharField(required=False, allow_blank=True, max_length=9)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_room(self, room: Room) -> Room:
        if not room.hostel.is_active:
            raise serializers.ValidationError("This hostel is not accepting bookings.")
        return room

    def validate_academic_year(self, value: str) -> str:
        if not value:
            return value
        match = ACADEMIC_YEAR_RE.match(value)
        if not match or int(match.group(2)) != int(match.group(1)) + 1:
            raise serializers.ValidationError("Use the YYYY/YYYY format, e.g. 2025/2026.")
        return value


class CancelBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class CheckoutRequestSerializer(serializers.Serializer):
    success_url = serializers.URLField(required=False)
    cancel_url = serializers.URLField(required=False)


class BookingSerializer(serializers.ModelSerializer):
    """Detailed booking representation."""

    student_id = serializers.ReadOnlyField(source="student.id")
    hostel_id = serializers.ReadOnlyField(source="hostel.id")
    hostel_name = serializers.ReadOnlyField(source="hostel.name")
    room_id = serializers.ReadOnlyField(source="room.id")
    room_number = serializers.ReadOnlyField(source="room.room_number")

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_code",
            "student_id",
            "hostel_id",
            "hostel_name",
            "room_id",
            "room_number",
            "semester",
            "academic_year",
            "status",
            "payment_status",
            "total_amount",
            "amount_paid",
            "hold_expires_at",
            "payment_deadline",
            "notes",
            "cancelled_at",
            "cancellation_source",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

