"""Object permissions for bookings."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore

from .models import Booking


class IsBookingStakeholder(permissions.BasePermission):
    """The student, the hostel's landlord and admins can see a booking."""

    def has_object_permission(self, request, view, obj: Booking):  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        if user.is_platform_admin():
            return True
        if user.is_landlord():
            return obj.hostel.landlord_id == user.id
        return obj.student_id == user.id
