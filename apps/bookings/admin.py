"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "booking_code",
        "hostel",
        "room",
        "student",
        "status",
        "payment_status",
        "semester",
        "academic_year",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "payment_status", "semester", "academic_year")
    search_fields = ("booking_code", "hostel__name", "student__email")
    readonly_fields = (
        "booking_code",
        "claims_bed",
        "hold_expires_at",
        "payment_deadline",
        "created_at",
        "updated_at",
    )
