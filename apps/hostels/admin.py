"""Admin registrations for the hostels domain."""

from __future__ import annotations

from django.contrib import admin

from .models import Amenity, Hostel, Room


@admin.register(Amenity)
class AmenityAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "icon")
    list_filter = ("category",)
    search_fields = ("name",)


class RoomInline(admin.TabularInline):
    model = Room
    extra = 0
    fields = ("room_number", "room_type", "capacity", "occupied", "price_per_semester")
    readonly_fields = ("occupied",)


@admin.register(Hostel)
class HostelAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "hostel_type", "landlord", "is_active", "is_verified", "rating")
    list_filter = ("city", "hostel_type", "is_active", "is_verified")
    search_fields = ("name", "city", "address", "landlord__email")
    filter_horizontal = ("amenities",)
    inlines = [RoomInline]


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("hostel", "room_number", "room_type", "capacity", "occupied")
    list_filter = ("room_type",)
    search_fields = ("hostel__name", "room_number")
    readonly_fields = ("occupied",)
