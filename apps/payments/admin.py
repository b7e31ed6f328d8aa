"""Admin registration for payments."""

from __future__ import annotations

from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("session_id", "booking", "status", "amount", "currency", "paid_at", "created_at")
    list_filter = ("status", "provider", "currency")
    search_fields = ("session_id", "payment_intent", "booking__booking_code")
    readonly_fields = ("session_id", "payment_intent", "checkout_url", "metadata", "created_at", "updated_at")
