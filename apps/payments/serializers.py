"""Serializers for payments."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    booking_code = serializers.ReadOnlyField(source="booking.booking_code")

    class Meta:
        model = Payment
        fields = [
            "id",
            "booking",
            "booking_code",
            "status",
            "provider",
            "session_id",
            "checkout_url",
            "amount",
            "currency",
            "paid_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields


class VerifyPaymentSerializer(serializers.Serializer):
    session_id = serializers.CharField(max_length=255)
    booking_id = serializers.IntegerField(min_value=1)
