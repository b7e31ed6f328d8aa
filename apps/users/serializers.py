"""Serializers for user-related API endpoints."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import serializers  # type: ignore

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Full user profile."""

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "first_name",
            "last_name",
            "phone",
            "role",
            "institution",
            "program",
            "student_number",
            "business_name",
            "verification_status",
            "is_email_verified",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "email",
            "role",
            "verification_status",
            "is_email_verified",
            "created_at",
            "updated_at",
        ]


class UserShortSerializer(serializers.ModelSerializer):
    """Compact representation embedded in bookings, messages and reviews."""

    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "display_name", "role"]
