"""Serializers for authentication flows (register, login)."""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model  # type: ignore
from django.db import transaction  # type: ignore
from rest_framework import serializers  # type: ignore

from .models import PHONE_VALIDATOR


User = get_user_model()

SELF_SERVICE_ROLES = (
    User.RoleChoices.STUDENT,
    User.RoleChoices.LANDLORD,
)


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    phone = serializers.CharField(required=False, allow_blank=True, validators=[PHONE_VALIDATOR])
    password = serializers.CharField(min_length=8, write_only=True)
    password_confirm = serializers.CharField(min_length=8, write_only=True)
    first_name = serializers.CharField(required=False, allow_blank=True)
    last_name = serializers.CharField(required=False, allow_blank=True)
    username = serializers.CharField(required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=SELF_SERVICE_ROLES, default=User.RoleChoices.STUDENT)
    institution = serializers.CharField(required=False, allow_blank=True)
    program = serializers.CharField(required=False, allow_blank=True)
    student_number = serializers.CharField(required=False, allow_blank=True)
    business_name = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        if attrs.get("password") != attrs.get("password_confirm"):
            raise serializers.ValidationError({"password_confirm": "Passwords do not match."})
        email = attrs.get("email")
        phone = attrs.get("phone")
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError({"email": "A user with this e-mail already exists."})
        if phone and User.objects.filter(phone=phone).exists():
            raise serializers.ValidationError({"phone": "A user with this phone already exists."})
        if not phone:
            attrs.pop("phone", None)
        return attrs

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]):  # type: ignore
        password = validated_data.pop("password")
        validated_data.pop("password_confirm", None)
        return User.objects.create_user(password=password, **validated_data)


class LoginSerializer(serializers.Serializer):
    login = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        login = attrs.get("login", "")
        password = attrs.get("password", "")

        try:
            if "@" in login:
                user = User.objects.get(email__iexact=login)
            else:
                user = User.objects.get(phone=login)
        except User.DoesNotExist:
            raise serializers.ValidationError({"login": "Invalid login or password."})

        if not user.is_active or not user.check_password(password):
            raise serializers.ValidationError({"login": "Invalid login or password."})

        attrs["user"] = user
        return attrs
