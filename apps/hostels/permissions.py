"""Permissions for hostel and room management."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore

from .models import Hostel, Room


class IsLandlordOrReadOnly(permissions.BasePermission):
    """Anyone can read; landlords and admins can create listings."""

    def has_permission(self, request, view):  # type: ignore
        if request.method in permissions.SAFE_METHODS:
            return True
        user = request.user
        if not user.is_authenticated:
            return False
        return user.is_landlord() or user.is_platform_admin()


class IsHostelOwnerOrAdmin(permissions.BasePermission):
    """Only the hostel's landlord or an admin may change it or its rooms."""

    def has_object_permission(self, request, view, obj):  # type: ignore
        if request.method in permissions.SAFE_METHODS:
            return True
        user = request.user
        if user.is_platform_admin():
            return True
        hostel = obj.hostel if isinstance(obj, Room) else obj
        return isinstance(hostel, Hostel) and hostel.landlord_id == user.id
