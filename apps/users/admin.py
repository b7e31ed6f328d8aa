"""Admin registrations for the users domain."""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(BaseUserAdmin):
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (_("Personal info"), {"fields": ("username", "first_name", "last_name", "phone")}),
        (_("Student profile"), {"fields": ("institution", "program", "student_number")}),
        (_("Landlord profile"), {"fields": ("business_name", "verification_status")}),
        (_("Role"), {"fields": ("role", "is_email_verified")}),
        (
            _("Permissions"),
            {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")},
        ),
        (_("Important dates"), {"fields": ("last_login", "date_joined", "created_at", "updated_at")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2", "first_name", "last_name", "role"),
            },
        ),
    )
    list_display = ("email", "role", "institution", "business_name", "verification_status", "is_active")
    list_filter = ("role", "verification_status", "is_active", "is_staff")
    search_fields = ("email", "phone", "first_name", "last_name", "institution", "business_name")
    ordering = ("email",)
    readonly_fields = ("created_at", "updated_at", "date_joined")
