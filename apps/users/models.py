"""User domain models.

The marketplace distinguishes three roles: students who search for and book
hostel rooms, landlords who list hostels, and platform administrators. A
single user table carries the role together with the profile fields each
role needs (institution details for students, business details for
landlords).
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth.models import AbstractUser, BaseUserManager  # type: ignore
from django.core.validators import RegexValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


PHONE_VALIDATOR = RegexValidator(
    regex=r"^\+?\d{7,15}$",
    message=_("Invalid phone format. Use the international format without spaces."),
)


class CustomUserManager(BaseUserManager):
    """User manager that uses e-mail as the login."""

    use_in_migrations = True

    def _create_user(self, email: str, password: str | None, **extra_fields: Any):
        if not email:
            raise ValueError("An e-mail address is required.")
        email = self.normalize_email(email)

        phone = extra_fields.get("phone")
        if phone:
            extra_fields["phone"] = self.normalize_phone(phone)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email: str, password: str | None = None, **extra_fields: Any):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        extra_fields.setdefault("role", CustomUser.RoleChoices.STUDENT)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email: str, password: str | None = None, **extra_fields: Any):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", CustomUser.RoleChoices.ADMIN)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self._create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_phone(phone: str) -> str:
        """Strip spaces and dashes so phones are stored uniformly."""
        return phone.replace(" ", "").replace("-", "")


class CustomUser(AbstractUser):
    """Marketplace user with a role and role-specific profile fields."""

    class RoleChoices(models.TextChoices):
        STUDENT = "student", _("Student")
        LANDLORD = "landlord", _("Landlord")
        ADMIN = "admin", _("Administrator")

    class VerificationStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        VERIFIED = "verified", _("Verified")
        REJECTED = "rejected", _("Rejected")

    username = models.CharField(
        _("Display name"),
        max_length=150,
        blank=True,
        help_text=_("Optional, shown in listings and notifications."),
    )
    email = models.EmailField(_("E-mail"), unique=True)
    phone = models.CharField(
        _("Phone"),
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        validators=[PHONE_VALIDATOR],
    )
    role = models.CharField(
        _("Role"),
        max_length=20,
        choices=RoleChoices.choices,
        default=RoleChoices.STUDENT,
    )
    # Student profile
    institution = models.CharField(_("Institution"), max_length=255, blank=True)
    program = models.CharField(_("Program"), max_length=255, blank=True)
    student_number = models.CharField(_("Student number"), max_length=50, blank=True)
    # Landlord profile
    business_name = models.CharField(_("Business name"), max_length=255, blank=True)
    verification_status = models.CharField(
        _("Verification status"),
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
    )
    is_email_verified = models.BooleanField(_("E-mail verified"), default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomUserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    class Meta:
        verbose_name = _("User")
        verbose_name_plural = _("Users")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.email} ({self.get_role_display()})"

    # --- Role helpers -------------------------------------------------------
    def is_student(self) -> bool:
        return self.role == self.RoleChoices.STUDENT

    def is_landlord(self) -> bool:
        return self.role == self.RoleChoices.LANDLORD

    def is_platform_admin(self) -> bool:
        return self.role == self.RoleChoices.ADMIN or self.is_superuser

    @property
    def display_name(self) -> str:
        full_name = self.get_full_name()
        return full_name or self.username or self.email


User = CustomUser
