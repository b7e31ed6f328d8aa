"""API tests for authentication endpoints."""

from __future__ import annotations

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.users.models import User


class AuthAPITests(APITestCase):
    def test_register_student_returns_tokens(self) -> None:
        payload = {
            "email": "ama@example.com",
            "first_name": "Ama",
            "last_name": "Mensah",
            "institution": "University of Ghana",
            "program": "Computer Science",
            "password": "StrongPass123",
            "password_confirm": "StrongPass123",
        }

        response = self.client.post(reverse("auth:register"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertIn("tokens", response.data)
        self.assertEqual(response.data["user"]["email"], payload["email"])
        self.assertEqual(response.data["user"]["role"], User.RoleChoices.STUDENT)
        self.assertEqual(response.data["user"]["institution"], "University of Ghana")

    def test_register_landlord(self) -> None:
        payload = {
            "email": "owner@example.com",
            "role": "landlord",
            "business_name": "Campus Stays",
            "password": "StrongPass123",
            "password_confirm": "StrongPass123",
        }

        response = self.client.post(reverse("auth:register"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(User.objects.get(email="owner@example.com").role, User.RoleChoices.LANDLORD)

    def test_register_cannot_self_assign_admin(self) -> None:
        payload = {
            "email": "sneaky@example.com",
            "role": "admin",
            "password": "StrongPass123",
            "password_confirm": "StrongPass123",
        }

        response = self.client.post(reverse("auth:register"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("role", response.data)

    def test_register_rejects_password_mismatch(self) -> None:
        payload = {
            "email": "typo@example.com",
            "password": "StrongPass123",
            "password_confirm": "StrongPass124",
        }

        response = self.client.post(reverse("auth:register"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password_confirm", response.data)

    def test_login_returns_token_pair(self) -> None:
        User.objects.create_user(email="kofi@example.com", password="CorrectPassword1")

        response = self.client.post(
            reverse("auth:login"),
            {"login": "kofi@example.com", "password": "CorrectPassword1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertIn("access", response.data["tokens"])
        self.assertIn("refresh", response.data["tokens"])

    def test_login_wrong_password(self) -> None:
        User.objects.create_user(email="kofi@example.com", password="CorrectPassword1")

        response = self.client.post(
            reverse("auth:login"),
            {"login": "kofi@example.com", "password": "wrong"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_me_returns_profile(self) -> None:
        user = User.objects.create_user(email="me@example.com", password="CorrectPassword1")
        self.client.force_authenticate(user)

        response = self.client.get(reverse("user-me"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["email"], "me@example.com")

        response = self.client.patch(reverse("user-me"), {"program": "Law"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        user.refresh_from_db()
        self.assertEqual(user.program, "Law")
