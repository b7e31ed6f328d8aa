"""API tests for hostel reviews."""

from __future__ import annotations

from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings import services as booking_services
from apps.hostels.models import Hostel, Room
from apps.reviews.models import Review
from apps.users.models import User


class ReviewAPITests(APITestCase):
    def setUp(self) -> None:
        self.student = User.objects.create_user(email="ama@example.com", password="StudentPass123")
        self.other_student = User.objects.create_user(email="kofi@example.com", password="StudentPass123")
        self.landlord = User.objects.create_user(
            email="landlord@example.com",
            password="LandlordPass123",
            role=User.RoleChoices.LANDLORD,
        )
        self.hostel = Hostel.objects.create(
            landlord=self.landlord,
            name="Legon Heights",
            address="East Legon Road 4",
            city="Accra",
            price_per_semester=Decimal("2500.00"),
        )
        self.list_url = reverse("review-list")

    def _review(self, user, rating=4, **extra):
        self.client.force_authenticate(user)
        payload = {"hostel": self.hostel.id, "rating": rating, "title": "Quiet and clean"}
        payload.update(extra)
        return self.client.post(self.list_url, payload, format="json")

    def test_student_review_updates_hostel_rating(self) -> None:
        response = self._review(self.student, rating=4, security_rating=2)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertFalse(response.data["is_verified"])
        self.assertEqual(response.data["average_rating"], 3)

        self._review(self.other_student, rating=5)
        self.hostel.refresh_from_db()
        self.assertEqual(self.hostel.rating, Decimal("4.50"))
        self.assertEqual(self.hostel.total_reviews, 2)

    def test_review_is_verified_after_confirmed_booking(self) -> None:
        room = Room.objects.create(
            hostel=self.hostel,
            room_number="A1",
            room_type=Room.RoomType.SINGLE,
            capacity=1,
            price_per_semester=Decimal("2500.00"),
        )
        result = booking_services.create_booking_with_conflict_check(student=self.student, room=room)
        booking_services.confirm_paid_booking(result.booking_id, amount_paid=Decimal("2500.00"))

        response = self._review(self.student, booking=result.booking_id)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertTrue(response.data["is_verified"])

    def test_foreign_booking_is_rejected(self) -> None:
        room = Room.objects.create(
            hostel=self.hostel,
            room_number="A1",
            room_type=Room.RoomType.DOUBLE,
            capacity=2,
            price_per_semester=Decimal("2500.00"),
        )
        result = booking_services.create_booking_with_conflict_check(student=self.other_student, room=room)

        response = self._review(self.student, booking=result.booking_id)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("booking", response.data)

    def test_one_review_per_hostel(self) -> None:
        self._review(self.student)

        response = self._review(self.student, rating=1)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Review.objects.count(), 1)

    def test_landlord_cannot_review(self) -> None:
        response = self._review(self.landlord)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rating_out_of_range_is_rejected(self) -> None:
        response = self._review(self.student, rating=6)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("rating", response.data)

    def test_reviews_are_public(self) -> None:
        self._review(self.student)
        self.client.force_authenticate(None)

        response = self.client.get(self.list_url, {"hostel": self.hostel.id})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)

    def test_only_hostel_landlord_can_respond(self) -> None:
        review_id = self._review(self.student).data["id"]
        url = reverse("review-respond", args=[review_id])

        self.client.force_authenticate(self.other_student)
        denied = self.client.post(url, {"landlord_response": "Thanks"}, format="json")
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.landlord)
        response = self.client.post(url, {"landlord_response": "Thanks for staying"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["landlord_response"], "Thanks for staying")
        self.assertIsNotNone(response.data["landlord_response_at"])

    def test_helpful_votes(self) -> None:
        review_id = self._review(self.student).data["id"]
        url = reverse("review-helpful", args=[review_id])

        own = self.client.post(url, {"is_helpful": True}, format="json")
        self.assertEqual(own.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(self.other_student)
        self.assertEqual(self.client.post(url, {"is_helpful": True}, format="json").data, {"helpful_count": 1})
        self.assertEqual(self.client.post(url, {"is_helpful": False}, format="json").data, {"helpful_count": 0})

    def test_author_can_delete_review(self) -> None:
        review_id = self._review(self.student).data["id"]

        self.client.force_authenticate(self.other_student)
        self.assertEqual(
            self.client.delete(reverse("review-detail", args=[review_id])).status_code,
            status.HTTP_403_FORBIDDEN,
        )

        self.client.force_authenticate(self.student)
        response = self.client.delete(reverse("review-detail", args=[review_id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.hostel.refresh_from_db()
        self.assertEqual(self.hostel.total_reviews, 0)
