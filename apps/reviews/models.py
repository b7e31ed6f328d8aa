"""Models for the review domain.

Students rate a hostel overall and, optionally, per category. A review is
marked verified when its author has a confirmed or completed booking at
the hostel. Saving or deleting a review refreshes the hostel's ``rating``
and ``total_reviews``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

RATING_VALIDATORS = [MinValueValidator(1), MaxValueValidator(5)]


def _category_rating(label: str):
    return models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=RATING_VALIDATORS,
        help_text=label,
    )


class Review(models.Model):
    """A student's review of a hostel."""

    class StayDuration(models.TextChoices):
        ONE_SEMESTER = 'one_semester', _('One semester')
        ACADEMIC_YEAR = 'academic_year', _('One academic year')
        MULTIPLE_YEARS = 'multiple_years', _('More than a year')

    CATEGORY_FIELDS = (
        'room_cleanliness_rating',
        'facilities_rating',
        'location_rating',
        'security_rating',
        'value_for_money_rating',
    )

    student = models.ForeignKey(
        'users.CustomUser', on_delete=models.CASCADE, related_name='reviews'
    )
    hostel = models.ForeignKey(
        'hostels.Hostel', on_delete=models.CASCADE, related_name='reviews'
    )
    booking = models.ForeignKey(
        'bookings.Booking',
        on_delete=models.SET_NULL,
        related_name='reviews',
        null=True,
        blank=True,
    )
    rating = models.PositiveSmallIntegerField(validators=RATING_VALIDATORS, help_text='Overall rating 1-5')
    room_cleanliness_rating = _category_rating(_('Room cleanliness'))
    facilities_rating = _category_rating(_('Facilities'))
    location_rating = _category_rating(_('Location'))
    security_rating = _category_rating(_('Security'))
    value_for_money_rating = _category_rating(_('Value for money'))
    title = models.CharField(max_length=200, blank=True)
    comment = models.TextField(blank=True)
    stay_duration = models.CharField(max_length=20, choices=StayDuration.choices, blank=True)
    is_verified = models.BooleanField(default=False)

    landlord_response = models.TextField(blank=True)
    landlord_response_at = models.DateTimeField(null=True, blank=True)
    helpful_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['hostel', '-created_at']),
            models.Index(fields=['rating']),
        ]
        constraints = [
            models.UniqueConstraint(fields=['student', 'hostel'], name='review_one_per_student_per_hostel'),
        ]

    def __str__(self) -> str:
        return f"Review by {self.student_id} for hostel {self.hostel_id} (Rating: {self.rating})"

    @property
    def average_rating(self) -> float:
        """Mean of the overall rating and every category rating given."""
        ratings = [self.rating] + [getattr(self, name) for name in self.CATEGORY_FIELDS]
        valid_ratings = [r for r in ratings if r is not None]
        return sum(valid_ratings) / len(valid_ratings)

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        update_hostel_rating(self.hostel_id)

    def delete(self, *args, **kwargs):
        hostel_id = self.hostel_id
        result = super().delete(*args, **kwargs)
        update_hostel_rating(hostel_id)
        return result

    def refresh_helpful_count(self) -> int:
        self.helpful_count = self.votes.filter(is_helpful=True).count()
        Review.objects.filter(pk=self.pk).update(helpful_count=self.helpful_count)
        return self.helpful_count


class ReviewHelpfulness(models.Model):
    """One user's helpful / not helpful vote on a review."""

    review = models.ForeignKey(Review, on_delete=models.CASCADE, related_name='votes')
    user = models.ForeignKey('users.CustomUser', on_delete=models.CASCADE, related_name='review_votes')
    is_helpful = models.BooleanField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['review', 'user'], name='review_vote_one_per_user'),
        ]

    def __str__(self) -> str:
        return f"Vote by {self.user_id} on review {self.review_id}: {self.is_helpful}"


def update_hostel_rating(hostel_id) -> None:
    """Recompute a hostel's average rating and review count from its reviews."""
    from apps.hostels.models import Hostel

    stats = Review.objects.filter(hostel_id=hostel_id).aggregate(
        avg=models.Avg('rating'),
        total=models.Count('id'),
    )
    average = Decimal(str(stats['avg'] or 0)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    Hostel.objects.filter(pk=hostel_id).update(rating=average, total_reviews=stats['total'])
