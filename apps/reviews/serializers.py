"""Serializers for reviews.

Rating values are range-checked by the model validators; the author and
verification flag are set by the view.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Review


class ReviewCreateSerializer(serializers.ModelSerializer):
    """Serializer for creating a new review."""

    class Meta:
        model = Review
        fields = [
            'hostel',
            'booking',
            'rating',
            'room_cleanliness_rating',
            'facilities_rating',
            'location_rating',
            'security_rating',
            'value_for_money_rating',
            'title',
            'comment',
            'stay_duration',
        ]

    def validate(self, attrs):  # type: ignore
        booking = attrs.get('booking')
        user = self.context['request'].user
        if booking is not None and (booking.student_id != user.pk or booking.hostel_id != attrs['hostel'].pk):
            raise serializers.ValidationError({'booking': 'Booking does not belong to you and this hostel.'})
        return attrs


class ReviewSerializer(serializers.ModelSerializer):
    """Read serializer for reviews including related ids."""

    student_id = serializers.ReadOnlyField(source='student.id')
    student_name = serializers.ReadOnlyField(source='student.display_name')
    hostel_name = serializers.ReadOnlyField(source='hostel.name')
    booking_code = serializers.ReadOnlyField(source='booking.booking_code')
    average_rating = serializers.ReadOnlyField()

    class Meta:
        model = Review
        fields = [
            'id',
            'student_id',
            'student_name',
            'hostel',
            'hostel_name',
            'booking_code',
            'rating',
            'room_cleanliness_rating',
            'facilities_rating',
            'location_rating',
            'security_rating',
            'value_for_money_rating',
            'average_rating',
            'title',
            'comment',
            'stay_duration',
            'is_verified',
            'landlord_response',
            'landlord_response_at',
            'helpful_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class LandlordResponseSerializer(serializers.Serializer):
    """Serializer for a landlord's answer to a review."""

    landlord_response = serializers.CharField(max_length=2000)


class HelpfulnessVoteSerializer(serializers.Serializer):
    is_helpful = serializers.BooleanField()
