"""API views for managing reviews."""

from __future__ import annotations

from django.db import IntegrityError, transaction  # type: ignore
from django.utils import timezone  # type: ignore
from rest_framework import permissions, serializers, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.models import Booking

from .models import Review, ReviewHelpfulness
from .serializers import (
    HelpfulnessVoteSerializer,
    LandlordResponseSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
)

VERIFYING_STATUSES = (Booking.Status.CONFIRMED, Booking.Status.COMPLETED)


class IsReviewerOrAdmin(permissions.BasePermission):
    """Students manage their own reviews, admins manage all."""

    def has_object_permission(self, request, view, obj: Review) -> bool:  # type: ignore
        if request.method in permissions.SAFE_METHODS:
            return True
        user = request.user
        if not user.is_authenticated:
            return False
        if user.is_platform_admin():
            return True
        return obj.student_id == user.id


class ReviewViewSet(viewsets.ModelViewSet):
    """Public hostel reviews; students write them, landlords answer them."""

    queryset = Review.objects.select_related('hostel', 'student', 'booking').all()
    permission_classes = [permissions.IsAuthenticatedOrReadOnly, IsReviewerOrAdmin]
    filterset_fields = ['hostel', 'rating', 'is_verified']
    http_method_names = ['get', 'post', 'delete', 'head', 'options']

    def get_serializer_class(self):  # type: ignore
        if self.action == 'create':
            return ReviewCreateSerializer
        if self.action == 'respond':
            return LandlordResponseSerializer
        if self.action == 'helpful':
            return HelpfulnessVoteSerializer
        return ReviewSerializer

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return Response(
            ReviewSerializer(serializer.instance, context=self.get_serializer_context()).data,
            status=status.HTTP_201_CREATED,
        )

    def perform_create(self, serializer):  # type: ignore
        user = self.request.user
        if not user.is_student():
            raise serializers.ValidationError('Only students can review hostels.')

        hostel = serializer.validated_data['hostel']
        is_verified = Booking.objects.filter(
            student=user,
            hostel=hostel,
            status__in=VERIFYING_STATUSES,
        ).exists()
        try:
            with transaction.atomic():
                serializer.save(student=user, is_verified=is_verified)
        except IntegrityError:
            raise serializers.ValidationError('You have already reviewed this hostel.')

    @action(detail=True, methods=['post'], permission_classes=[permissions.IsAuthenticated])
    def respond(self, request, pk=None):  # type: ignore
        """Landlord's answer to a review of one of their hostels."""
        review = self.get_object()
        if review.hostel.landlord_id != request.user.id:
            return Response(
                {"detail": "Only the hostel's landlord can respond to reviews."},
                status=status.HTTP_403_FORBIDDEN,
            )

        serializer = LandlordResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review.landlord_response = serializer.validated_data['landlord_response']
        review.landlord_response_at = timezone.now()
        review.save(update_fields=['landlord_response', 'landlord_response_at', 'updated_at'])
        return Response(ReviewSerializer(review).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=['post'], permission_classes=[permissions.IsAuthenticated])
    def helpful(self, request, pk=None):  # type: ignore
        """Record or change the caller's helpfulness vote."""
        review = self.get_object()
        if review.student_id == request.user.id:
            return Response(
                {"detail": "You cannot vote on your own review."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = HelpfulnessVoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ReviewHelpfulness.objects.update_or_create(
            review=review,
            user=request.user,
            defaults={'is_helpful': serializer.validated_data['is_helpful']},
        )
        return Response({'helpful_count': review.refresh_helpful_count()}, status=status.HTTP_200_OK)
