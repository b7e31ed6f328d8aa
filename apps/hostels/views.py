"""Hostel and room API views."""

from __future__ import annotations

from django.db.models import Prefetch, Q  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import generics, permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.filters import OrderingFilter  # type: ignore
from rest_framework.response import Response  # type: ignore

from .filters import HostelFilterSet, RoomFilterSet
from .models import Amenity, Hostel, Room
from .permissions import IsHostelOwnerOrAdmin, IsLandlordOrReadOnly
from .serializers import (
    AmenitySerializer,
    HostelSerializer,
    HostelWriteSerializer,
    RoomSerializer,
    RoomWriteSerializer,
)


def _hostel_queryset():
    return (
        Hostel.objects.select_related("landlord")
        .prefetch_related("amenities")
        .with_room_counts()
    )


class HostelViewSet(viewsets.ModelViewSet):
    """Viewset for hostel listings.

    Students and anonymous visitors see active hostels only. Landlords see
    the active catalogue plus their own inactive listings; admins see all.
    """

    permission_classes = [IsLandlordOrReadOnly, IsHostelOwnerOrAdmin]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = HostelFilterSet
    ordering_fields = ["price_per_semester", "rating", "created_at", "name"]

    def get_queryset(self):  # type: ignore
        qs = _hostel_queryset()
        user = self.request.user
        if not user.is_authenticated:
            return qs.filter(is_active=True)
        if user.is_platform_admin():
            return qs
        if user.is_landlord():
            return qs.filter(Q(is_active=True) | Q(landlord=user))
        return qs.filter(is_active=True)

    def get_serializer_class(self):  # type: ignore
        if self.action in {"create", "update", "partial_update"}:
            return HostelWriteSerializer
        return HostelSerializer

    @action(detail=True, methods=["get"], permission_classes=[permissions.AllowAny])
    def rooms(self, request, pk=None):  # type: ignore
        """Rooms of one hostel ordered by room number."""
        hostel = self.get_object()
        rooms = RoomFilterSet(
            request.query_params,
            queryset=hostel.rooms.prefetch_related("amenities").order_by("room_number"),
        ).qs
        return Response(RoomSerializer(rooms, many=True).data)


class SearchHostelsView(generics.ListAPIView):
    """Public search endpoint with text query, filters and ordering."""

    serializer_class = HostelSerializer
    permission_classes = [permissions.AllowAny]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = HostelFilterSet
    ordering_fields = ["price_per_semester", "rating", "created_at"]
    ordering = ["-rating"]

    def get_queryset(self):  # type: ignore
        return _hostel_queryset().filter(is_active=True)


class RoomViewSet(viewsets.ModelViewSet):
    """Room CRUD; writes are limited to the owning landlord."""

    permission_classes = [IsLandlordOrReadOnly, IsHostelOwnerOrAdmin]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = RoomFilterSet
    ordering_fields = ["price_per_semester", "room_number", "capacity"]

    def get_queryset(self):  # type: ignore
        return Room.objects.select_related("hostel").prefetch_related(
            Prefetch("amenities", queryset=Amenity.objects.all())
        )

    def get_serializer_class(self):  # type: ignore
        if self.action in {"create", "update", "partial_update"}:
            return RoomWriteSerializer
        return RoomSerializer


class AmenityViewSet(viewsets.ModelViewSet):
    """Amenity dictionary; read for everyone, write for staff."""

    queryset = Amenity.objects.all()
    serializer_class = AmenitySerializer
    pagination_class = None

    def get_permissions(self):  # type: ignore
        if self.action in {"list", "retrieve"}:
            return [permissions.AllowAny()]
        return [permissions.IsAdminUser()]
