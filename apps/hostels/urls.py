"""URL routing for hostels, rooms and amenities."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import AmenityViewSet, HostelViewSet, RoomViewSet, SearchHostelsView

router = DefaultRouter()
router.register(r"hostels", HostelViewSet, basename="hostel")
router.register(r"rooms", RoomViewSet, basename="room")
router.register(r"amenities", AmenityViewSet, basename="amenity")

urlpatterns = [
    # Declared before the router so "search" is not taken for a hostel pk
    path("hostels/search/", SearchHostelsView.as_view(), name="hostel-search"),
    path("", include(router.urls)),
]
