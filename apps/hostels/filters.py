"""FilterSet definitions for hostel search and room listing."""

from __future__ import annotations

import django_filters  # type: ignore
from django.db.models import Count, F, Q  # type: ignore

from .models import Hostel, Room


def _parse_ids(value) -> list[int]:
    try:
        return [int(x) for x in str(value).replace(" ", "").split(",") if x]
    except ValueError:
        return []


class HostelFilterSet(django_filters.FilterSet):
    """Filters shared by the hostel list and the search endpoint."""

    q = django_filters.CharFilter(method="filter_text")
    city = django_filters.CharFilter(field_name="city", lookup_expr="icontains")
    region = django_filters.CharFilter(field_name="region", lookup_expr="icontains")
    hostel_type = django_filters.ChoiceFilter(choices=Hostel.HostelType.choices)
    price_min = django_filters.NumberFilter(field_name="price_per_semester", lookup_expr="gte")
    price_max = django_filters.NumberFilter(field_name="price_per_semester", lookup_expr="lte")
    rating_min = django_filters.NumberFilter(field_name="rating", lookup_expr="gte")
    is_verified = django_filters.BooleanFilter(field_name="is_verified")
    available_only = django_filters.BooleanFilter(method="filter_available_only")

    # CSV of amenity ids, requires all selected amenities
    amenities = django_filters.CharFilter(method="filter_amenities")

    class Meta:
        model = Hostel
        fields = ["city", "region", "hostel_type", "is_verified"]

    def filter_text(self, queryset, name, value):  # type: ignore
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value)
            | Q(description__icontains=value)
            | Q(address__icontains=value)
            | Q(city__icontains=value)
        )

    def filter_available_only(self, queryset, name, value):  # type: ignore
        if not value:
            return queryset
        return queryset.filter(pk__in=Room.objects.available().values("hostel_id"))

    def filter_amenities(self, queryset, name, value):  # type: ignore
        ids = _parse_ids(value)
        if not ids:
            return queryset
        matching = (
            Hostel.objects.filter(amenities__id__in=ids)
            .annotate(matched_amenities=Count("amenities", filter=Q(amenities__id__in=ids), distinct=True))
            .filter(matched_amenities=len(ids))
            .values("pk")
        )
        return queryset.filter(pk__in=matching)


class RoomFilterSet(django_filters.FilterSet):
    hostel = django_filters.NumberFilter(field_name="hostel_id")
    room_type = django_filters.ChoiceFilter(choices=Room.RoomType.choices)
    price_min = django_filters.NumberFilter(field_name="price_per_semester", lookup_expr="gte")
    price_max = django_filters.NumberFilter(field_name="price_per_semester", lookup_expr="lte")
    available = django_filters.BooleanFilter(method="filter_available")

    class Meta:
        model = Room
        fields = ["hostel", "room_type"]

    def filter_available(self, queryset, name, value):  # type: ignore
        if value is None:
            return queryset
        if value:
            return queryset.available()
        return queryset.filter(occupied__gte=F("capacity"))
