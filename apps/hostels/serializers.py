"""Serializers for the hostels domain."""

from __future__ import annotations

from django.db import transaction  # type: ignore
from django.utils import timezone  # type: ignore
from rest_framework import serializers  # type: ignore

from apps.users.serializers import UserShortSerializer

from .models import Amenity, Hostel, Room


class AmenitySerializer(serializers.ModelSerializer):
    class Meta:
        model = Amenity
        fields = ["id", "name", "category", "icon"]


class RoomSerializer(serializers.ModelSerializer):
    amenities = AmenitySerializer(many=True, read_only=True)
    is_available = serializers.BooleanField(read_only=True)
    available_beds = serializers.IntegerField(read_only=True)

    class Meta:
        model = Room
        fields = [
            "id",
            "hostel",
            "room_number",
            "room_type",
            "floor",
            "capacity",
            "occupied",
            "is_available",
            "available_beds",
            "price_per_semester",
            "price_per_academic_year",
            "description",
            "amenities",
            "updated_at",
        ]
        read_only_fields = fields


class RoomWriteSerializer(serializers.ModelSerializer):
    """Landlord-side room editing. ``occupied`` is owned by bookings."""

    amenity_ids = serializers.PrimaryKeyRelatedField(
        queryset=Amenity.objects.all(),
        many=True,
        required=False,
        source="amenities",
    )

    class Meta:
        model = Room
        fields = [
            "hostel",
            "room_number",
            "room_type",
            "floor",
            "capacity",
            "price_per_semester",
            "price_per_academic_year",
            "description",
            "amenity_ids",
        ]

    def validate_hostel(self, hostel: Hostel) -> Hostel:
        user = self.context["request"].user
        if hostel.landlord_id != user.id and not user.is_platform_admin():
            raise serializers.ValidationError("You can only add rooms to your own hostels.")
        if self.instance is not None and hostel.pk != self.instance.hostel_id:
            raise serializers.ValidationError("A room cannot be moved to another hostel.")
        return hostel

    def validate_capacity(self, value: int) -> int:
        if value < 1:
            raise serializers.ValidationError("Capacity must be at least 1.")
        return value

    def update(self, instance: Room, validated_data):  # type: ignore
        # ``occupied`` moves concurrently through claim_bed/release_bed, so
        # it is never part of this write and capacity only shrinks while
        # the beds already taken still fit.
        amenities = validated_data.pop("amenities", None)
        capacity = validated_data.pop("capacity", None)
        with transaction.atomic():
            if capacity is not None:
                resized = Room.objects.filter(pk=instance.pk, occupied__lte=capacity).update(
                    capacity=capacity,
                    updated_at=timezone.now(),
                )
                if not resized:
                    taken = Room.objects.values_list("occupied", flat=True).get(pk=instance.pk)
                    raise serializers.ValidationError(
                        {"capacity": f"Capacity cannot be lower than the {taken} beds already taken."}
                    )

            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            instance.capacity, instance.occupied = Room.objects.values_list("capacity", "occupied").get(
                pk=instance.pk
            )
            instance.save(update_fields=[*validated_data, "updated_at"])
            if amenities is not None:
                instance.amenities.set(amenities)
        return instance

    def to_representation(self, instance):  # type: ignore
        return RoomSerializer(instance, context=self.context).data


class HostelSerializer(serializers.ModelSerializer):
    landlord = UserShortSerializer(read_only=True)
    amenities = AmenitySerializer(many=True, read_only=True)
    total_rooms = serializers.SerializerMethodField()
    available_rooms = serializers.SerializerMethodField()

    class Meta:
        model = Hostel
        fields = [
            "id",
            "landlord",
            "name",
            "description",
            "address",
            "city",
            "region",
            "hostel_type",
            "amenities",
            "price_per_semester",
            "price_per_academic_year",
            "security_deposit",
            "latitude",
            "longitude",
            "is_active",
            "is_verified",
            "rating",
            "total_reviews",
            "total_rooms",
            "available_rooms",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_total_rooms(self, obj: Hostel) -> int:
        annotated = getattr(obj, "total_rooms", None)
        if annotated is not None:
            return annotated
        return obj.rooms.count()

    def get_available_rooms(self, obj: Hostel) -> int:
        annotated = getattr(obj, "available_rooms", None)
        if annotated is not None:
            return annotated
        return obj.rooms.available().count()


class HostelWriteSerializer(serializers.ModelSerializer):
    amenity_ids = serializers.PrimaryKeyRelatedField(
        queryset=Amenity.objects.all(),
        many=True,
        required=False,
        source="amenities",
    )

    class Meta:
        model = Hostel
        fields = [
            "name",
            "description",
            "address",
            "city",
            "region",
            "hostel_type",
            "amenity_ids",
            "price_per_semester",
            "price_per_academic_year",
            "security_deposit",
            "latitude",
            "longitude",
            "is_active",
        ]

    def create(self, validated_data):  # type: ignore
        validated_data["landlord"] = self.context["request"].user
        return super().create(validated_data)

    def to_representation(self, instance):  # type: ignore
        return HostelSerializer(instance, context=self.context).data
