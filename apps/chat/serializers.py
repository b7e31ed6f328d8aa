"""Serializers for conversations and messages."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.bookings.models import Booking
from apps.hostels.models import Hostel
from apps.users.models import CustomUser
from apps.users.serializers import UserShortSerializer

from .models import Conversation, Message


class MessageSerializer(serializers.ModelSerializer):
    is_read = serializers.ReadOnlyField()

    class Meta:
        model = Message
        fields = [
            'id',
            'conversation',
            'sender',
            'recipient',
            'message_type',
            'content',
            'is_read',
            'read_at',
            'created_at',
        ]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    student = UserShortSerializer(read_only=True)
    landlord = UserShortSerializer(read_only=True)
    hostel_name = serializers.ReadOnlyField(source='hostel.name')
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            'id',
            'student',
            'landlord',
            'hostel',
            'hostel_name',
            'booking',
            'last_message_at',
            'last_message_preview',
            'unread_count',
            'created_at',
        ]
        read_only_fields = fields

    def get_unread_count(self, obj: Conversation) -> int:
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return 0
        return obj.unread_count_for(request.user)


class StartConversationSerializer(serializers.Serializer):
    """Students open a thread about a hostel; landlords also name the student."""

    hostel = serializers.PrimaryKeyRelatedField(queryset=Hostel.objects.select_related('landlord'))
    student = serializers.PrimaryKeyRelatedField(
        queryset=CustomUser.objects.filter(role=CustomUser.RoleChoices.STUDENT),
        required=False,
    )
    booking = serializers.PrimaryKeyRelatedField(queryset=Booking.objects.all(), required=False, allow_null=True)
    message = serializers.CharField(required=False, allow_blank=True, max_length=5000)

    def validate(self, attrs):  # type: ignore
        user = self.context['request'].user
        hostel = attrs['hostel']
        if user.is_student():
            attrs['student'] = user
        elif user.is_landlord():
            if hostel.landlord_id != user.pk:
                raise serializers.ValidationError({'hostel': 'You can only message about your own hostels.'})
            if 'student' not in attrs:
                raise serializers.ValidationError({'student': 'This field is required.'})
        else:
            raise serializers.ValidationError('Only students and landlords can start conversations.')

        booking = attrs.get('booking')
        if booking is not None and (booking.hostel_id != hostel.pk or booking.student_id != attrs['student'].pk):
            raise serializers.ValidationError({'booking': 'Booking does not belong to this conversation.'})
        return attrs


class SendMessageSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=5000)
    message_type = serializers.ChoiceField(
        choices=[Message.Type.TEXT, Message.Type.BOOKING_INQUIRY],
        default=Message.Type.TEXT,
    )
