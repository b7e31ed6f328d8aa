"""API views for messaging."""

from __future__ import annotations

from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from . import services
from .models import Message
from .serializers import (
    ConversationSerializer,
    MessageSerializer,
    SendMessageSerializer,
    StartConversationSerializer,
)


class ConversationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Conversations of the authenticated user plus their messages."""

    serializer_class = ConversationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):  # type: ignore
        return services.conversations_for(self.request.user)

    def get_serializer_class(self):  # type: ignore
        if self.action == 'create':
            return StartConversationSerializer
        if self.action == 'messages' and self.request.method == 'POST':
            return SendMessageSerializer
        return ConversationSerializer

    def create(self, request):  # type: ignore
        """Start a conversation, or return the existing one for the same hostel."""
        serializer = StartConversationSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        hostel = data['hostel']
        try:
            conversation, created = services.start_conversation(
                student=data['student'],
                landlord=hostel.landlord,
                hostel=hostel,
                booking=data.get('booking'),
            )
            if data.get('message'):
                services.send_message(
                    conversation,
                    request.user,
                    data['message'],
                    message_type=Message.Type.BOOKING_INQUIRY if data.get('booking') else Message.Type.TEXT,
                )
        except services.ConversationError as exc:
            return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        conversation.refresh_from_db()
        return Response(
            ConversationSerializer(conversation, context={'request': request}).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=True, methods=['get', 'post'])
    def messages(self, request, pk=None):  # type: ignore
        conversation = self.get_object()
        if request.method == 'GET':
            queryset = conversation.messages.all()
            page = self.paginate_queryset(queryset)
            if page is not None:
                return self.get_paginated_response(MessageSerializer(page, many=True).data)
            return Response(MessageSerializer(queryset, many=True).data)

        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = services.send_message(
            conversation,
            request.user,
            serializer.validated_data['content'],
            message_type=serializer.validated_data['message_type'],
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):  # type: ignore
        conversation = self.get_object()
        updated = services.mark_conversation_read(conversation, request.user)
        return Response({'updated': updated}, status=status.HTTP_200_OK)

    @action(detail=False, methods=['get'])
    def unread_count(self, request):  # type: ignore
        return Response({'unread': services.unread_message_count(request.user)})
