"""Payment API views: history, verification and the provider webhook."""

from __future__ import annotations

import logging

from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.controller import NetworkOrBackendError
from apps.bookings.views import booking_error_response

from . import stripe_service
from .models import Payment
from .serializers import PaymentSerializer, VerifyPaymentSerializer
from .services import PaymentNotFound, verify_payment

logger = logging.getLogger(__name__)


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    """Payments visible to the current user."""

    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "booking"]

    def get_queryset(self):  # type: ignore
        qs = Payment.objects.select_related("booking", "booking__hostel")
        user = self.request.user
        if user.is_platform_admin():
            return qs
        if user.is_landlord():
            return qs.filter(booking__hostel__landlord=user)
        return qs.filter(booking__student=user)


class VerifyPaymentView(APIView):
    """Called when the student returns from the hosted checkout."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):  # type: ignore
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if not Payment.objects.filter(
            session_id=data["session_id"],
            booking_id=data["booking_id"],
            booking__student=request.user,
        ).exists() and not request.user.is_platform_admin():
            return Response({"detail": "Payment not found."}, status=status.HTTP_404_NOT_FOUND)

        try:
            result = verify_payment(data["session_id"], data["booking_id"])
        except PaymentNotFound:
            return Response({"detail": "Payment not found."}, status=status.HTTP_404_NOT_FOUND)
        except stripe_service.StripePaymentError:
            return booking_error_response(NetworkOrBackendError("Could not verify the payment with the provider."))
        return Response(result, status=status.HTTP_200_OK)


class StripeWebhookView(APIView):
    """Out-of-band confirmation from Stripe (``checkout.session.completed``)."""

    authentication_classes: list = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):  # type: ignore
        try:
            event = stripe_service.construct_webhook_event(
                request.body,
                request.META.get("HTTP_STRIPE_SIGNATURE", ""),
            )
        except stripe_service.StripePaymentError as exc:
            logger.warning("Rejected Stripe webhook: %s", exc)
            return Response({"detail": "Invalid signature."}, status=status.HTTP_400_BAD_REQUEST)

        if event["type"] != "checkout.session.completed":
            return Response({"received": True}, status=status.HTTP_200_OK)

        session = event["data"]["object"]
        booking_id = (session.get("metadata") or {}).get("booking_id")
        if not booking_id:
            logger.warning("Stripe session %s has no booking_id metadata", session.get("id"))
            return Response({"received": True}, status=status.HTTP_200_OK)

        try:
            result = verify_payment(session["id"], int(booking_id))
        except PaymentNotFound:
            logger.warning("Webhook for unknown session %s", session.get("id"))
            return Response({"received": True}, status=status.HTTP_200_OK)
        return Response(result, status=status.HTTP_200_OK)
