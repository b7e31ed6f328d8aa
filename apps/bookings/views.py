"""API views for the booking domain."""

from __future__ import annotations

from django.shortcuts import get_object_or_404  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.hostels.serializers import RoomSerializer

from . import services
from .controller import (
    BookingError,
    BookingLifecycleController,
    RoomUnavailable,
    StudentContext,
)
from .models import Booking, InvalidTransition
from .permissions import IsBookingStakeholder
from .serializers import (
    BookingSerializer,
    CancelBookingSerializer,
    CheckoutRequestSerializer,
    RoomRequestSerializer,
)
from .tasks import notify_booking_cancelled


def booking_error_response(exc: BookingError) -> Response:
    body = exc.notice.to_dict()
    if isinstance(exc, RoomUnavailable):
        body["room"] = RoomSerializer(exc.room).data if exc.room is not None else None
    return Response(body, status=exc.status_code)


class BookingViewSet(viewsets.ReadOnlyModelViewSet):
    """Bookings of the current user plus the lifecycle actions.

    Students see their own bookings, landlords the bookings of their
    hostels and admins everything.
    """

    queryset = Booking.objects.select_related("student", "hostel", "hostel__landlord", "room").all()
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated, IsBookingStakeholder]
    filterset_fields = ["status", "payment_status", "hostel", "semester", "academic_year"]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if user.is_platform_admin():
            return qs
        if user.is_landlord():
            return qs.filter(hostel__landlord=user)
        return qs.filter(student=user)

    def _controller(self, request) -> BookingLifecycleController:
        return BookingLifecycleController(StudentContext.from_request(request))

    def _room_request(self, request) -> tuple[BookingLifecycleController, dict]:
        # Who is asking is settled before the body is looked at.
        controller = self._controller(request)
        controller.context.require_student()
        serializer = RoomRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return controller, serializer.validated_data

    @action(detail=False, methods=["post"], permission_classes=[permissions.AllowAny])
    def hold(self, request):  # type: ignore
        """Hold a room for a limited time without claiming a bed."""
        try:
            controller, data = self._room_request(request)
            booking = controller.hold_room(
                data["room"],
                semester=data["semester"],
                academic_year=data.get("academic_year") or None,
            )
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], permission_classes=[permissions.AllowAny])
    def book(self, request):  # type: ignore
        """Book a bed; refused with 409 and the fresh room state when none is left."""
        try:
            controller, data = self._room_request(request)
            booking = controller.book_room(
                data["room"],
                semester=data["semester"],
                academic_year=data.get("academic_year") or None,
                notes=data.get("notes", ""),
            )
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def pay(self, request, pk=None):  # type: ignore
        """Start a checkout session and return the provider's redirect URL."""
        booking: Booking = self.get_object()  # type: ignore
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            redirect = self._controller(request).process_payment(
                booking,
                success_url=serializer.validated_data.get("success_url"),
                cancel_url=serializer.validated_data.get("cancel_url"),
            )
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(
            {"url": redirect.url, "session_id": redirect.session_id},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        user = request.user
        serializer = CancelBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if booking.student_id == user.id:
            source = Booking.CancellationSource.STUDENT
        elif user.is_landlord() and booking.hostel.landlord_id == user.id:
            source = Booking.CancellationSource.LANDLORD
        elif user.is_platform_admin():
            source = Booking.CancellationSource.SYSTEM
        else:
            return Response(status=status.HTTP_403_FORBIDDEN)

        try:
            booking = services.cancel_booking(
                booking.pk,
                source=source,
                reason=serializer.validated_data.get("reason", ""),
            )
        except InvalidTransition as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        if source != Booking.CancellationSource.STUDENT:
            notify_booking_cancelled.delay(booking.pk)
        return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):  # type: ignore
        """Close a confirmed booking at the end of the stay (landlord or admin)."""
        booking: Booking = get_object_or_404(self.get_queryset(), pk=pk)
        user = request.user
        if not (user.is_platform_admin() or booking.hostel.landlord_id == user.id):
            return Response(status=status.HTTP_403_FORBIDDEN)
        try:
            booking = services.complete_booking(booking.pk)
        except InvalidTransition as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)
