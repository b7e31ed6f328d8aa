"""API views for analytics.

One overview endpoint whose scope follows the caller's role: admins see
the whole platform, landlords their own hostels, students their own
bookings and spending.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from rest_framework.permissions import IsAuthenticated  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.models import Booking
from apps.hostels.models import Hostel, Room
from apps.payments.models import Payment
from apps.reviews.models import Review
from apps.users.models import CustomUser


def _occupancy(room_qs) -> dict:
    totals = room_qs.aggregate(
        rooms=models.Count('id'),
        beds=models.Sum('capacity'),
        occupied_beds=models.Sum('occupied'),
        full_rooms=models.Count('id', filter=models.Q(occupied__gte=models.F('capacity'))),
    )
    beds = totals['beds'] or 0
    occupied = totals['occupied_beds'] or 0
    return {
        'rooms': totals['rooms'],
        'available_rooms': totals['rooms'] - totals['full_rooms'],
        'beds': beds,
        'occupied_beds': occupied,
        'occupancy_rate': round(occupied * 100 / beds, 1) if beds else 0.0,
    }


def _bookings_by_status(booking_qs) -> dict[str, int]:
    counts = {value: 0 for value in Booking.Status.values}
    for row in booking_qs.values('status').annotate(total=models.Count('id')):
        counts[row['status']] = row['total']
    return counts


def _revenue(payment_qs) -> Decimal:
    return payment_qs.aggregate(total=models.Sum('amount')).get('total') or Decimal('0')


class OverviewAnalyticsView(APIView):
    """Return general statistics for the platform or a specific user."""

    permission_classes = [IsAuthenticated]

    def get(self, request, format=None):  # type: ignore
        user = request.user
        paid = Payment.objects.filter(status=Payment.Status.SUCCESS)

        if user.is_platform_admin():
            hostel_qs = Hostel.objects.all()
            booking_qs = Booking.objects.all()
            users_by_role = {value: 0 for value in CustomUser.RoleChoices.values}
            for row in CustomUser.objects.values('role').annotate(total=models.Count('id')):
                users_by_role[row['role']] = row['total']
            regions = [
                {
                    'region': row['region'],
                    'hostels': row['hostels'],
                    'avg_price': row['avg_price'],
                }
                for row in hostel_qs.exclude(region='')
                .values('region')
                .annotate(hostels=models.Count('id'), avg_price=models.Avg('price_per_semester'))
                .order_by('-hostels')
            ]
            return Response(
                {
                    'scope': 'platform',
                    'users_by_role': users_by_role,
                    'hostels': hostel_qs.count(),
                    'verified_hostels': hostel_qs.filter(is_verified=True).count(),
                    'bookings_by_status': _bookings_by_status(booking_qs),
                    'revenue': _revenue(paid),
                    'avg_rating': Review.objects.aggregate(avg=models.Avg('rating')).get('avg'),
                    'regions': regions,
                    **_occupancy(Room.objects.all()),
                }
            )

        if user.is_landlord():
            hostel_qs = Hostel.objects.filter(landlord=user)
            booking_qs = Booking.objects.filter(hostel__landlord=user)
            return Response(
                {
                    'scope': 'landlord',
                    'hostels': hostel_qs.count(),
                    'bookings_by_status': _bookings_by_status(booking_qs),
                    'revenue': _revenue(paid.filter(booking__hostel__landlord=user)),
                    'avg_rating': Review.objects.filter(hostel__landlord=user)
                    .aggregate(avg=models.Avg('rating'))
                    .get('avg'),
                    **_occupancy(Room.objects.filter(hostel__landlord=user)),
                }
            )

        booking_qs = Booking.objects.filter(student=user)
        return Response(
            {
                'scope': 'student',
                'bookings_by_status': _bookings_by_status(booking_qs),
                'total_spent': _revenue(paid.filter(booking__student=user)),
                'reviews': Review.objects.filter(student=user).count(),
            }
        )
