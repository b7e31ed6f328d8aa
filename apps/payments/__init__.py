"""Payments app package.

Stripe checkout sessions for bookings and the verification step that turns
a paid session into a confirmed booking.
"""
