"""Hostels app package.

Listings of student hostels and their rooms. A room's ``occupied`` counter
is the authoritative bed count; only the booking services change it.
"""
