"""Realtime app package.

Change feed for rooms and bookings and the reconciler that keeps a local
room list in step with it.
"""
