"""Bookings app package.

Holds, bookings and their lifecycle. The atomic store operations live in
``services``; ``controller`` orchestrates them for one student.
"""
