"""Notifications app package.

In-app notification records and e-mail delivery for booking events.
"""
