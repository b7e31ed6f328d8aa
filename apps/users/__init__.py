"""Users app package.

Defines the custom user model with the marketplace roles (student,
landlord, admin) and the authentication endpoints. Use
``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout
the project.
"""
