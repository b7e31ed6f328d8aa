"""User API views."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from .serializers import UserSerializer

User = get_user_model()


class UserViewSet(viewsets.ModelViewSet):
    """User management.

    - `me` returns and edits the current user's profile
    - list/detail operations are available to platform staff only
    """

    serializer_class = UserSerializer
    queryset = User.objects.all()
    http_method_names = ["get", "patch", "head", "options"]

    def get_permissions(self):  # type: ignore
        if self.action == "me":
            return [permissions.IsAuthenticated()]
        return [permissions.IsAdminUser()]

    @action(detail=False, methods=["get", "patch"])
    def me(self, request):
        """Return or update the current user's profile."""
        if request.method == "PATCH":
            serializer = UserSerializer(request.user, data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            serializer.save()
            return Response(serializer.data, status=status.HTTP_200_OK)
        return Response(UserSerializer(request.user).data)
