"""
Accounts app views.

Authentication tokens are issued by an external identity service; this
app only exposes the authenticated user's own profile.
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import MeSerializer
from .services import CurrentUserService


class MeView(APIView):
    """GET /api/accounts/me/ → role, capabilities and staff profile."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        responses={200: MeSerializer},
        summary="Current user profile",
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        profile = CurrentUserService.get_profile(request.user)
        return Response(MeSerializer(profile).data, status=status.HTTP_200_OK)
