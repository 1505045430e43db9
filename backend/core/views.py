"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import NotificationSerializer, SystemConstantsSerializer
from .services import NotificationInboxService, SystemConstantsService


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return all system-wide choice enumerations plus active wards and
    departments so clients can build dropdowns and filters without
    hardcoding values.

    **Authentication**: Not required (``AllowAny``).
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="System constants",
        description="Complaint enums, role capabilities, and active wards / departments.",
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class NotificationViewSet(viewsets.ViewSet):
    """
    **Notification API** — list and mark-as-read for the authenticated user.

    Endpoints
    ---------
    GET  /api/core/notifications/              → list notifications (``?unread=true``)
    POST /api/core/notifications/{id}/read/    → mark a notification as read
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List notifications",
        parameters=[
            OpenApiParameter("unread", bool, description="Only unread notifications."),
        ],
        responses={200: OpenApiResponse(response=NotificationSerializer(many=True), description="Notification list.")},
        tags=["Notifications"],
    )
    def list(self, request: Request) -> Response:
        unread_only = request.query_params.get("unread", "").lower() in ("1", "true", "yes")
        service = NotificationInboxService(user=request.user)
        notifications = service.list_notifications(unread_only=unread_only)
        serializer = NotificationSerializer(notifications, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="read")
    @extend_schema(
        summary="Mark notification as read",
        request=None,
        responses={
            200: OpenApiResponse(response=NotificationSerializer, description="Updated notification."),
            404: OpenApiResponse(description="Notification not found."),
        },
        tags=["Notifications"],
    )
    def mark_as_read(self, request: Request, pk: int = None) -> Response:
        service = NotificationInboxService(user=request.user)
        notification = service.mark_as_read(notification_id=pk)
        serializer = NotificationSerializer(notification)
        return Response(serializer.data, status=status.HTTP_200_OK)
