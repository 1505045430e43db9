"""
Core app serializers.

Response shapes for the system-constants and notification endpoints.
"""

from __future__ import annotations

from rest_framework import serializers


class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "in_progress", "label": "In Progress"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label.",
    )


class RoleItemSerializer(ChoiceItemSerializer):
    capabilities = serializers.ListField(
        child=serializers.CharField(),
        help_text="Capabilities granted by the role.",
    )


class WardItemSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    number = serializers.IntegerField()
    name = serializers.CharField()


class DepartmentItemSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    code = serializers.CharField()
    name = serializers.CharField()


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Response shape::

        {
            "complaint_statuses": [{"value": "received", "label": "Received"}, ...],
            "complaint_priorities": [...],
            "complaint_sources": [...],
            "sla_states": [...],
            "escalation_targets": [...],
            "supervisor_levels": [...],
            "roles": [{"value": "staff", "label": "Staff", "capabilities": [...]}, ...],
            "wards": [{"id": 1, "number": 4, "name": "Riverside"}, ...],
            "departments": [{"id": 1, "code": "ROADS", "name": "Roads"}, ...]
        }
    """

    complaint_statuses = ChoiceItemSerializer(many=True)
    complaint_priorities = ChoiceItemSerializer(many=True)
    complaint_sources = ChoiceItemSerializer(many=True)
    sla_states = ChoiceItemSerializer(many=True)
    escalation_targets = ChoiceItemSerializer(many=True)
    supervisor_levels = ChoiceItemSerializer(many=True)
    roles = RoleItemSerializer(many=True)
    wards = WardItemSerializer(many=True)
    departments = DepartmentItemSerializer(many=True)


class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    title = serializers.CharField(read_only=True)
    message = serializers.CharField(read_only=True)
    is_read = serializers.BooleanField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)
    content_type = serializers.StringRelatedField(
        read_only=True,
        help_text="Related content type (if any).",
    )
    object_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="PK of the related object (if any).",
    )
