"""
Complaints app serializers.

Request serializers validate shape only; every domain rule lives in
``services.py``.  Response serializers are read-only.
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from core.models import Department, Ward

from .models import (
    Complaint,
    ComplaintAssignmentHistory,
    ComplaintCategory,
    ComplaintComment,
    ComplaintPriority,
    ComplaintStatus,
    ComplaintStatusHistory,
    ComplaintSubcategory,
    Escalation,
    EscalationTarget,
)
from .services import DEFAULT_SORT, SORT_FIELDS, SLAService


class CommaSeparatedChoiceField(serializers.ListField):
    """
    Multi-value query parameter accepting ``?status=a&status=b`` or
    ``?status=a,b``.
    """

    def __init__(self, *, choices, **kwargs):
        kwargs.setdefault("child", serializers.ChoiceField(choices=choices))
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = [data]
        values: list[str] = []
        for item in data:
            values.extend(part.strip() for part in str(item).split(",") if part.strip())
        return super().to_internal_value(values)


# ═══════════════════════════════════════════════════════════════════
#  1. Query Serializers
# ═══════════════════════════════════════════════════════════════════


class PaginationSerializer(serializers.Serializer):
    offset = serializers.IntegerField(required=False, default=0, min_value=0)
    limit = serializers.IntegerField(required=False, min_value=1)


class ComplaintFilterSerializer(PaginationSerializer):
    """
    Validates query-parameter filters for ``GET /api/complaints/``.

    All fields are optional; filters combine with AND and never widen the
    caller's jurisdiction.
    """

    status = CommaSeparatedChoiceField(choices=ComplaintStatus.choices, required=False)
    priority = CommaSeparatedChoiceField(choices=ComplaintPriority.choices, required=False)
    category = serializers.IntegerField(required=False, min_value=1)
    subcategory = serializers.IntegerField(required=False, min_value=1)
    ward = serializers.IntegerField(required=False, min_value=1)
    department = serializers.IntegerField(required=False, min_value=1)
    assigned_staff = serializers.IntegerField(required=False, min_value=1)
    unassigned = serializers.BooleanField(required=False, default=False)
    is_escalated = serializers.BooleanField(required=False, allow_null=True, default=None)
    overdue = serializers.BooleanField(required=False, default=False)
    q = serializers.CharField(
        required=False,
        max_length=255,
        help_text="Case-insensitive match on title or tracking code.",
    )
    submitted_from = serializers.DateField(required=False)
    submitted_to = serializers.DateField(required=False)
    sort = serializers.CharField(required=False, default=DEFAULT_SORT)

    def validate_sort(self, value: str) -> str:
        if value.lstrip("-") not in SORT_FIELDS:
            raise serializers.ValidationError(
                f"Unsupported sort key. Allowed: {', '.join(sorted(SORT_FIELDS))}."
            )
        return value

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        start = attrs.get("submitted_from")
        end = attrs.get("submitted_to")
        if start and end and start > end:
            raise serializers.ValidationError("submitted_from must not be later than submitted_to.")
        return attrs


class SLAQuerySerializer(PaginationSerializer):
    mode = serializers.ChoiceField(choices=[(m, m) for m in SLAService.MODES])


# ═══════════════════════════════════════════════════════════════════
#  2. Complaint Read Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintListSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)
    ward_number = serializers.IntegerField(source="ward.number", read_only=True, default=None)
    department_name = serializers.CharField(source="assigned_department.name", read_only=True, default=None)
    sla_state = serializers.SerializerMethodField()

    class Meta:
        model = Complaint
        fields = [
            "id",
            "tracking_code",
            "title",
            "status",
            "priority",
            "category",
            "category_name",
            "ward",
            "ward_number",
            "assigned_department",
            "department_name",
            "assigned_staff",
            "is_escalated",
            "submitted_at",
            "sla_due_at",
            "sla_breached_at",
            "sla_state",
        ]
        read_only_fields = fields

    def get_sla_state(self, obj: Complaint) -> str:
        return SLAService.check_breach(obj)


class ComplaintDetailSerializer(ComplaintListSerializer):
    allowed_transitions = serializers.SerializerMethodField()
    citizen = serializers.SerializerMethodField()

    class Meta(ComplaintListSerializer.Meta):
        fields = ComplaintListSerializer.Meta.fields + [
            "description",
            "subcategory",
            "source",
            "citizen",
            "is_anonymous",
            "latitude",
            "longitude",
            "address_text",
            "landmark",
            "assigned_at",
            "resolved_at",
            "resolved_by",
            "closed_at",
            "resolution_notes",
            "updated_at",
            "allowed_transitions",
        ]
        read_only_fields = fields

    def get_citizen(self, obj: Complaint) -> int | None:
        return None if obj.is_anonymous else obj.citizen_id

    def get_allowed_transitions(self, obj: Complaint) -> list[str]:
        from .services import ComplaintWorkflowService

        return ComplaintWorkflowService.allowed_targets(obj.status)


class ComplaintPageSerializer(serializers.Serializer):
    count = serializers.IntegerField()
    results = ComplaintListSerializer(many=True)


# ═══════════════════════════════════════════════════════════════════
#  3. Complaint Write Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintCreateSerializer(serializers.ModelSerializer):
    category = serializers.PrimaryKeyRelatedField(queryset=ComplaintCategory.objects.all())
    subcategory = serializers.PrimaryKeyRelatedField(
        queryset=ComplaintSubcategory.objects.all(), required=False, allow_null=True,
    )
    ward = serializers.PrimaryKeyRelatedField(
        queryset=Ward.objects.filter(is_active=True),
    )

    class Meta:
        model = Complaint
        fields = [
            "title",
            "description",
            "category",
            "subcategory",
            "priority",
            "source",
            "ward",
            "latitude",
            "longitude",
            "address_text",
            "landmark",
            "is_anonymous",
        ]


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ComplaintStatus.choices)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class BulkTransitionSerializer(TransitionSerializer):
    complaint_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        max_length=500,
    )


class AssignSerializer(serializers.Serializer):
    staff_id = serializers.IntegerField(min_value=1, help_text="User PK of the staff member.")
    note = serializers.CharField(required=False, allow_blank=True, default="")


class ReassignSerializer(AssignSerializer):
    reason = serializers.CharField()
    old_staff_id = serializers.IntegerField(required=False, allow_null=True, min_value=1, default=None)


class BulkAssignSerializer(AssignSerializer):
    complaint_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        max_length=500,
    )


class AcceptSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default="")


class DeclineSerializer(serializers.Serializer):
    reason = serializers.CharField(help_text="Why the assignee cannot take the work.")


class WorkloadQuerySerializer(serializers.Serializer):
    staff_id = serializers.IntegerField(required=False, min_value=1, default=None)


class StaffWorkloadSerializer(serializers.Serializer):
    staff_id = serializers.IntegerField()
    username = serializers.CharField()
    full_name = serializers.CharField(allow_blank=True)
    department_id = serializers.IntegerField(allow_null=True)
    ward_id = serializers.IntegerField(allow_null=True)
    assigned = serializers.IntegerField()
    in_progress = serializers.IntegerField()
    overdue = serializers.IntegerField()
    active = serializers.IntegerField()
    capacity = serializers.IntegerField()
    percentage = serializers.IntegerField()
    is_overloaded = serializers.BooleanField()


class CloseSerializer(serializers.Serializer):
    notes = serializers.CharField(help_text="Resolution notes recorded on the complaint.")


class PrioritySerializer(serializers.Serializer):
    priority = serializers.ChoiceField(choices=ComplaintPriority.choices)
    reason = serializers.CharField()


class PerItemResultSerializer(serializers.Serializer):
    complaint_id = serializers.IntegerField(source="id")
    ok = serializers.BooleanField()
    error_code = serializers.CharField(allow_null=True)
    detail = serializers.CharField(allow_blank=True)


# ═══════════════════════════════════════════════════════════════════
#  4. History, Comments, Escalations
# ═══════════════════════════════════════════════════════════════════


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ComplaintStatusHistory
        fields = ["id", "old_status", "new_status", "changed_by", "note", "created_at"]
        read_only_fields = fields


class AssignmentHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ComplaintAssignmentHistory
        fields = [
            "id",
            "assigned_to",
            "assigned_by",
            "previous_staff",
            "reason",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class CommentSerializer(serializers.ModelSerializer):
    class Meta:
        model = ComplaintComment
        fields = ["id", "author", "author_role", "content", "is_internal", "is_system", "created_at"]
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField()
    is_internal = serializers.BooleanField(required=False, default=False)


class EscalationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Escalation
        fields = [
            "id",
            "complaint",
            "escalated_by",
            "escalated_to",
            "urgency",
            "reason",
            "target_department",
            "target_external_agency",
            "acknowledged_at",
            "acknowledged_by",
            "resolved_at",
            "resolved_by",
            "resolution_notes",
            "created_at",
        ]
        read_only_fields = fields


class EscalationCreateSerializer(serializers.Serializer):
    escalated_to = serializers.ChoiceField(choices=EscalationTarget.choices)
    reason = serializers.CharField()
    urgency = serializers.ChoiceField(choices=ComplaintPriority.choices, required=False, default=ComplaintPriority.HIGH)
    target_department = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.filter(is_active=True), required=False, allow_null=True, default=None,
    )
    target_external_agency = serializers.CharField(required=False, allow_blank=True, default="")


class EscalationResolveSerializer(serializers.Serializer):
    notes = serializers.CharField()


class JurisdictionSerializer(serializers.Serializer):
    actor_id = serializers.IntegerField(allow_null=True)
    assigned_wards = serializers.ListField(child=serializers.IntegerField())
    assigned_departments = serializers.ListField(child=serializers.IntegerField())
    is_senior = serializers.BooleanField()
