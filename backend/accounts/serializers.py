"""
Accounts app serializers.

Response serializers for the current-user endpoint.  **No business
logic** lives here.
"""

from __future__ import annotations

from rest_framework import serializers

from .models import StaffProfile, User


class StaffProfileSerializer(serializers.ModelSerializer):
    department_name = serializers.CharField(source="department.name", read_only=True, default=None)
    ward_number = serializers.IntegerField(source="ward.number", read_only=True, default=None)

    class Meta:
        model = StaffProfile
        fields = [
            "id",
            "staff_role",
            "department",
            "department_name",
            "ward",
            "ward_number",
            "is_supervisor",
            "is_active",
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "role"]
        read_only_fields = fields

    def get_full_name(self, obj: User) -> str:
        return obj.get_full_name() or obj.username


class MeSerializer(serializers.Serializer):
    """
    Current-user payload: identity, role, the flat capability list used
    by clients to decide which actions to offer, and the staff profile.
    """

    user = UserSummarySerializer(read_only=True)
    role = serializers.CharField(read_only=True, allow_null=True)
    capabilities = serializers.ListField(child=serializers.CharField(), read_only=True)
    staff_profile = StaffProfileSerializer(read_only=True, allow_null=True)
