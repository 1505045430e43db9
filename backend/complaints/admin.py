from django.contrib import admin

from .models import (
    Complaint,
    ComplaintAssignmentHistory,
    ComplaintCategory,
    ComplaintComment,
    ComplaintStatusHistory,
    ComplaintSubcategory,
    Escalation,
)


class ReadOnlyAdminMixin:
    """History rows are append-only: no edits or deletes through the admin."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ComplaintStatusHistoryInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = ComplaintStatusHistory
    extra = 0
    readonly_fields = ("old_status", "new_status", "changed_by",
                       "note", "created_at")


class ComplaintAssignmentHistoryInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = ComplaintAssignmentHistory
    fk_name = "complaint"
    extra = 0
    readonly_fields = ("assigned_to", "assigned_by", "previous_staff",
                       "reason", "notes", "created_at")


class ComplaintSubcategoryInline(admin.TabularInline):
    model = ComplaintSubcategory
    extra = 0


@admin.register(ComplaintCategory)
class ComplaintCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "default_sla_days", "default_department", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name",)
    inlines = [ComplaintSubcategoryInline]


@admin.register(Complaint)
class ComplaintAdmin(admin.ModelAdmin):
    list_display = ("tracking_code", "title", "status", "priority",
                    "ward", "assigned_department", "assigned_staff",
                    "sla_due_at", "sla_breached_at")
    list_filter = ("status", "priority", "source", "is_escalated", "ward")
    search_fields = ("tracking_code", "title")
    readonly_fields = ("tracking_code", "status", "submitted_at", "assigned_at",
                       "resolved_at", "resolved_by", "closed_at",
                       "sla_due_at", "sla_breached_at")
    raw_id_fields = ("assigned_staff", "citizen")
    inlines = [ComplaintStatusHistoryInline,
               ComplaintAssignmentHistoryInline]


@admin.register(ComplaintStatusHistory)
class ComplaintStatusHistoryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("complaint", "old_status", "new_status",
                    "changed_by", "created_at")
    list_filter = ("new_status",)


@admin.register(ComplaintAssignmentHistory)
class ComplaintAssignmentHistoryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("complaint", "assigned_to", "assigned_by",
                    "previous_staff", "created_at")


@admin.register(ComplaintComment)
class ComplaintCommentAdmin(admin.ModelAdmin):
    list_display = ("complaint", "author", "is_internal", "is_system", "created_at")
    list_filter = ("is_internal", "is_system")


@admin.register(Escalation)
class EscalationAdmin(admin.ModelAdmin):
    list_display = ("complaint", "escalated_to", "urgency",
                    "acknowledged_at", "resolved_at")
    list_filter = ("escalated_to", "urgency")
    readonly_fields = ("complaint", "escalated_by", "escalated_to", "reason",
                       "acknowledged_at", "acknowledged_by",
                       "resolved_at", "resolved_by")
