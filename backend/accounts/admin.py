from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import StaffProfile, SupervisorProfile, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "phone_number",
                    "first_name", "last_name", "is_active", "role")
    search_fields = ("username", "email", "phone_number")
    list_filter = ("is_active", "is_staff", "role")
    filter_horizontal = ("groups", "user_permissions")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Extra Info", {"fields": ("phone_number", "role")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Extra Info", {"fields": ("email", "phone_number",
                                   "first_name", "last_name", "role")}),
    )


@admin.register(StaffProfile)
class StaffProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "staff_role", "department", "ward", "max_concurrent_assignments", "is_supervisor", "is_active")
    list_filter = ("is_active", "is_supervisor", "department", "ward")
    search_fields = ("user__username", "staff_role")
    raw_id_fields = ("user",)


@admin.register(SupervisorProfile)
class SupervisorProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "supervisor_level")
    list_filter = ("supervisor_level",)
    search_fields = ("user__username",)
    filter_horizontal = ("assigned_wards", "assigned_departments")
    raw_id_fields = ("user",)
