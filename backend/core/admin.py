from django.contrib import admin

from .models import Conversation, ConversationMessage, Department, Notification, Ward


@admin.register(Ward)
class WardAdmin(admin.ModelAdmin):
    list_display = ("number", "name", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name",)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "is_active")
    list_filter = ("is_active",)
    search_fields = ("code", "name")


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("recipient", "title", "is_read", "created_at")
    list_filter = ("is_read",)


class ConversationMessageInline(admin.TabularInline):
    model = ConversationMessage
    extra = 0
    readonly_fields = ("sender", "body", "is_system", "created_at")


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("id", "participant_a", "participant_b", "created_at")
    inlines = [ConversationMessageInline]
