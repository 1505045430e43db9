"""
Core app service layer.

Cross-app helpers that back the ``/api/core/`` endpoints: system-wide
choice enumerations and the per-user notification inbox.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db.models import QuerySet

from core.domain.exceptions import NotFound

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations and reference data into a
    single dict for API clients.

    This service is **stateless** — it does not depend on the requesting
    user.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from accounts.models import SupervisorProfile
        from complaints.models import (
            ComplaintPriority,
            ComplaintSource,
            ComplaintStatus,
            EscalationTarget,
            SLAState,
        )
        from core.models import Department, Ward
        from core.permissions_constants import ROLE_CAPABILITIES, UserRole

        to_list = SystemConstantsService._choices_to_list

        return {
            "complaint_statuses": to_list(ComplaintStatus),
            "complaint_priorities": to_list(ComplaintPriority),
            "complaint_sources": to_list(ComplaintSource),
            "sla_states": to_list(SLAState),
            "escalation_targets": to_list(EscalationTarget),
            "supervisor_levels": to_list(SupervisorProfile.Level),
            "roles": [
                {
                    "value": str(value),
                    "label": str(label),
                    "capabilities": sorted(ROLE_CAPABILITIES.get(value, ())),
                }
                for value, label in UserRole.choices
            ],
            "wards": list(Ward.objects.filter(is_active=True).values("id", "number", "name")),
            "departments": list(Department.objects.filter(is_active=True).values("id", "code", "name")),
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Inbox Service
# ═══════════════════════════════════════════════════════════════════

class NotificationInboxService:
    """
    Handles listing and marking notifications as read for a given user.
    """

    def __init__(self, user: Any) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet:
        """Return notifications for ``self.user``, most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .select_related("content_type")
            .order_by("-created_at")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def mark_as_read(self, notification_id: int) -> Any:
        """Mark a single notification as read."""
        from core.models import Notification

        try:
            notification = Notification.objects.get(
                pk=notification_id,
                recipient=self.user,
            )
        except Notification.DoesNotExist:
            raise NotFound(f"Notification {notification_id} does not exist.")
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
        return notification
