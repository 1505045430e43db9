"""
core.domain.notifications — In-app notification creation helper.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Design decisions
----------------
* **Called from event subscribers** — services never notify directly; they
  publish domain events (``core.domain.events``) and the complaint
  notification dispatcher calls ``NotificationService.create`` after the
  transaction has committed.
* **Supports multiple recipients** — pass a single ``User`` or an
  iterable of ``User`` instances.
* **Templated messages** — ``payload`` keys are interpolated into the
  title / message templates; missing keys are left as-is.
* **Generic relation** — ``related_object`` is optional; if provided
  its ``ContentType`` and PK are stored via the ``Notification`` model's
  ``GenericForeignKey``.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.create(
        actor=supervisor,
        recipients=staff_user,
        event_type="complaint_assigned",
        payload={"tracking_code": complaint.tracking_code},
        related_object=complaint,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.contrib.contenttypes.models import ContentType
from django.db import models

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event-type → human-readable templates ───────────────────────────
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    # event_type: (title_template, message_template)
    "complaint_assigned":    ("Complaint Assigned",       "Complaint {tracking_code} has been assigned to you."),
    "complaint_reassigned":  ("Complaint Reassigned",     "Complaint {tracking_code} has been reassigned to you."),
    "complaint_revoked":     ("Complaint Revoked",        "Complaint {tracking_code} has been reassigned to another staff member."),
    "complaint_declined":    ("Assignment Declined",      "{staff_name} declined complaint {tracking_code}: {reason}"),
    "complaint_status_changed": ("Complaint Status Updated", "Complaint {tracking_code} moved from {old_status} to {new_status}."),
    "sla_breached":          ("SLA Breached",             "Complaint {tracking_code} has passed its resolution deadline."),
    "complaint_escalated":   ("Complaint Escalated",      "Complaint {tracking_code} has been escalated to {target}."),
}


class _SafeDict(dict):
    def __missing__(self, key):
        return "{" + key + "}"


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def render(cls, event_type: str, payload: dict[str, Any] | None = None) -> tuple[str, str]:
        """Return the ``(title, message)`` pair for an event type."""
        title, message = _EVENT_TEMPLATES.get(
            event_type,
            (event_type.replace("_", " ").title(), f"Event: {event_type}"),
        )
        context = _SafeDict(payload or {})
        return title.format_map(context), message.format_map(context)

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per recipient.

        Args:
            actor:          The user who performed the action, or ``None``
                            for system-originated events (SLA sweep).
            recipients:     A single ``User`` or iterable of ``User``
                            instances.
            event_type:     Key into ``_EVENT_TEMPLATES``.  If unknown
                            the raw event_type is used as title.
            payload:        Context dict interpolated into the templates.
            related_object: Optional model instance linked via
                            ``GenericForeignKey``.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification  # lazy import

        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if not recipients:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for event_type=%s by actor=%s",
                event_type,
                actor,
            )
            return []

        title, message = cls.render(event_type, payload)

        content_type = None
        object_id = None
        if related_object is not None:
            content_type = ContentType.objects.get_for_model(related_object)
            object_id = related_object.pk

        notifications = Notification.objects.bulk_create(
            [
                Notification(
                    recipient=recipient,
                    title=title,
                    message=message,
                    content_type=content_type,
                    object_id=object_id,
                )
                for recipient in recipients
            ]
        )

        logger.info(
            "Created %d notification(s) [%s] by actor=%s",
            len(notifications),
            event_type,
            actor,
        )
        return notifications
