"""
complaints.notifications — Best-effort delivery of complaint side effects.

Subscribes to the domain events published by ``complaints.services`` and
turns them into conversation messages, in-app notifications and system
comments.  Handlers run after the primary transaction has committed.
Every individual delivery is isolated: a failure is logged as
``NotificationDeliveryFailed`` and the remaining deliveries still run.
Nothing raised here ever reaches the caller of the primary operation.

Routing table
-------------
┌──────────────────────┬──────────────────────────────────────────────────┐
│ Event                │ Deliveries                                       │
├──────────────────────┼──────────────────────────────────────────────────┤
│ ComplaintAssigned    │ message + notification → new assignee            │
│ ComplaintReassigned  │ message + notification → new assignee            │
│                      │ message + notification → previous assignee       │
│                      │ internal system comment on the complaint         │
│ AssignmentDeclined   │ notification → supervisor who assigned it        │
│ StatusChanged        │ notification → citizen and assignee (not actor)  │
│ SLABreached          │ notification → assignee                          │
│ ComplaintEscalated   │ notification → escalation recipients             │
└──────────────────────┴──────────────────────────────────────────────────┘
"""

from __future__ import annotations

import logging
from typing import Callable

from django.db import transaction

from accounts.models import User
from core.domain.events import (
    AssignmentDeclined,
    ComplaintAssigned,
    ComplaintEscalated,
    ComplaintReassigned,
    EventBus,
    SLABreached,
    StatusChanged,
    event_bus,
)
from core.domain.exceptions import NotificationDeliveryFailed
from core.domain.messaging import MessagingService
from core.domain.notifications import NotificationService

from .models import Complaint, Escalation

logger = logging.getLogger(__name__)

MSG_ASSIGNED = 'You have been assigned Task #{tracking_code}: "{title}". Please review ASAP.'
MSG_REVOKED = "Task #{tracking_code} has been revoked and reassigned. Please stop work on this item."
COMMENT_REASSIGNED = "Task reassigned to new staff. Reason: {reason}"


def deliver(channel: str, recipient_id: int | None, send: Callable[[], object]) -> bool:
    """
    Run one delivery, converting any failure into a logged
    ``NotificationDeliveryFailed``.  Returns ``True`` on success.
    """
    try:
        with transaction.atomic():
            send()
    except Exception as exc:
        failure = NotificationDeliveryFailed(
            f"{channel} delivery to user {recipient_id} failed: {exc}",
            channel=channel,
            recipient_id=recipient_id,
        )
        logger.warning("%s", failure, exc_info=True)
        return False
    return True


def _users(*ids: int | None) -> dict[int, User]:
    wanted = {pk for pk in ids if pk is not None}
    if not wanted:
        return {}
    return User.objects.in_bulk(wanted)


class ComplaintNotificationDispatcher:
    """Event handlers; registered on the bus by ``ComplaintsConfig.ready``."""

    @staticmethod
    def _load(complaint_id: int) -> Complaint | None:
        complaint = Complaint.objects.filter(pk=complaint_id).first()
        if complaint is None:
            logger.warning("Complaint %s vanished before its notifications were sent.", complaint_id)
        return complaint

    @staticmethod
    def _notify_assignee(complaint: Complaint, actor: User | None, staff: User, event_type: str) -> None:
        payload = {"tracking_code": complaint.tracking_code, "title": complaint.title}
        if actor is not None and actor.pk != staff.pk:
            deliver(
                "message",
                staff.pk,
                lambda: MessagingService.send_system_message(
                    sender=actor,
                    recipient=staff,
                    body=MSG_ASSIGNED.format(**payload),
                ),
            )
        deliver(
            "notification",
            staff.pk,
            lambda: NotificationService.create(
                actor=actor,
                recipients=staff,
                event_type=event_type,
                payload=payload,
                related_object=complaint,
            ),
        )

    @staticmethod
    def on_assigned(event: ComplaintAssigned) -> None:
        complaint = ComplaintNotificationDispatcher._load(event.complaint_id)
        if complaint is None:
            return
        users = _users(event.staff_id, event.actor_id)
        staff = users.get(event.staff_id)
        if staff is None:
            return
        ComplaintNotificationDispatcher._notify_assignee(
            complaint, users.get(event.actor_id), staff, "complaint_assigned",
        )

    @staticmethod
    def on_reassigned(event: ComplaintReassigned) -> None:
        complaint = ComplaintNotificationDispatcher._load(event.complaint_id)
        if complaint is None:
            return
        users = _users(event.new_staff_id, event.old_staff_id, event.actor_id)
        actor = users.get(event.actor_id)
        new_staff = users.get(event.new_staff_id)
        old_staff = users.get(event.old_staff_id) if event.old_staff_id else None

        if new_staff is not None:
            ComplaintNotificationDispatcher._notify_assignee(
                complaint, actor, new_staff, "complaint_reassigned",
            )

        if old_staff is not None and old_staff.pk != event.new_staff_id:
            payload = {"tracking_code": complaint.tracking_code}
            if actor is not None and actor.pk != old_staff.pk:
                deliver(
                    "message",
                    old_staff.pk,
                    lambda: MessagingService.send_system_message(
                        sender=actor,
                        recipient=old_staff,
                        body=MSG_REVOKED.format(**payload),
                    ),
                )
            deliver(
                "notification",
                old_staff.pk,
                lambda: NotificationService.create(
                    actor=actor,
                    recipients=old_staff,
                    event_type="complaint_revoked",
                    payload=payload,
                    related_object=complaint,
                ),
            )

        from .services import ComplaintCommentService

        deliver(
            "system_comment",
            None,
            lambda: ComplaintCommentService.add_system_comment(
                complaint.pk,
                COMMENT_REASSIGNED.format(reason=event.reason),
                author=actor,
            ),
        )

    @staticmethod
    def on_declined(event: AssignmentDeclined) -> None:
        complaint = ComplaintNotificationDispatcher._load(event.complaint_id)
        if complaint is None or event.assigned_by_id is None:
            return
        users = _users(event.staff_id, event.assigned_by_id)
        supervisor = users.get(event.assigned_by_id)
        staff = users.get(event.staff_id)
        if supervisor is None or supervisor.pk == event.staff_id:
            return
        deliver(
            "notification",
            supervisor.pk,
            lambda: NotificationService.create(
                actor=staff,
                recipients=supervisor,
                event_type="complaint_declined",
                payload={
                    "tracking_code": complaint.tracking_code,
                    "staff_name": (staff.get_full_name() or staff.username) if staff else "Staff",
                    "reason": event.reason,
                },
                related_object=complaint,
            ),
        )

    @staticmethod
    def on_status_changed(event: StatusChanged) -> None:
        complaint = ComplaintNotificationDispatcher._load(event.complaint_id)
        if complaint is None:
            return
        recipient_ids = {complaint.citizen_id, complaint.assigned_staff_id} - {None, event.actor_id}
        if not recipient_ids:
            return
        users = _users(*recipient_ids, event.actor_id)
        recipients = [users[pk] for pk in recipient_ids if pk in users]
        payload = {
            "tracking_code": complaint.tracking_code,
            "old_status": event.old_status or "new",
            "new_status": event.new_status,
        }
        for recipient in recipients:
            deliver(
                "notification",
                recipient.pk,
                lambda recipient=recipient: NotificationService.create(
                    actor=users.get(event.actor_id),
                    recipients=recipient,
                    event_type="complaint_status_changed",
                    payload=payload,
                    related_object=complaint,
                ),
            )

    @staticmethod
    def on_sla_breached(event: SLABreached) -> None:
        complaint = ComplaintNotificationDispatcher._load(event.complaint_id)
        if complaint is None or complaint.assigned_staff_id is None:
            return
        staff = complaint.assigned_staff
        deliver(
            "notification",
            staff.pk,
            lambda: NotificationService.create(
                actor=None,
                recipients=staff,
                event_type="sla_breached",
                payload={"tracking_code": complaint.tracking_code},
                related_object=complaint,
            ),
        )

    @staticmethod
    def on_escalated(event: ComplaintEscalated) -> None:
        from .services import EscalationService

        escalation = (
            Escalation.objects.select_related("complaint", "target_department")
            .filter(pk=event.escalation_id)
            .first()
        )
        if escalation is None:
            return
        recipients = [u for u in EscalationService.recipients_for(escalation) if u.pk != event.actor_id]
        target = escalation.target_department.name if escalation.target_department else escalation.get_escalated_to_display()
        for recipient in recipients:
            deliver(
                "notification",
                recipient.pk,
                lambda recipient=recipient: NotificationService.create(
                    actor=None,
                    recipients=recipient,
                    event_type="complaint_escalated",
                    payload={"tracking_code": escalation.complaint.tracking_code, "target": target},
                    related_object=escalation.complaint,
                ),
            )


def register(bus: EventBus = event_bus) -> None:
    """Subscribe the dispatcher to ``bus``.  Safe to call more than once."""
    bus.subscribe(ComplaintAssigned, ComplaintNotificationDispatcher.on_assigned)
    bus.subscribe(ComplaintReassigned, ComplaintNotificationDispatcher.on_reassigned)
    bus.subscribe(AssignmentDeclined, ComplaintNotificationDispatcher.on_declined)
    bus.subscribe(StatusChanged, ComplaintNotificationDispatcher.on_status_changed)
    bus.subscribe(SLABreached, ComplaintNotificationDispatcher.on_sla_breached)
    bus.subscribe(ComplaintEscalated, ComplaintNotificationDispatcher.on_escalated)
