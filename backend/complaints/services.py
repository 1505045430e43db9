"""
Complaints app Service Layer.

This module is the **single source of truth** for all business logic
in the ``complaints`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``ComplaintSubmissionService``  — Intake: tracking code, SLA stamp, routing.
- ``ComplaintWorkflowService``    — State-machine transitions, accept / decline.
- ``SLAService``                  — Due dates, breach classification, SLA lists.
- ``ComplaintAssignmentService``  — Assign / reassign / bulk assign / close.
- ``StaffWorkloadService``        — Per-staff load and assignment capacity.
- ``ComplaintQueryService``       — Scoped search, unassigned queue, detail, history.
- ``ComplaintCommentService``     — Comment thread and priority changes.
- ``EscalationService``           — Escalate, acknowledge, resolve.

Workflow State-Machine Overview
--------------------------------

  RECEIVED ──▶ UNDER_REVIEW ──▶ ASSIGNED ──▶ IN_PROGRESS ──▶ RESOLVED ──▶ CLOSED
     │              │                                           │           │
     └──▶ REJECTED ◀┘                                           ▼           │
             │                                              REOPENED ◀──────┘
             └──────────────────────────────────────────────▶   │
                                        UNDER_REVIEW | ASSIGNED | IN_PROGRESS

  * ASSIGNED / IN_PROGRESS require an assignee.
  * The Assignment Engine moves a complaint to ASSIGNED from any
    non-terminal status without consulting the edge table.

Every mutation locks the complaint row (``select_for_update``) inside
``transaction.atomic`` and recomputes the actor's jurisdiction.  Side
effects (messages, notifications, system comments) are published as
domain events and delivered after commit by ``complaints.notifications``.
"""

from __future__ import annotations

import datetime
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Iterable

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Case, Count, IntegerField, Q, QuerySet, Value, When
from django.utils import timezone

from accounts.models import StaffProfile, SupervisorProfile, User
from accounts.services import StaffDirectoryService
from core.domain.access import apply_scope, has_capability, require_capability, require_in_scope
from core.domain.events import (
    AssignmentDeclined,
    ComplaintAssigned,
    ComplaintEscalated,
    ComplaintReassigned,
    SLABreached,
    StatusChanged,
    event_bus,
)
from core.domain.exceptions import (
    Conflict,
    IllegalTransition,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from core.domain.predicates import Always, Field, Predicate, all_of, any_of
from core.domain.transactions import PerItemResult, lock_for_update, run_per_item, set_once
from core.permissions_constants import Capability, UserRole

from .jurisdiction import (
    JurisdictionResolver,
    SupervisorJurisdiction,
    can_assign_into,
)
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
    SLAState,
)

logger = logging.getLogger(__name__)


def _config(key: str) -> Any:
    return settings.COMPLAINTS[key]


# ═══════════════════════════════════════════════════════════════════
#  Valid transition map
# ═══════════════════════════════════════════════════════════════════

#: Maps (from_status, to_status) → capability required for the edge.
#: Transitions not present here are illegal.
ALLOWED_TRANSITIONS: dict[tuple[str, str], str] = {
    (ComplaintStatus.RECEIVED, ComplaintStatus.UNDER_REVIEW): Capability.CHANGE_STATUS,
    (ComplaintStatus.RECEIVED, ComplaintStatus.REJECTED): Capability.REJECT,
    (ComplaintStatus.UNDER_REVIEW, ComplaintStatus.ASSIGNED): Capability.ASSIGN,
    (ComplaintStatus.UNDER_REVIEW, ComplaintStatus.REJECTED): Capability.REJECT,
    (ComplaintStatus.ASSIGNED, ComplaintStatus.IN_PROGRESS): Capability.CHANGE_STATUS,
    (ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED): Capability.CHANGE_STATUS,
    (ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED): Capability.CLOSE,
    (ComplaintStatus.RESOLVED, ComplaintStatus.REOPENED): Capability.REOPEN,
    (ComplaintStatus.CLOSED, ComplaintStatus.REOPENED): Capability.REOPEN,
    (ComplaintStatus.REJECTED, ComplaintStatus.REOPENED): Capability.REOPEN,
    (ComplaintStatus.REOPENED, ComplaintStatus.UNDER_REVIEW): Capability.CHANGE_STATUS,
    (ComplaintStatus.REOPENED, ComplaintStatus.ASSIGNED): Capability.ASSIGN,
    (ComplaintStatus.REOPENED, ComplaintStatus.IN_PROGRESS): Capability.CHANGE_STATUS,
}

#: Statuses in which the SLA clock no longer runs.
SLA_STOPPED_STATUSES: frozenset[str] = frozenset({
    ComplaintStatus.RESOLVED,
    ComplaintStatus.CLOSED,
    ComplaintStatus.REJECTED,
})

#: Statuses that require ``assigned_staff``.
STAFFED_STATUSES: frozenset[str] = frozenset({
    ComplaintStatus.ASSIGNED,
    ComplaintStatus.IN_PROGRESS,
})

#: Statuses from which assignment is refused until the complaint is reopened.
UNASSIGNABLE_STATUSES: frozenset[str] = frozenset({
    ComplaintStatus.CLOSED,
    ComplaintStatus.REJECTED,
})

UNASSIGNED_QUEUE_STATUSES: tuple[str, ...] = (
    ComplaintStatus.RECEIVED,
    ComplaintStatus.UNDER_REVIEW,
)

_PRIORITY_RANK = Case(
    When(priority=ComplaintPriority.CRITICAL, then=Value(0)),
    When(priority=ComplaintPriority.URGENT, then=Value(1)),
    When(priority=ComplaintPriority.HIGH, then=Value(2)),
    When(priority=ComplaintPriority.MEDIUM, then=Value(3)),
    When(priority=ComplaintPriority.LOW, then=Value(4)),
    default=Value(5),
    output_field=IntegerField(),
)

#: Public sort keys → ORM ordering expression.
SORT_FIELDS: dict[str, str] = {
    "submitted_at": "submitted_at",
    "updated_at": "updated_at",
    "sla_due_at": "sla_due_at",
    "status": "status",
    "tracking_code": "tracking_code",
    "title": "title",
    "priority": "priority_rank",
}
DEFAULT_SORT = "-submitted_at"


def _pk(obj: Complaint | int) -> int:
    return obj.pk if isinstance(obj, Complaint) else obj


def _require_text(value: str | None, field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"'{field}' must not be blank.")
    return value


def visibility_predicate(actor: User, jurisdiction: SupervisorJurisdiction) -> Predicate:
    """
    Read-visibility rule for an actor.

    Citizens see the complaints they submitted; everyone else sees their
    jurisdiction.
    """
    if getattr(actor, "role", None) == UserRole.CITIZEN and not actor.is_superuser:
        return Field("citizen_id").eq(actor.pk)
    return jurisdiction.as_predicate()


def _base_queryset() -> QuerySet:
    return Complaint.objects.select_related(
        "category",
        "subcategory",
        "ward",
        "assigned_department",
        "assigned_staff",
        "citizen",
    )


# ═══════════════════════════════════════════════════════════════════
#  Complaint Submission Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintSubmissionService:
    """Intake of new complaints."""

    _MAX_CODE_ATTEMPTS = 5

    @staticmethod
    def generate_tracking_code(when: datetime.datetime | None = None) -> str:
        """Return a code like ``CMP-20240101-3FA9C2``."""
        when = when or timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"{_config('TRACKING_CODE_PREFIX')}-{when:%Y%m%d}-{suffix}"

    @staticmethod
    def _unique_tracking_code(when: datetime.datetime) -> str:
        for _ in range(ComplaintSubmissionService._MAX_CODE_ATTEMPTS):
            code = ComplaintSubmissionService.generate_tracking_code(when)
            if not Complaint.objects.filter(tracking_code=code).exists():
                return code
            logger.warning("Tracking code collision on %s; retrying.", code)
        raise Conflict("Could not allocate a unique tracking code.")

    @staticmethod
    @transaction.atomic
    def submit_complaint(
        validated_data: dict[str, Any],
        submitted_by: User,
        *,
        submitted_at: datetime.datetime | None = None,
    ) -> Complaint:
        """
        Register a new complaint in ``received`` status.

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``ComplaintCreateSerializer``.  Required:
            ``title``, ``description``, ``category``, ``ward``.  Optional:
            ``subcategory``, ``priority``, ``source``, location
            fields, ``is_anonymous``.
        submitted_by : User
            The citizen (or call-center operator) filing the complaint.
        submitted_at : datetime, optional
            Intake timestamp; defaults to now.

        Returns
        -------
        Complaint
            The new complaint with ``tracking_code`` and ``sla_due_at``
            stamped and its initial status-history entry written.

        Raises
        ------
        ValidationError
            Blank title/description, missing ward, inactive category, or a subcategory
            that does not belong to the category.
        """
        data = dict(validated_data)
        data["title"] = _require_text(data.get("title"), "title")
        data["description"] = _require_text(data.get("description"), "description")

        category: ComplaintCategory | None = data.get("category")
        subcategory: ComplaintSubcategory | None = data.get("subcategory")
        if category is None:
            raise ValidationError("'category' is required.")
        if not category.is_active:
            raise ValidationError(f"Category '{category.name}' is not accepting complaints.")
        if subcategory is not None and subcategory.category_id != category.pk:
            raise ValidationError("Subcategory does not belong to the selected category.")
        if data.get("ward") is None:
            raise ValidationError("'ward' is required.")

        submitted_at = submitted_at or timezone.now()
        complaint = Complaint.objects.create(
            **data,
            tracking_code=ComplaintSubmissionService._unique_tracking_code(submitted_at),
            status=ComplaintStatus.RECEIVED,
            citizen=submitted_by,
            submitted_at=submitted_at,
            sla_due_at=SLAService.compute_due_at(category, subcategory, submitted_at),
            assigned_department=category.default_department,
        )
        ComplaintStatusHistory.objects.create(
            complaint=complaint,
            old_status="",
            new_status=ComplaintStatus.RECEIVED,
            changed_by=submitted_by,
            note="Complaint submitted.",
        )
        logger.info(
            "Complaint %s submitted by user=%s (due %s)",
            complaint.tracking_code,
            submitted_by.pk,
            complaint.sla_due_at,
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Complaint Workflow Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintWorkflowService:
    """
    Manages **all** status transitions in the complaint lifecycle.

    ``transition`` is the validated gateway through ``ALLOWED_TRANSITIONS``;
    ``bulk_transition`` applies it per item.  ``apply_status`` is the
    low-level writer shared with the Assignment Engine.
    """

    ALLOWED_TRANSITIONS = ALLOWED_TRANSITIONS

    @staticmethod
    def allowed_targets(current_status: str) -> list[str]:
        return [target for (source, target) in ALLOWED_TRANSITIONS if source == current_status]

    @staticmethod
    def transition(
        complaint: Complaint | int,
        new_status: str,
        actor: User,
        note: str = "",
    ) -> Complaint:
        """
        **The central state-machine gateway.**

        Checks, in order: jurisdiction (``NotAuthorized``), edge legality
        (``IllegalTransition``), the edge's capability (``NotAuthorized``)
        and the assignee invariant (``IllegalTransition``).  On success the
        status, its timestamps and a ``ComplaintStatusHistory`` row are
        written in one atomic unit and ``StatusChanged`` is published
        after commit.
        """
        with transaction.atomic():
            locked = lock_for_update(Complaint, _pk(complaint))
            jurisdiction = JurisdictionResolver.resolve(actor)
            ComplaintWorkflowService.transition_locked(locked, new_status, actor, jurisdiction, note)
        return locked

    @staticmethod
    def transition_locked(
        complaint: Complaint,
        new_status: str,
        actor: User,
        jurisdiction: SupervisorJurisdiction,
        note: str = "",
        extra_fields: Iterable[str] = (),
    ) -> Complaint:
        """Run ``transition`` checks and writes on an already-locked row."""
        require_in_scope(complaint, jurisdiction.as_predicate())

        if new_status not in ComplaintStatus.values:
            raise ValidationError(f"Unknown status '{new_status}'.")

        capability = ALLOWED_TRANSITIONS.get((complaint.status, new_status))
        if capability is None:
            raise IllegalTransition(current=complaint.status, target=new_status)

        require_capability(actor, capability)

        if new_status in STAFFED_STATUSES and complaint.assigned_staff_id is None:
            raise IllegalTransition(
                current=complaint.status,
                target=new_status,
                reason="the complaint has no assigned staff member",
            )

        ComplaintWorkflowService.apply_status(
            complaint, new_status, actor, note, extra_fields=extra_fields,
        )
        return complaint

    @staticmethod
    def apply_status(
        complaint: Complaint,
        new_status: str,
        actor: User | None,
        note: str = "",
        *,
        extra_fields: Iterable[str] = (),
        now: datetime.datetime | None = None,
    ) -> str:
        """
        Write a status change without legality checks.

        Stamps ``resolved_at``/``resolved_by`` on ``resolved`` and
        ``closed_at`` on ``closed``; reopening clears them.  Returns the
        previous status.
        """
        now = now or timezone.now()
        old_status = complaint.status
        update_fields = {"status", "updated_at", *extra_fields}

        complaint.status = new_status
        if new_status == ComplaintStatus.RESOLVED:
            complaint.resolved_at = now
            complaint.resolved_by = actor
            update_fields |= {"resolved_at", "resolved_by"}
        elif new_status == ComplaintStatus.CLOSED:
            complaint.closed_at = now
            update_fields.add("closed_at")
        elif new_status == ComplaintStatus.REOPENED:
            complaint.resolved_at = None
            complaint.resolved_by = None
            complaint.closed_at = None
            update_fields |= {"resolved_at", "resolved_by", "closed_at"}

        complaint.save(update_fields=sorted(update_fields))
        ComplaintStatusHistory.objects.create(
            complaint=complaint,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor,
            note=note,
        )
        event_bus.publish(
            StatusChanged(
                complaint_id=complaint.pk,
                old_status=old_status,
                new_status=new_status,
                actor_id=getattr(actor, "pk", None),
                note=note,
            )
        )
        logger.info(
            "Complaint %s: %s → %s by user=%s",
            complaint.tracking_code,
            old_status,
            new_status,
            getattr(actor, "pk", None),
        )
        return old_status

    @staticmethod
    def bulk_transition(
        complaint_ids: Iterable[int],
        new_status: str,
        actor: User,
        note: str = "",
    ) -> list[PerItemResult]:
        """
        Apply ``transition`` to each id independently.

        Never raises for item failures; each failure is reported with its
        error code and the remaining items still run.
        """
        results = run_per_item(
            complaint_ids,
            lambda pk: ComplaintWorkflowService.transition(pk, new_status, actor, note),
        )
        logger.info(
            "Bulk transition to %s by user=%s: %d ok, %d failed",
            new_status,
            actor.pk,
            sum(r.ok for r in results),
            sum(not r.ok for r in results),
        )
        return results

    @staticmethod
    def _lock_own_assignment(complaint: Complaint | int, actor: User, target: str) -> Complaint:
        locked = lock_for_update(Complaint, _pk(complaint))
        if locked.assigned_staff_id != actor.pk:
            raise NotAuthorized("Only the assigned staff member can respond to this assignment.")
        if locked.status != ComplaintStatus.ASSIGNED:
            raise IllegalTransition(
                current=locked.status,
                target=target,
                reason="only complaints awaiting acceptance can be accepted or declined",
            )
        return locked

    @staticmethod
    def accept(complaint: Complaint | int, actor: User, note: str = "") -> Complaint:
        """The assignee takes up the work: ``assigned`` → ``in_progress``."""
        require_capability(actor, Capability.CHANGE_STATUS)
        with transaction.atomic():
            locked = ComplaintWorkflowService._lock_own_assignment(
                complaint, actor, ComplaintStatus.IN_PROGRESS,
            )
            ComplaintWorkflowService.apply_status(
                locked,
                ComplaintStatus.IN_PROGRESS,
                actor,
                note or "Assignment accepted.",
            )
        return locked

    @staticmethod
    def decline(complaint: Complaint | int, actor: User, reason: str) -> Complaint:
        """
        The assignee hands the work back.

        The assignee is cleared and the complaint returns to
        ``under_review`` so it reappears in the unassigned queue.  The
        supervisor who made the latest assignment is told after commit.
        """
        reason = _require_text(reason, "reason")
        require_capability(actor, Capability.CHANGE_STATUS)
        with transaction.atomic():
            locked = ComplaintWorkflowService._lock_own_assignment(
                complaint, actor, ComplaintStatus.UNDER_REVIEW,
            )
            latest = (
                ComplaintAssignmentHistory.objects
                .filter(complaint=locked, assigned_to=actor)
                .order_by("-created_at", "-id")
                .first()
            )
            locked.assigned_staff = None
            locked.assigned_at = None
            ComplaintWorkflowService.apply_status(
                locked,
                ComplaintStatus.UNDER_REVIEW,
                actor,
                f"Declined by {actor.get_full_name() or actor.username}: {reason}",
                extra_fields=["assigned_staff", "assigned_at"],
            )
            event_bus.publish(
                AssignmentDeclined(
                    complaint_id=locked.pk,
                    staff_id=actor.pk,
                    assigned_by_id=latest.assigned_by_id if latest else None,
                    reason=reason,
                )
            )
        logger.info("Complaint %s declined by user=%s", locked.tracking_code, actor.pk)
        return locked


# ═══════════════════════════════════════════════════════════════════
#  SLA Service
# ═══════════════════════════════════════════════════════════════════


class SLAService:
    """Deadline stamping, breach detection and SLA-focused queries."""

    OVERDUE = "overdue"
    AT_RISK = "at_risk"
    MODES = (OVERDUE, AT_RISK)

    @staticmethod
    def turnaround_days(
        category: ComplaintCategory | None,
        subcategory: ComplaintSubcategory | None,
    ) -> int:
        if subcategory is not None and subcategory.default_sla_days is not None:
            return subcategory.default_sla_days
        if category is not None and category.default_sla_days is not None:
            return category.default_sla_days
        return int(_config("DEFAULT_SLA_DAYS"))

    @staticmethod
    def compute_due_at(
        category: ComplaintCategory | None,
        subcategory: ComplaintSubcategory | None,
        submitted_at: datetime.datetime,
    ) -> datetime.datetime:
        """``submitted_at`` plus the subcategory, category or default turnaround."""
        days = SLAService.turnaround_days(category, subcategory)
        return submitted_at + datetime.timedelta(days=days)

    @staticmethod
    def at_risk_window() -> datetime.timedelta:
        return datetime.timedelta(hours=int(_config("SLA_AT_RISK_HOURS")))

    @staticmethod
    def check_breach(complaint: Complaint, now: datetime.datetime | None = None) -> str:
        """Classify a complaint as ``on_track``, ``at_risk`` or ``breached``."""
        now = now or timezone.now()
        due = complaint.sla_due_at
        if due is None or complaint.status in SLA_STOPPED_STATUSES:
            return SLAState.ON_TRACK
        if now > due:
            return SLAState.BREACHED
        if due - now <= SLAService.at_risk_window():
            return SLAState.AT_RISK
        return SLAState.ON_TRACK

    @staticmethod
    def detect_breach(complaint: Complaint, now: datetime.datetime | None = None) -> bool:
        """
        Stamp ``sla_breached_at`` if the complaint is breached and not yet
        stamped.

        The write is a conditional ``UPDATE ... WHERE sla_breached_at IS
        NULL`` so exactly one caller wins; only that caller publishes
        ``SLABreached``.  Returns ``True`` if this call stamped the row.
        """
        now = now or timezone.now()
        if complaint.sla_breached_at is not None:
            return False
        if SLAService.check_breach(complaint, now) != SLAState.BREACHED:
            return False

        stamped = set_once(
            Complaint,
            complaint.pk,
            "sla_breached_at",
            now,
            sla_due_at__lt=now,
            status__in=[s for s in ComplaintStatus.values if s not in SLA_STOPPED_STATUSES],
        )
        if stamped:
            complaint.sla_breached_at = now
            event_bus.publish(SLABreached(complaint_id=complaint.pk, breached_at=now))
            logger.warning("SLA breached: complaint %s (due %s)", complaint.tracking_code, complaint.sla_due_at)
        else:
            complaint.refresh_from_db(fields=["sla_breached_at"])
        return stamped

    @staticmethod
    def sla_predicate(mode: str, now: datetime.datetime) -> Predicate:
        running = ~Field("status").in_(SLA_STOPPED_STATUSES)
        if mode == SLAService.OVERDUE:
            return all_of(running, Field("sla_due_at").lt(now))
        if mode == SLAService.AT_RISK:
            return all_of(
                running,
                Field("sla_due_at").gte(now),
                Field("sla_due_at").lte(now + SLAService.at_risk_window()),
            )
        raise ValidationError(f"Unknown SLA mode '{mode}'. Expected one of: {', '.join(SLAService.MODES)}.")

    @staticmethod
    def get_sla_complaints(
        actor: User,
        mode: str,
        *,
        offset: int = 0,
        limit: int | None = None,
        now: datetime.datetime | None = None,
    ) -> tuple[list[Complaint], int]:
        """
        Jurisdiction-scoped overdue / at-risk list, earliest deadline first.

        Overdue rows are breach-stamped as they are read.
        """
        now = now or timezone.now()
        jurisdiction = JurisdictionResolver.resolve(actor)
        qs = (
            apply_scope(_base_queryset(), visibility_predicate(actor, jurisdiction))
            .filter(SLAService.sla_predicate(mode, now).to_q())
            .order_by("sla_due_at", "id")
        )
        items, total = ComplaintQueryService.paginate(qs, offset=offset, limit=limit)
        for complaint in items:
            SLAService.detect_breach(complaint, now)
        return items, total

    @staticmethod
    def sweep(now: datetime.datetime | None = None) -> int:
        """Stamp every overdue, unstamped complaint.  Returns the number stamped."""
        now = now or timezone.now()
        candidates = (
            Complaint.objects
            .filter(SLAService.sla_predicate(SLAService.OVERDUE, now).to_q())
            .filter(sla_breached_at__isnull=True)
            .only("id", "tracking_code", "status", "sla_due_at", "sla_breached_at")
        )
        stamped = 0
        for complaint in candidates.iterator():
            if SLAService.detect_breach(complaint, now):
                stamped += 1
        logger.info("SLA sweep at %s stamped %d complaint(s).", now.isoformat(), stamped)
        return stamped


# ═══════════════════════════════════════════════════════════════════
#  Complaint Assignment Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintAssignmentService:
    """
    Assignment Engine: puts a complaint in a staff member's hands.

    All entry points share ``_assign_locked`` so that assign, reassign and
    bulk assign apply identical validation and writes.
    """

    @staticmethod
    def _load_assignee(staff_user_id: int) -> StaffProfile:
        profile = StaffDirectoryService.get_staff_profile(staff_user_id)
        if not profile.is_active or not profile.user.is_active:
            raise ValidationError(f"Staff member {profile.user.username} is not active.")
        return profile

    @staticmethod
    def _check_assignee_scope(profile: StaffProfile, jurisdiction: SupervisorJurisdiction) -> None:
        if not can_assign_into(profile, jurisdiction):
            raise NotAuthorized("You cannot assign work to staff outside your jurisdiction.")

    @staticmethod
    def _assign_locked(
        complaint: Complaint,
        profile: StaffProfile,
        actor: User,
        jurisdiction: SupervisorJurisdiction,
        *,
        status_note: str,
        now: datetime.datetime,
    ) -> None:
        require_in_scope(complaint, jurisdiction.as_predicate())
        if complaint.status in UNASSIGNABLE_STATUSES:
            raise IllegalTransition(
                current=complaint.status,
                target=ComplaintStatus.ASSIGNED,
                reason="reopen the complaint before assigning it",
            )
        if _config("ENFORCE_WORKLOAD_CAPACITY") and complaint.assigned_staff_id != profile.user_id:
            StaffWorkloadService.check_capacity(profile)

        complaint.assigned_staff = profile.user
        complaint.assigned_at = now
        update_fields = ["assigned_staff", "assigned_at", "updated_at"]
        if complaint.assigned_department_id is None and profile.department_id is not None:
            complaint.assigned_department_id = profile.department_id
            update_fields.append("assigned_department")

        if complaint.status != ComplaintStatus.ASSIGNED:
            ComplaintWorkflowService.apply_status(
                complaint,
                ComplaintStatus.ASSIGNED,
                actor,
                status_note,
                extra_fields=update_fields,
                now=now,
            )
        else:
            complaint.save(update_fields=update_fields)

    @staticmethod
    def assign(
        complaint: Complaint | int,
        staff_user_id: int,
        actor: User,
        note: str = "",
    ) -> Complaint:
        """
        Assign a complaint to a staff member and move it to ``assigned``.

        Raises
        ------
        NotAuthorized
            Actor lacks ``assign``, or the complaint / staff member is
            outside the actor's jurisdiction.
        NotFound
            ``staff_user_id`` has no staff profile, or the complaint does
            not exist.
        ValidationError
            The staff member is inactive.
        IllegalTransition
            The complaint is closed or rejected.
        """
        require_capability(actor, Capability.ASSIGN)
        now = timezone.now()
        with transaction.atomic():
            locked = lock_for_update(Complaint, _pk(complaint))
            jurisdiction = JurisdictionResolver.resolve(actor)
            require_in_scope(locked, jurisdiction.as_predicate())
            profile = ComplaintAssignmentService._load_assignee(staff_user_id)
            ComplaintAssignmentService._check_assignee_scope(profile, jurisdiction)

            ComplaintAssignmentService._assign_locked(
                locked, profile, actor, jurisdiction,
                status_note=note or f"Assigned to {profile.user.get_full_name() or profile.user.username}.",
                now=now,
            )
            ComplaintAssignmentHistory.objects.create(
                complaint=locked,
                assigned_to=profile.user,
                assigned_by=actor,
                notes=note,
            )
            event_bus.publish(
                ComplaintAssigned(
                    complaint_id=locked.pk,
                    staff_id=profile.user_id,
                    actor_id=actor.pk,
                    note=note,
                )
            )
        logger.info("Complaint %s assigned to user=%s by user=%s", locked.tracking_code, profile.user_id, actor.pk)
        return locked

    @staticmethod
    def reassign(
        complaint: Complaint | int,
        new_staff_user_id: int,
        reason: str,
        actor: User,
        note: str = "",
        old_staff_user_id: int | None = None,
    ) -> Complaint:
        """
        Move a complaint to a different staff member.

        Same validation and writes as ``assign``; the history row records
        the prior holder and the reason.  After commit the dispatcher
        messages the new holder, tells the previous holder to stop, and
        posts a system comment.  ``old_staff_user_id`` defaults to the
        current assignee.
        """
        reason = _require_text(reason, "reason")
        require_capability(actor, Capability.ASSIGN)
        now = timezone.now()
        with transaction.atomic():
            locked = lock_for_update(Complaint, _pk(complaint))
            jurisdiction = JurisdictionResolver.resolve(actor)
            require_in_scope(locked, jurisdiction.as_predicate())
            profile = ComplaintAssignmentService._load_assignee(new_staff_user_id)
            ComplaintAssignmentService._check_assignee_scope(profile, jurisdiction)

            previous_id = old_staff_user_id if old_staff_user_id is not None else locked.assigned_staff_id
            previous = User.objects.filter(pk=previous_id).first() if previous_id else None
            previous_label = (previous.get_full_name() or previous.username) if previous else "Unassigned"
            history_notes = f"Reassigned from {previous_label}: {reason}"
            if note:
                history_notes = f"{history_notes}\n{note}"

            ComplaintAssignmentService._assign_locked(
                locked, profile, actor, jurisdiction,
                status_note=history_notes,
                now=now,
            )
            ComplaintAssignmentHistory.objects.create(
                complaint=locked,
                assigned_to=profile.user,
                assigned_by=actor,
                previous_staff=previous,
                reason=reason,
                notes=history_notes,
            )
            event_bus.publish(
                ComplaintReassigned(
                    complaint_id=locked.pk,
                    new_staff_id=profile.user_id,
                    old_staff_id=previous.pk if previous else None,
                    actor_id=actor.pk,
                    reason=reason,
                )
            )
        logger.info(
            "Complaint %s reassigned %s → %s by user=%s",
            locked.tracking_code,
            previous_id,
            profile.user_id,
            actor.pk,
        )
        return locked

    @staticmethod
    def bulk_assign(
        complaint_ids: Iterable[int],
        staff_user_id: int,
        actor: User,
        note: str = "",
    ) -> list[PerItemResult]:
        """
        Assign many complaints to one staff member.

        Staff validation happens once up front and raises.  Each complaint
        then runs the assignment core in its own atomic unit; history rows
        for the successful items are written with one batched insert whose
        failure is logged but never rolls back the assignments.
        """
        require_capability(actor, Capability.ASSIGN)
        jurisdiction = JurisdictionResolver.resolve(actor)
        profile = ComplaintAssignmentService._load_assignee(staff_user_id)
        ComplaintAssignmentService._check_assignee_scope(profile, jurisdiction)
        now = timezone.now()
        status_note = note or "Bulk assignment."

        def _assign_one(pk: int) -> None:
            locked = lock_for_update(Complaint, pk)
            ComplaintAssignmentService._assign_locked(
                locked, profile, actor, jurisdiction, status_note=status_note, now=now,
            )
            event_bus.publish(
                ComplaintAssigned(complaint_id=locked.pk, staff_id=profile.user_id, actor_id=actor.pk, note=note)
            )

        results = run_per_item(complaint_ids, _assign_one)

        history = [
            ComplaintAssignmentHistory(
                complaint_id=r.id,
                assigned_to_id=profile.user_id,
                assigned_by=actor,
                notes=note,
            )
            for r in results
            if r.ok
        ]
        if history:
            try:
                with transaction.atomic():
                    ComplaintAssignmentHistory.objects.bulk_create(history)
            except DatabaseError:
                logger.warning(
                    "Batched assignment-history insert failed for %d complaint(s); assignments kept.",
                    len(history),
                    exc_info=True,
                )
        logger.info(
            "Bulk assign to user=%s by user=%s: %d ok, %d failed",
            profile.user_id,
            actor.pk,
            len(history),
            sum(not r.ok for r in results),
        )
        return results

    @staticmethod
    def close(complaint: Complaint | int, notes: str, actor: User) -> Complaint:
        """Record resolution notes and move a resolved complaint to ``closed``."""
        require_capability(actor, Capability.CLOSE)
        notes = _require_text(notes, "notes")
        with transaction.atomic():
            locked = lock_for_update(Complaint, _pk(complaint))
            jurisdiction = JurisdictionResolver.resolve(actor)
            require_in_scope(locked, jurisdiction.as_predicate())
            locked.resolution_notes = notes
            ComplaintWorkflowService.transition_locked(
                locked,
                ComplaintStatus.CLOSED,
                actor,
                jurisdiction,
                note=notes,
                extra_fields=["resolution_notes"],
            )
        return locked


# ═══════════════════════════════════════════════════════════════════
#  Staff Workload Service
# ═══════════════════════════════════════════════════════════════════


#: Statuses that count against a staff member's capacity.
ACTIVE_WORK_STATUSES: tuple[str, ...] = (
    ComplaintStatus.ASSIGNED,
    ComplaintStatus.IN_PROGRESS,
)


@dataclass(frozen=True)
class StaffWorkload:
    staff_id: int
    username: str
    full_name: str
    department_id: int | None
    ward_id: int | None
    assigned: int
    in_progress: int
    overdue: int
    capacity: int

    @property
    def active(self) -> int:
        return self.assigned + self.in_progress

    @property
    def percentage(self) -> int:
        if self.capacity <= 0:
            return 100
        return min(100, round(self.active / self.capacity * 100))

    @property
    def is_overloaded(self) -> bool:
        return self.percentage >= _config("WORKLOAD_WARNING_PERCENT")


class StaffWorkloadService:
    """
    Open work per staff member and the capacity guard used on assignment.

    A staff member's capacity is their own ``max_concurrent_assignments``
    or, when blank, ``COMPLAINTS["MAX_CONCURRENT_ASSIGNMENTS"]``.
    """

    @staticmethod
    def capacity(profile: StaffProfile) -> int:
        if profile.max_concurrent_assignments is not None:
            return profile.max_concurrent_assignments
        return _config("MAX_CONCURRENT_ASSIGNMENTS")

    @staticmethod
    def active_count(staff_user_id: int) -> int:
        return Complaint.objects.filter(
            assigned_staff_id=staff_user_id,
            status__in=ACTIVE_WORK_STATUSES,
        ).count()

    @staticmethod
    def check_capacity(profile: StaffProfile) -> None:
        """Raise ``Conflict`` when the staff member cannot take more work."""
        capacity = StaffWorkloadService.capacity(profile)
        active = StaffWorkloadService.active_count(profile.user_id)
        if active >= capacity:
            raise Conflict(
                f"Staff member {profile.user.username} is at capacity "
                f"({active}/{capacity} open assignments)."
            )

    @staticmethod
    def get_workload(
        actor: User,
        staff_user_id: int | None = None,
        now: datetime.datetime | None = None,
    ) -> list[StaffWorkload]:
        """
        Load figures for every active staff member the actor may assign into.

        ``overdue`` counts assigned complaints whose SLA clock is still
        running past ``sla_due_at``.  Filtering by ``staff_user_id``
        outside the actor's jurisdiction yields an empty list.
        """
        require_capability(actor, Capability.ASSIGN)
        now = now or timezone.now()
        jurisdiction = JurisdictionResolver.resolve(actor)

        profiles = apply_scope(
            StaffProfile.objects.select_related("user").filter(is_active=True, user__is_active=True),
            jurisdiction.assignee_predicate(),
        )
        if staff_user_id is not None:
            profiles = profiles.filter(user_id=staff_user_id)
        profiles = list(profiles.order_by("user__username"))

        counts = {
            row["assigned_staff_id"]: row
            for row in (
                Complaint.objects
                .filter(assigned_staff_id__in=[p.user_id for p in profiles])
                .values("assigned_staff_id")
                .annotate(
                    assigned=Count("id", filter=Q(status=ComplaintStatus.ASSIGNED)),
                    in_progress=Count("id", filter=Q(status=ComplaintStatus.IN_PROGRESS)),
                    overdue=Count(
                        "id",
                        filter=Q(sla_due_at__lt=now) & ~Q(status__in=SLA_STOPPED_STATUSES),
                    ),
                )
            )
        }

        workloads = []
        for profile in profiles:
            row = counts.get(profile.user_id, {})
            workloads.append(
                StaffWorkload(
                    staff_id=profile.user_id,
                    username=profile.user.username,
                    full_name=profile.user.get_full_name(),
                    department_id=profile.department_id,
                    ward_id=profile.ward_id,
                    assigned=row.get("assigned", 0),
                    in_progress=row.get("in_progress", 0),
                    overdue=row.get("overdue", 0),
                    capacity=StaffWorkloadService.capacity(profile),
                )
            )
        return workloads


# ═══════════════════════════════════════════════════════════════════
#  Complaint Query Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintQueryService:
    """
    Constructs jurisdiction-scoped, filtered querysets.

    The scope predicate is applied first; user filters only narrow it.
    """

    @staticmethod
    def _day_start(value: datetime.date) -> datetime.datetime:
        if isinstance(value, datetime.datetime):
            return value
        return timezone.make_aware(datetime.datetime.combine(value, datetime.time.min))

    @staticmethod
    def filter_predicate(filters: dict[str, Any], now: datetime.datetime | None = None) -> Predicate:
        """
        Conjunction of the supplied filters.

        Supported keys: ``status`` (list), ``priority`` (list), ``category``,
        ``subcategory``, ``ward``, ``department``, ``assigned_staff``,
        ``unassigned``, ``is_escalated``, ``q`` (title or tracking code),
        ``submitted_from`` / ``submitted_to`` (dates, inclusive),
        ``overdue``.
        """
        clauses: list[Predicate] = []
        if filters.get("status"):
            clauses.append(Field("status").in_(filters["status"]))
        if filters.get("priority"):
            clauses.append(Field("priority").in_(filters["priority"]))
        for key, field in (
            ("category", "category_id"),
            ("subcategory", "subcategory_id"),
            ("ward", "ward_id"),
            ("department", "assigned_department_id"),
            ("assigned_staff", "assigned_staff_id"),
        ):
            if filters.get(key) is not None:
                clauses.append(Field(field).eq(filters[key]))
        if filters.get("unassigned"):
            clauses.append(Field("assigned_staff_id").is_null())
        if filters.get("is_escalated") is not None:
            clauses.append(Field("is_escalated").eq(bool(filters["is_escalated"])))
        text = (filters.get("q") or "").strip()
        if text:
            clauses.append(any_of(Field("title").icontains(text), Field("tracking_code").icontains(text)))
        if filters.get("submitted_from"):
            clauses.append(Field("submitted_at").gte(ComplaintQueryService._day_start(filters["submitted_from"])))
        if filters.get("submitted_to"):
            end = filters["submitted_to"]
            if not isinstance(end, datetime.datetime):
                end = ComplaintQueryService._day_start(end + datetime.timedelta(days=1))
                clauses.append(Field("submitted_at").lt(end))
            else:
                clauses.append(Field("submitted_at").lte(end))
        if filters.get("overdue"):
            clauses.append(SLAService.sla_predicate(SLAService.OVERDUE, now or timezone.now()))
        return all_of(*clauses) if clauses else Always(True)

    @staticmethod
    def paginate(qs: QuerySet, *, offset: int = 0, limit: int | None = None) -> tuple[list, int]:
        """Slice ``qs``; the total is counted before slicing."""
        if offset < 0:
            raise ValidationError("'offset' must be zero or greater.")
        if limit is None:
            limit = int(_config("DEFAULT_PAGE_SIZE"))
        if limit < 1:
            raise ValidationError("'limit' must be at least 1.")
        limit = min(limit, int(_config("MAX_PAGE_SIZE")))
        total = qs.count()
        return list(qs[offset:offset + limit]), total

    @staticmethod
    def search(
        actor: User,
        filters: dict[str, Any] | None = None,
        *,
        offset: int = 0,
        limit: int | None = None,
        sort: str = DEFAULT_SORT,
    ) -> tuple[list[Complaint], int]:
        """
        Scoped, filtered, sorted and paginated complaint search.

        Returns ``(items, total)`` where ``total`` is the unpaginated count.
        """
        descending = sort.startswith("-")
        key = sort.lstrip("-")
        if key not in SORT_FIELDS:
            raise ValidationError(f"Unsupported sort key '{key}'. Allowed: {', '.join(sorted(SORT_FIELDS))}.")
        ordering = ("-" if descending else "") + SORT_FIELDS[key]

        jurisdiction = JurisdictionResolver.resolve(actor)
        qs = (
            apply_scope(_base_queryset(), visibility_predicate(actor, jurisdiction))
            .filter(ComplaintQueryService.filter_predicate(filters or {}).to_q())
            .annotate(priority_rank=_PRIORITY_RANK)
            .order_by(ordering, "-id")
        )
        return ComplaintQueryService.paginate(qs, offset=offset, limit=limit)

    @staticmethod
    def get_unassigned(actor: User) -> list[Complaint]:
        """Intake queue of the actor's jurisdiction; empty when they supervise nothing."""
        jurisdiction = JurisdictionResolver.resolve(actor)
        if not jurisdiction.supervises_anything:
            return []
        qs = (
            apply_scope(_base_queryset(), jurisdiction.scope_predicate())
            .filter(status__in=UNASSIGNED_QUEUE_STATUSES, assigned_staff__isnull=True)
            .order_by("-submitted_at", "-id")
        )
        return list(qs)

    @staticmethod
    def get_readable(actor: User, complaint_id: int) -> Complaint:
        """Fetch a complaint the actor may read, or raise."""
        try:
            complaint = _base_queryset().get(pk=complaint_id)
        except Complaint.DoesNotExist:
            raise NotFound(f"Complaint {complaint_id} does not exist.")
        jurisdiction = JurisdictionResolver.resolve(actor)
        require_in_scope(complaint, visibility_predicate(actor, jurisdiction))
        return complaint

    @staticmethod
    def get_detail(actor: User, complaint_id: int) -> Complaint:
        complaint = ComplaintQueryService.get_readable(actor, complaint_id)
        SLAService.detect_breach(complaint)
        return complaint

    @staticmethod
    def get_status_history(actor: User, complaint_id: int) -> QuerySet:
        complaint = ComplaintQueryService.get_readable(actor, complaint_id)
        return complaint.status_history.select_related("changed_by")

    @staticmethod
    def get_assignment_history(actor: User, complaint_id: int) -> QuerySet:
        require_capability(actor, Capability.VIEW_INTERNAL)
        complaint = ComplaintQueryService.get_readable(actor, complaint_id)
        return complaint.assignment_history.select_related("assigned_to", "assigned_by", "previous_staff")

    @staticmethod
    def get_jurisdiction(actor: User) -> SupervisorJurisdiction:
        return JurisdictionResolver.resolve(actor)


# ═══════════════════════════════════════════════════════════════════
#  Complaint Comment Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintCommentService:

    @staticmethod
    def list_comments(actor: User, complaint_id: int) -> QuerySet:
        complaint = ComplaintQueryService.get_readable(actor, complaint_id)
        qs = complaint.comments.select_related("author")
        if not has_capability(actor, Capability.VIEW_INTERNAL):
            qs = qs.filter(is_internal=False)
        return qs

    @staticmethod
    def add_comment(
        complaint: Complaint | int,
        content: str,
        actor: User,
        *,
        is_internal: bool = False,
    ) -> ComplaintComment:
        """
        Post to a complaint's thread.

        Citizens may comment only on their own complaints and never
        internally.
        """
        require_capability(actor, Capability.COMMENT)
        content = _require_text(content, "content")
        target = ComplaintQueryService.get_readable(actor, _pk(complaint))
        if is_internal and not has_capability(actor, Capability.VIEW_INTERNAL):
            raise NotAuthorized("Only staff can post internal comments.")
        return ComplaintComment.objects.create(
            complaint=target,
            author=actor,
            author_role=actor.role,
            content=content,
            is_internal=is_internal,
        )

    @staticmethod
    def add_system_comment(complaint_id: int, content: str, *, author: User | None = None) -> ComplaintComment:
        return ComplaintComment.objects.create(
            complaint_id=complaint_id,
            author=author,
            author_role="system",
            content=content,
            is_internal=True,
            is_system=True,
        )

    @staticmethod
    def update_priority(
        complaint: Complaint | int,
        priority: str,
        reason: str,
        actor: User,
    ) -> Complaint:
        """Change priority and record the change as an internal comment."""
        require_capability(actor, Capability.UPDATE_PRIORITY)
        if priority not in ComplaintPriority.values:
            raise ValidationError(f"Unknown priority '{priority}'.")
        reason = _require_text(reason, "reason")
        with transaction.atomic():
            locked = lock_for_update(Complaint, _pk(complaint))
            jurisdiction = JurisdictionResolver.resolve(actor)
            require_in_scope(locked, jurisdiction.as_predicate())
            if locked.priority == priority:
                raise ValidationError(f"Complaint already has priority '{priority}'.")
            locked.priority = priority
            locked.save(update_fields=["priority", "updated_at"])
            ComplaintComment.objects.create(
                complaint=locked,
                author=actor,
                author_role=actor.role,
                content=f"Priority changed to {priority}. Reason: {reason}",
                is_internal=True,
            )
        logger.info("Complaint %s priority → %s by user=%s", locked.tracking_code, priority, actor.pk)
        return locked


# ═══════════════════════════════════════════════════════════════════
#  Escalation Service
# ═══════════════════════════════════════════════════════════════════


class EscalationService:
    """
    Escalations lift a complaint beyond its normal jurisdiction.

    Acknowledging or resolving an escalation is allowed for senior
    jurisdictions, and for department supervisors when the escalation
    targets one of their departments.
    """

    @staticmethod
    def can_manage(escalation: Escalation, jurisdiction: SupervisorJurisdiction) -> bool:
        if jurisdiction.is_senior:
            return True
        return (
            escalation.escalated_to == EscalationTarget.OTHER_DEPARTMENT
            and escalation.target_department_id in jurisdiction.assigned_departments
        )

    @staticmethod
    def escalate(
        complaint: Complaint | int,
        actor: User,
        *,
        escalated_to: str,
        reason: str,
        urgency: str = ComplaintPriority.HIGH,
        target_department=None,
        target_external_agency: str = "",
    ) -> Escalation:
        require_capability(actor, Capability.ESCALATE)
        reason = _require_text(reason, "reason")
        if escalated_to not in EscalationTarget.values:
            raise ValidationError(f"Unknown escalation target '{escalated_to}'.")
        if urgency not in ComplaintPriority.values:
            raise ValidationError(f"Unknown urgency '{urgency}'.")
        if escalated_to == EscalationTarget.OTHER_DEPARTMENT and target_department is None:
            raise ValidationError("'target_department' is required when escalating to another department.")
        if escalated_to == EscalationTarget.EXTERNAL_AGENCY and not (target_external_agency or "").strip():
            raise ValidationError("'target_external_agency' is required when escalating to an external agency.")

        with transaction.atomic():
            locked = lock_for_update(Complaint, _pk(complaint))
            jurisdiction = JurisdictionResolver.resolve(actor)
            require_in_scope(locked, jurisdiction.as_predicate())
            if locked.status in UNASSIGNABLE_STATUSES:
                raise Conflict(f"A {locked.status} complaint cannot be escalated.")

            escalation = Escalation.objects.create(
                complaint=locked,
                escalated_by=actor,
                escalated_to=escalated_to,
                urgency=urgency,
                reason=reason,
                target_department=target_department,
                target_external_agency=(target_external_agency or "").strip(),
            )
            if not locked.is_escalated:
                locked.is_escalated = True
                locked.save(update_fields=["is_escalated", "updated_at"])
            event_bus.publish(
                ComplaintEscalated(complaint_id=locked.pk, escalation_id=escalation.pk, actor_id=actor.pk)
            )
        logger.info("Complaint %s escalated to %s by user=%s", locked.tracking_code, escalated_to, actor.pk)
        return escalation

    @staticmethod
    def list_for_complaint(actor: User, complaint_id: int) -> QuerySet:
        require_capability(actor, Capability.VIEW_INTERNAL)
        complaint = ComplaintQueryService.get_readable(actor, complaint_id)
        return complaint.escalations.select_related("escalated_by", "target_department")

    @staticmethod
    def _lock_managed(escalation_id: int, actor: User) -> Escalation:
        escalation = lock_for_update(Escalation, escalation_id)
        if not EscalationService.can_manage(escalation, JurisdictionResolver.resolve(actor)):
            raise NotAuthorized("You cannot manage this escalation.")
        return escalation

    @staticmethod
    def acknowledge(escalation_id: int, actor: User) -> Escalation:
        with transaction.atomic():
            escalation = EscalationService._lock_managed(escalation_id, actor)
            if escalation.acknowledged_at is not None:
                raise Conflict("This escalation has already been acknowledged.")
            escalation.acknowledged_at = timezone.now()
            escalation.acknowledged_by = actor
            escalation.save(update_fields=["acknowledged_at", "acknowledged_by", "updated_at"])
        return escalation

    @staticmethod
    def resolve(escalation_id: int, actor: User, notes: str) -> Escalation:
        """Resolve (acknowledging first if needed); clears ``is_escalated`` once none remain open."""
        notes = _require_text(notes, "notes")
        with transaction.atomic():
            escalation = EscalationService._lock_managed(escalation_id, actor)
            if escalation.resolved_at is not None:
                raise Conflict("This escalation has already been resolved.")
            now = timezone.now()
            update_fields = ["resolved_at", "resolved_by", "resolution_notes", "updated_at"]
            if escalation.acknowledged_at is None:
                escalation.acknowledged_at = now
                escalation.acknowledged_by = actor
                update_fields += ["acknowledged_at", "acknowledged_by"]
            escalation.resolved_at = now
            escalation.resolved_by = actor
            escalation.resolution_notes = notes
            escalation.save(update_fields=update_fields)

            still_open = Escalation.objects.filter(
                complaint_id=escalation.complaint_id,
                resolved_at__isnull=True,
            ).exists()
            if not still_open:
                Complaint.objects.filter(pk=escalation.complaint_id).update(is_escalated=False)
        return escalation

    @staticmethod
    def recipients_for(escalation: Escalation) -> QuerySet:
        """Users who should hear about a new escalation."""
        if escalation.escalated_to == EscalationTarget.OTHER_DEPARTMENT and escalation.target_department_id:
            return User.objects.filter(
                is_active=True,
                role=UserRole.SUPERVISOR,
                supervisor_profile__assigned_departments=escalation.target_department_id,
            ).distinct()
        return User.objects.filter(is_active=True).filter(
            Q(role=UserRole.ADMIN)
            | Q(role=UserRole.SUPERVISOR, supervisor_profile__supervisor_level=SupervisorProfile.Level.SENIOR)
        ).distinct()
