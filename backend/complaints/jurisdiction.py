"""
complaints.jurisdiction — Who may see and act on which complaints.

A supervisor's jurisdiction is the set of wards and departments they are
configured for, plus a ``is_senior`` flag that lifts every restriction.
The visibility rule is a single predicate expression::

    (ward IN assigned_wards  AND  department IN assigned_departments)
        OR  assigned_staff = actor

where each side of the AND is dropped when that dimension is empty, and
the whole AND-group is dropped when both are empty (the actor then sees
only complaints assigned directly to them).

Staff assignability is looser: a staff member qualifies when either
their ward or their department is in scope.

The same ``Predicate`` is used for single-record checks
(``in_jurisdiction``) and list queries (``as_predicate().to_q()``).
Jurisdictions are resolved fresh on every call and never cached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.domain.predicates import Always, Field, Predicate, all_of, any_of
from core.permissions_constants import UserRole

if TYPE_CHECKING:
    from accounts.models import StaffProfile, User
    from complaints.models import Complaint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupervisorJurisdiction:
    actor_id: int | None
    assigned_wards: frozenset[int] = frozenset()
    assigned_departments: frozenset[int] = frozenset()
    is_senior: bool = False

    @property
    def has_scope(self) -> bool:
        return bool(self.assigned_wards or self.assigned_departments)

    @property
    def supervises_anything(self) -> bool:
        return self.is_senior or self.has_scope

    def scope_predicate(
        self,
        ward_field: str = "ward_id",
        department_field: str = "assigned_department_id",
    ) -> Predicate:
        """
        Ward/department part of the rule only.

        Matches nothing when no scope is configured.
        """
        if self.is_senior:
            return Always(True)
        if not self.has_scope:
            return Always(False)
        clauses = []
        if self.assigned_wards:
            clauses.append(Field(ward_field).in_(self.assigned_wards))
        if self.assigned_departments:
            clauses.append(Field(department_field).in_(self.assigned_departments))
        return all_of(*clauses)

    def assignee_predicate(
        self,
        ward_field: str = "ward_id",
        department_field: str = "department_id",
    ) -> Predicate:
        """
        Staff the actor may assign into: ward OR department match.

        Matches nothing when no scope is configured.
        """
        if self.is_senior:
            return Always(True)
        clauses = []
        if self.assigned_wards:
            clauses.append(Field(ward_field).in_(self.assigned_wards))
        if self.assigned_departments:
            clauses.append(Field(department_field).in_(self.assigned_departments))
        return any_of(*clauses)

    def as_predicate(self) -> Predicate:
        """Full complaint visibility rule, including direct assignment."""
        if self.is_senior:
            return Always(True)
        branches = []
        if self.has_scope:
            branches.append(self.scope_predicate())
        if self.actor_id is not None:
            branches.append(Field("assigned_staff_id").eq(self.actor_id))
        return any_of(*branches)

    def as_dict(self) -> dict:
        return {
            "actor_id": self.actor_id,
            "assigned_wards": sorted(self.assigned_wards),
            "assigned_departments": sorted(self.assigned_departments),
            "is_senior": self.is_senior,
        }


class JurisdictionResolver:

    @staticmethod
    def resolve(actor: User) -> SupervisorJurisdiction:
        """
        Compute the actor's jurisdiction from their role and supervisor
        profile.

        * admin role, or supervisor level ``senior`` → senior.
        * supervisor with a profile → its wards / departments.
        * anyone else → empty scope (direct assignments only).
        """
        from accounts.models import SupervisorProfile

        if actor is None or not getattr(actor, "is_authenticated", False):
            return SupervisorJurisdiction(actor_id=None)

        if actor.is_superuser or actor.role == UserRole.ADMIN:
            return SupervisorJurisdiction(actor_id=actor.pk, is_senior=True)

        if actor.role != UserRole.SUPERVISOR:
            return SupervisorJurisdiction(actor_id=actor.pk)

        profile = (
            SupervisorProfile.objects
            .prefetch_related("assigned_wards", "assigned_departments")
            .filter(user=actor)
            .first()
        )
        if profile is None:
            logger.info("Supervisor %s has no supervisor profile; scope is empty.", actor.pk)
            return SupervisorJurisdiction(actor_id=actor.pk)

        return SupervisorJurisdiction(
            actor_id=actor.pk,
            assigned_wards=frozenset(w.pk for w in profile.assigned_wards.all()),
            assigned_departments=frozenset(d.pk for d in profile.assigned_departments.all()),
            is_senior=profile.is_senior,
        )


def in_jurisdiction(complaint: Complaint, jurisdiction: SupervisorJurisdiction) -> bool:
    return jurisdiction.as_predicate().evaluate(complaint)


def can_assign_into(staff_profile: StaffProfile, jurisdiction: SupervisorJurisdiction) -> bool:
    """
    Whether the actor may hand work to this staff member.

    The staff member qualifies through either their ward or their
    department; direct assignment plays no part here.
    """
    return jurisdiction.assignee_predicate().evaluate(staff_profile)
