"""
Roles & Capabilities — **Single Source of Truth**

Every authorization decision in the service layer resolves through the
static table defined here.  Roles form a closed set (``UserRole``) and each
role maps to a fixed set of capability codenames (``ROLE_CAPABILITIES``).
Nothing is parsed from the database or from JSON at runtime: adding a
capability requires:

    1. Add the constant to ``Capability``.
    2. Add it to the appropriate role sets in ``ROLE_CAPABILITIES``.
    3. Guard the service method with ``require_capability``.

Capabilities answer *what* a user may do.  *Where* they may do it (which
wards / departments) is decided by the jurisdiction resolver in
``complaints.jurisdiction``.
"""

from __future__ import annotations

from django.db import models


class UserRole(models.TextChoices):
    """Closed set of account roles."""

    CITIZEN = "citizen", "Citizen"
    STAFF = "staff", "Staff"
    SUPERVISOR = "supervisor", "Supervisor"
    ADMIN = "admin", "Administrator"


class Capability:
    """Capability codenames checked by ``core.domain.access.require_capability``."""

    CHANGE_STATUS = "change_status"
    """Move a complaint along the ordinary workflow edges."""

    ASSIGN = "assign"
    """Assign, reassign and bulk-assign complaints to staff."""

    CLOSE = "close"
    """Close a resolved complaint with resolution notes."""

    REJECT = "reject"
    """Reject a complaint during intake or review."""

    REOPEN = "reopen"
    """Reopen a resolved, closed or rejected complaint."""

    ESCALATE = "escalate"
    """Raise an escalation beyond the normal jurisdiction."""

    UPDATE_PRIORITY = "update_priority"
    """Change the priority of a complaint."""

    COMMENT = "comment"
    """Post to the complaint comment thread."""

    VIEW_INTERNAL = "view_internal"
    """Read and write internal (staff-only) comments."""


_STAFF_CAPABILITIES = frozenset({
    Capability.CHANGE_STATUS,
    Capability.ESCALATE,
    Capability.COMMENT,
    Capability.VIEW_INTERNAL,
})

_SUPERVISOR_CAPABILITIES = _STAFF_CAPABILITIES | frozenset({
    Capability.ASSIGN,
    Capability.CLOSE,
    Capability.REJECT,
    Capability.REOPEN,
    Capability.UPDATE_PRIORITY,
})

ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    UserRole.CITIZEN: frozenset({Capability.COMMENT}),
    UserRole.STAFF: _STAFF_CAPABILITIES,
    UserRole.SUPERVISOR: _SUPERVISOR_CAPABILITIES,
    UserRole.ADMIN: _SUPERVISOR_CAPABILITIES,
}
