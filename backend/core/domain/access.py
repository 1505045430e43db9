"""
core.domain.access — Capability guards and predicate-scoped querysets.

╔══════════════════════════════════════════════════════════════════╗
║  IMPORTANT — Per-app scoping logic does NOT live here.         ║
║  Each app builds its own ``Predicate`` (e.g. supervisor        ║
║  jurisdiction in ``complaints.jurisdiction``).  This module    ║
║  provides:                                                     ║
║    1) ``has_capability`` / ``require_capability`` — role       ║
║       table lookups from ``core.permissions_constants``.       ║
║    2) ``apply_scope`` — narrow a queryset by a Predicate.      ║
║    3) ``require_in_scope`` — single-record Predicate guard.    ║
║    4) ``get_user_role_name`` — informational role helper.      ║
╚══════════════════════════════════════════════════════════════════╝

Architecture overview
---------------------

    ┌─────────┐      ┌────────────────┐      ┌──────────────────┐
    │  View   │─────▶│  App service   │─────▶│ core.domain      │
    │ (thin)  │      │ (owns logic)   │      │   .access        │
    └─────────┘      └────────────────┘      │ (shared helpers) │
                                             └──────────────────┘

Usage in an app's service layer::

    from core.domain.access import apply_scope, require_capability
    from core.permissions_constants import Capability

    require_capability(actor, Capability.ASSIGN)
    qs = apply_scope(Complaint.objects.all(), jurisdiction.as_predicate())
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.db.models import QuerySet

from core.domain.exceptions import NotAuthorized
from core.permissions_constants import ROLE_CAPABILITIES, UserRole

if TYPE_CHECKING:
    from accounts.models import User
    from core.domain.predicates import Predicate


def get_user_role_name(user: User) -> str | None:
    """
    Return the role value for a user, or ``None`` if unauthenticated.

    Superusers are always treated as ``admin``.  Used for API responses,
    JWT claims and logging; access control goes through
    ``has_capability``.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    if user.is_superuser:
        return UserRole.ADMIN
    return getattr(user, "role", None) or None


def has_capability(user: User, capability: str) -> bool:
    """Return ``True`` if the user's role grants ``capability``."""
    role = get_user_role_name(user)
    if role is None:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def require_capability(user: User, *capabilities: str, message: str = "") -> None:
    """
    Guard that raises ``NotAuthorized`` unless the user holds at least one
    of ``capabilities`` (OR-logic).

    Example::

        require_capability(user, Capability.CLOSE)
    """
    for capability in capabilities:
        if has_capability(user, capability):
            return
    raise NotAuthorized(
        message or f"Your role does not allow this action ({', '.join(capabilities)})."
    )


def apply_scope(queryset: QuerySet, predicate: Predicate) -> QuerySet:
    """Filter ``queryset`` by the storage rendering of ``predicate``."""
    return queryset.filter(predicate.to_q())


def require_in_scope(obj: Any, predicate: Predicate, message: str = "") -> None:
    """
    Raise ``NotAuthorized`` if ``obj`` falls outside ``predicate``.

    The message never reveals anything about the record itself.
    """
    if not predicate.evaluate(obj):
        raise NotAuthorized(message or "This record is outside your jurisdiction.")
