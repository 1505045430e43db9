"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  ``core.domain.exception_handler`` maps them to HTTP
responses at the API boundary.

Mapping cheatsheet
------------------
┌────────────────────────────┬─────────────────────────────────┬──────┐
│ Domain Exception           │ Meaning                         │ Code │
├────────────────────────────┼─────────────────────────────────┼──────┤
│ DomainError                │ generic business-rule violation │ 400  │
│ ValidationError            │ malformed / missing input       │ 400  │
│ NotAuthorized              │ role or jurisdiction mismatch   │ 403  │
│ NotFound                   │ id does not resolve             │ 404  │
│ Conflict                   │ clashes with current state      │ 409  │
│ IllegalTransition          │ edge not in the state machine   │ 409  │
│ NotificationDeliveryFailed │ side channel failed (log only)  │  —   │
└────────────────────────────┴─────────────────────────────────┴──────┘

Every class carries a short ``code`` used by bulk operations to report
per-item outcomes.

Recommended usage inside a service::

    from core.domain.exceptions import IllegalTransition

    if new_status not in ALLOWED_TRANSITIONS[current_status]:
        raise IllegalTransition(current=current_status, target=new_status)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainError):
    """
    Malformed or missing input.  The caller's fault; never retried
    automatically.  Maps to HTTP 400.
    """

    code = "validation_error"

    def __init__(self, message: str = "The submitted data is invalid.") -> None:
        super().__init__(message)


class NotAuthorized(DomainError):
    """
    The actor's role or jurisdiction does not cover this operation.

    The message must never reveal whether an out-of-jurisdiction resource
    exists.  Maps to HTTP 403.
    """

    code = "not_authorized"

    def __init__(self, message: str = "You are not authorized to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested complaint, staff member or related record does not
    exist.  Maps to HTTP 404.
    """

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: duplicate creation attempt, escalation already resolved.
    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class IllegalTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    Inherits from ``Conflict`` because an illegal transition IS a conflict
    with the resource's current state.  Maps to HTTP 409.

    Example::

        raise IllegalTransition(
            current="closed",
            target="resolved",
            reason="Closed complaints must be reopened first.",
        )
    """

    code = "illegal_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Illegal status transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            if reason:
                parts.append(f"— {reason}")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class NotificationDeliveryFailed(DomainError):
    """
    A best-effort side channel (system message, in-app notification,
    system comment) could not be delivered.

    Raised and caught inside the notification dispatcher only; it is
    logged and never propagated to the caller of the primary operation.
    """

    code = "notification_delivery_failed"

    def __init__(
        self,
        message: str = "Notification could not be delivered.",
        *,
        channel: str | None = None,
        recipient_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.channel = channel
        self.recipient_id = recipient_id
