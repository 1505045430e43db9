"""
core.domain.events — Typed domain events and the in-process event bus.

Service methods publish events describing *what happened*; subscribers
(the complaint notification dispatcher, live-update adapters, ...) decide
what to do about it.  Publication is deferred with
``transaction.on_commit`` so subscribers only ever observe committed state
and a subscriber failure can never roll back the primary operation.

Usage::

    from core.domain.events import StatusChanged, event_bus

    event_bus.subscribe(StatusChanged, my_handler)
    event_bus.publish(StatusChanged(complaint_id=..., ...))
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    occurred_at: datetime = field(default_factory=timezone.now)


@dataclass(frozen=True, kw_only=True)
class ComplaintAssigned(DomainEvent):
    complaint_id: int
    staff_id: int
    actor_id: int | None
    note: str = ""


@dataclass(frozen=True, kw_only=True)
class ComplaintReassigned(DomainEvent):
    complaint_id: int
    new_staff_id: int
    old_staff_id: int | None
    actor_id: int | None
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class AssignmentDeclined(DomainEvent):
    complaint_id: int
    staff_id: int
    assigned_by_id: int | None
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class StatusChanged(DomainEvent):
    complaint_id: int
    old_status: str
    new_status: str
    actor_id: int | None
    note: str = ""


@dataclass(frozen=True, kw_only=True)
class SLABreached(DomainEvent):
    complaint_id: int
    breached_at: datetime


@dataclass(frozen=True, kw_only=True)
class ComplaintEscalated(DomainEvent):
    complaint_id: int
    escalation_id: int
    actor_id: int | None


EventHandler = Callable[[DomainEvent], None]


class EventBus:
    """
    Minimal synchronous pub/sub keyed by event class.

    Handlers registered for a base class also receive its subclasses.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def publish(self, event: DomainEvent) -> None:
        """Deliver ``event`` once the surrounding transaction commits."""
        transaction.on_commit(lambda: self.dispatch(event))

    def dispatch(self, event: DomainEvent) -> None:
        """Run every matching handler now.  One failing handler does not stop the rest."""
        for event_type in type(event).__mro__:
            for handler in list(self._handlers.get(event_type, ())):
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "Event handler %r failed for %s",
                        handler,
                        type(event).__name__,
                    )


event_bus = EventBus()
