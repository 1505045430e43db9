"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF handler translating those exceptions to responses.
predicates         Filter expressions rendered to ``Q`` or evaluated in-process.
access             Capability guards and predicate-scoped querysets.
events             Typed domain events and the on-commit event bus.
notifications      In-app notification creation helper.
messaging          System messages on staff conversation threads.
transactions       ``transaction.atomic`` / ``select_for_update`` helpers.

Usage from any app::

    from core.domain.exceptions import DomainError, IllegalTransition
    from core.domain.events import event_bus, StatusChanged
    from core.domain.transactions import lock_for_update
    from core.domain.access import require_capability
"""
