"""
core.domain.transactions — Helpers for safe state transitions.

Provides utilities that wrap ``transaction.atomic`` and
``select_for_update`` into reusable patterns so that every app's
service layer follows the same concurrency-safe approach.

Design goals
------------
* Ensure that state-transition reads always lock the row first
  (``select_for_update``) to prevent lost updates between two
  concurrent writers.
* Give bulk operations a per-item atomic unit so one failing item never
  rolls back its siblings.
* Provide a "set once" conditional update for write-once stamps.

Usage::

    from core.domain.transactions import lock_for_update, run_per_item

    with transaction.atomic():
        complaint = lock_for_update(Complaint, complaint_id)
        ...

    outcomes = run_per_item(ids, lambda pk: service.transition(pk, ...))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from django.db import models, transaction

from core.domain.exceptions import DomainError, NotFound

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)


def lock_for_update(model_class: type[M], pk: Any, *, queryset=None) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Raises:
        NotFound: If no row with that PK exists.
    """
    qs = queryset if queryset is not None else model_class.objects.all()
    try:
        return qs.select_for_update().get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")


def set_once(
    model_class: type[models.Model],
    pk: Any,
    field: str,
    value: Any,
    **conditions: Any,
) -> bool:
    """
    Write ``value`` into ``field`` only if it is currently NULL and the row
    still matches ``conditions`` (plain lookup kwargs).

    The NULL check and the write happen in one ``UPDATE ... WHERE field IS
    NULL`` statement, so concurrent callers cannot both succeed.

    Returns:
        ``True`` if this call performed the write.
    """
    updated = (
        model_class.objects
        .filter(pk=pk, **{f"{field}__isnull": True}, **conditions)
        .update(**{field: value})
    )
    return updated == 1


@dataclass(frozen=True)
class PerItemResult:
    """Outcome of one item in a bulk operation."""

    id: Any
    ok: bool
    error_code: str | None = None
    detail: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ok": self.ok,
            "error_code": self.error_code,
            "detail": self.detail,
        }


def run_per_item(ids: Iterable[Any], fn: Callable[[Any], Any]) -> list[PerItemResult]:
    """
    Call ``fn(item_id)`` for every id, each inside its own atomic block.

    Domain errors become failed ``PerItemResult`` entries; the remaining
    items still run.  Results preserve input order; duplicate ids are processed once.
    """
    results: list[PerItemResult] = []
    for item_id in dict.fromkeys(ids):
        try:
            with transaction.atomic():
                fn(item_id)
        except DomainError as exc:
            logger.info("Bulk item %s failed [%s]: %s", item_id, exc.code, exc)
            results.append(
                PerItemResult(id=item_id, ok=False, error_code=exc.code, detail=str(exc))
            )
        else:
            results.append(PerItemResult(id=item_id, ok=True))
    return results
