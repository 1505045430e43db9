"""
core.domain.predicates — Composable filter expressions.

A small expression tree of comparison / AND / OR / NOT nodes that can be
rendered two ways from the same definition:

* ``to_q()``       — a Django ``Q`` object, applied at the storage boundary.
* ``evaluate(obj)`` — an in-process boolean test against a model instance
  (or any object exposing the same attribute names).

Scope rules such as supervisor jurisdiction are built once as a
``Predicate`` and then used both for single-record authorization checks
and for list queries, so the two can never drift apart.  Values are always
passed as lookup arguments, never concatenated into query strings.

Usage::

    from core.domain.predicates import Field, all_of, any_of

    in_scope = all_of(
        Field("ward_id").in_(ward_ids),
        Field("assigned_department_id").in_(dept_ids),
    ) | Field("assigned_staff_id").eq(user.pk)

    Complaint.objects.filter(in_scope.to_q())
    in_scope.evaluate(complaint)   # -> bool
"""

from __future__ import annotations

import functools
import operator
from typing import Any, Iterable

from django.db.models import Q

_MISSING = object()


def _resolve(obj: Any, path: str) -> Any:
    """Follow a ``__``-separated attribute path; ``None`` short-circuits."""
    value = obj
    for part in path.split("__"):
        if value is None:
            return None
        value = getattr(value, part, _MISSING)
        if value is _MISSING:
            raise AttributeError(f"{type(obj).__name__} has no attribute path '{path}'.")
    return value


class Predicate:
    """Base node.  Supports ``&``, ``|`` and ``~`` composition."""

    def to_q(self) -> Q:
        raise NotImplementedError

    def evaluate(self, obj: Any) -> bool:
        raise NotImplementedError

    def __and__(self, other: Predicate) -> Predicate:
        return And(self, other)

    def __or__(self, other: Predicate) -> Predicate:
        return Or(self, other)

    def __invert__(self) -> Predicate:
        return Not(self)


class Always(Predicate):
    """Constant predicate: matches everything (``True``) or nothing (``False``)."""

    def __init__(self, value: bool) -> None:
        self.value = value

    def to_q(self) -> Q:
        return Q() if self.value else Q(pk__in=[])

    def evaluate(self, obj: Any) -> bool:
        return self.value

    def __repr__(self) -> str:
        return f"Always({self.value})"


class Compare(Predicate):
    """Single field comparison."""

    _LOOKUPS = {
        "eq": "exact",
        "in": "in",
        "lt": "lt",
        "lte": "lte",
        "gt": "gt",
        "gte": "gte",
        "isnull": "isnull",
        "icontains": "icontains",
    }

    def __init__(self, field: str, op: str, value: Any) -> None:
        if op not in self._LOOKUPS:
            raise ValueError(f"Unsupported comparison operator: {op!r}")
        if op == "in":
            value = frozenset(value)
        self.field = field
        self.op = op
        self.value = value

    def to_q(self) -> Q:
        return Q(**{f"{self.field}__{self._LOOKUPS[self.op]}": self.value})

    def evaluate(self, obj: Any) -> bool:
        actual = _resolve(obj, self.field)
        if self.op == "isnull":
            return (actual is None) == bool(self.value)
        # SQL semantics: comparisons against NULL never match.
        if actual is None:
            return False
        if self.op == "eq":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        if self.op == "icontains":
            return str(self.value).lower() in str(actual).lower()
        compare = {
            "lt": operator.lt,
            "lte": operator.le,
            "gt": operator.gt,
            "gte": operator.ge,
        }[self.op]
        return compare(actual, self.value)

    def __repr__(self) -> str:
        return f"Compare({self.field!r}, {self.op!r}, {self.value!r})"


class And(Predicate):
    def __init__(self, *children: Predicate) -> None:
        self.children = children

    def to_q(self) -> Q:
        return functools.reduce(operator.and_, (c.to_q() for c in self.children), Q())

    def evaluate(self, obj: Any) -> bool:
        return all(c.evaluate(obj) for c in self.children)

    def __repr__(self) -> str:
        return f"And{self.children!r}"


class Or(Predicate):
    def __init__(self, *children: Predicate) -> None:
        self.children = children

    def to_q(self) -> Q:
        if not self.children:
            return Always(False).to_q()
        return functools.reduce(operator.or_, (c.to_q() for c in self.children))

    def evaluate(self, obj: Any) -> bool:
        return any(c.evaluate(obj) for c in self.children)

    def __repr__(self) -> str:
        return f"Or{self.children!r}"


class Not(Predicate):
    def __init__(self, child: Predicate) -> None:
        self.child = child

    def to_q(self) -> Q:
        return ~self.child.to_q()

    def evaluate(self, obj: Any) -> bool:
        return not self.child.evaluate(obj)

    def __repr__(self) -> str:
        return f"Not({self.child!r})"


class Field:
    """Builder for ``Compare`` nodes: ``Field("status").in_([...])``."""

    def __init__(self, name: str) -> None:
        self.name = name

    def eq(self, value: Any) -> Compare:
        return Compare(self.name, "eq", value)

    def in_(self, values: Iterable[Any]) -> Compare:
        return Compare(self.name, "in", values)

    def lt(self, value: Any) -> Compare:
        return Compare(self.name, "lt", value)

    def lte(self, value: Any) -> Compare:
        return Compare(self.name, "lte", value)

    def gt(self, value: Any) -> Compare:
        return Compare(self.name, "gt", value)

    def gte(self, value: Any) -> Compare:
        return Compare(self.name, "gte", value)

    def is_null(self, value: bool = True) -> Compare:
        return Compare(self.name, "isnull", value)

    def icontains(self, value: str) -> Compare:
        return Compare(self.name, "icontains", value)


def all_of(*predicates: Predicate) -> Predicate:
    """AND of the given predicates; an empty list matches everything."""
    if not predicates:
        return Always(True)
    if len(predicates) == 1:
        return predicates[0]
    return And(*predicates)


def any_of(*predicates: Predicate) -> Predicate:
    """OR of the given predicates; an empty list matches nothing."""
    if not predicates:
        return Always(False)
    if len(predicates) == 1:
        return predicates[0]
    return Or(*predicates)
