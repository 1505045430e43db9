"""
Unit tests for ``core.domain.predicates`` and the jurisdiction predicate
shape.  No database access.
"""

from __future__ import annotations

from types import SimpleNamespace

from django.db.models import Q
from django.test import SimpleTestCase

from complaints.jurisdiction import SupervisorJurisdiction
from core.domain.predicates import Always, Field, all_of, any_of


def _row(**attrs):
    base = {"ward_id": None, "assigned_department_id": None, "assigned_staff_id": None}
    base.update(attrs)
    return SimpleNamespace(**base)


class TestPredicateEvaluation(SimpleTestCase):

    def test_and_or_not_composition(self):
        predicate = (Field("ward_id").eq(1) & Field("assigned_department_id").in_([5, 6])) | ~Field("ward_id").lt(10)

        self.assertTrue(predicate.evaluate(_row(ward_id=1, assigned_department_id=5)))
        self.assertFalse(predicate.evaluate(_row(ward_id=1, assigned_department_id=7)))
        self.assertTrue(predicate.evaluate(_row(ward_id=12)))

    def test_null_never_matches_a_comparison(self):
        self.assertFalse(Field("ward_id").eq(None).evaluate(_row()))
        self.assertFalse(Field("ward_id").in_([1, 2]).evaluate(_row()))
        self.assertTrue(Field("ward_id").is_null().evaluate(_row()))

    def test_nested_attribute_path(self):
        row = SimpleNamespace(category=SimpleNamespace(name="Potholes"))
        self.assertTrue(Field("category__name").icontains("hole").evaluate(row))

    def test_empty_combinators(self):
        self.assertTrue(all_of().evaluate(_row()))
        self.assertFalse(any_of().evaluate(_row()))
        self.assertEqual(all_of().to_q(), Q())

    def test_unknown_operator_is_rejected(self):
        from core.domain.predicates import Compare

        with self.assertRaises(ValueError):
            Compare("ward_id", "regex", ".*")

    def test_to_q_renders_lookups(self):
        q = Field("ward_id").in_([3]).to_q()
        self.assertEqual(q.children, [("ward_id__in", frozenset({3}))])


class TestJurisdictionPredicateShape(SimpleTestCase):

    def test_senior_matches_everything(self):
        j = SupervisorJurisdiction(actor_id=1, is_senior=True)
        self.assertIsInstance(j.as_predicate(), Always)
        self.assertTrue(j.as_predicate().evaluate(_row(ward_id=99)))

    def test_ward_and_department_are_combined_with_and(self):
        j = SupervisorJurisdiction(
            actor_id=1,
            assigned_wards=frozenset({1}),
            assigned_departments=frozenset({10}),
        )
        predicate = j.as_predicate()

        self.assertTrue(predicate.evaluate(_row(ward_id=1, assigned_department_id=10)))
        self.assertFalse(predicate.evaluate(_row(ward_id=1, assigned_department_id=11)))
        self.assertFalse(predicate.evaluate(_row(ward_id=2, assigned_department_id=10)))

    def test_empty_dimension_is_unrestricted(self):
        j = SupervisorJurisdiction(actor_id=1, assigned_wards=frozenset({1}))
        self.assertTrue(j.as_predicate().evaluate(_row(ward_id=1, assigned_department_id=42)))

    def test_direct_assignment_always_visible(self):
        j = SupervisorJurisdiction(actor_id=7, assigned_wards=frozenset({1}))
        self.assertTrue(j.as_predicate().evaluate(_row(ward_id=2, assigned_staff_id=7)))

    def test_no_scope_sees_only_direct_assignments(self):
        j = SupervisorJurisdiction(actor_id=7)

        self.assertFalse(j.supervises_anything)
        self.assertFalse(j.scope_predicate().evaluate(_row(ward_id=1)))
        self.assertFalse(j.as_predicate().evaluate(_row(ward_id=1)))
        self.assertTrue(j.as_predicate().evaluate(_row(assigned_staff_id=7)))

    def test_anonymous_jurisdiction_matches_nothing(self):
        j = SupervisorJurisdiction(actor_id=None)
        self.assertFalse(j.as_predicate().evaluate(_row(ward_id=1, assigned_staff_id=None)))
