"""
Query/Filter Engine tests: scoped search, filters, sorting, pagination,
the unassigned queue and single-record reads.
"""

from __future__ import annotations

import datetime

from core.domain.exceptions import NotAuthorized, NotFound, ValidationError

from complaints.models import ComplaintPriority, ComplaintStatus
from complaints.services import ComplaintQueryService

from .base import JAN_1, ComplaintScenario

S = ComplaintStatus
P = ComplaintPriority


class TestSearch(ComplaintScenario):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        day = datetime.timedelta(days=1)
        cls.low = cls.make_complaint(priority=P.LOW, submitted_at=JAN_1, title="Faded zebra crossing")
        cls.critical = cls.make_complaint(priority=P.CRITICAL, submitted_at=JAN_1 + day, title="Sinkhole")
        cls.medium = cls.make_complaint(priority=P.MEDIUM, submitted_at=JAN_1 + 2 * day, status=S.UNDER_REVIEW)
        cls.urgent = cls.make_complaint(priority=P.URGENT, submitted_at=JAN_1 + 3 * day, status=S.CLOSED)
        cls.high = cls.make_complaint(priority=P.HIGH, submitted_at=JAN_1 + 4 * day)
        cls.water = cls.make_complaint(assigned_department=cls.water, submitted_at=JAN_1)
        cls.foreign = cls.make_complaint(ward=cls.ward2, submitted_at=JAN_1, title="Sinkhole on ring road")

    def test_total_is_counted_before_pagination(self):
        items, total = ComplaintQueryService.search(self.combined_sup, {}, offset=1, limit=2)

        self.assertEqual(total, 5)
        self.assertEqual([c.pk for c in items], [self.urgent.pk, self.medium.pk])

    def test_filters_never_widen_jurisdiction(self):
        items, total = ComplaintQueryService.search(self.combined_sup, {"ward": self.ward2.pk})
        self.assertEqual((items, total), ([], 0))

        items, total = ComplaintQueryService.search(self.combined_sup, {"q": "sinkhole"})
        self.assertEqual([c.pk for c in items], [self.critical.pk])

    def test_conjunctive_filters(self):
        items, total = ComplaintQueryService.search(
            self.senior,
            {"status": [S.RECEIVED, S.UNDER_REVIEW], "department": self.roads.pk, "ward": self.ward1.pk},
        )
        self.assertEqual({c.pk for c in items}, {self.low.pk, self.critical.pk, self.medium.pk, self.high.pk})

        items, _ = ComplaintQueryService.search(self.senior, {"priority": [P.CRITICAL, P.LOW]})
        self.assertEqual({c.pk for c in items}, {self.low.pk, self.critical.pk})

    def test_tracking_code_and_date_range(self):
        items, _ = ComplaintQueryService.search(self.senior, {"q": self.high.tracking_code.lower()})
        self.assertEqual([c.pk for c in items], [self.high.pk])

        items, _ = ComplaintQueryService.search(
            self.senior,
            {"submitted_from": datetime.date(2024, 1, 2), "submitted_to": datetime.date(2024, 1, 3)},
        )
        self.assertEqual({c.pk for c in items}, {self.critical.pk, self.medium.pk})

    def test_priority_sort_uses_severity(self):
        items, _ = ComplaintQueryService.search(
            self.combined_sup, {"status": [S.RECEIVED, S.UNDER_REVIEW, S.CLOSED]}, sort="priority",
        )
        self.assertEqual(
            [c.priority for c in items],
            [P.CRITICAL, P.URGENT, P.HIGH, P.MEDIUM, P.LOW],
        )

    def test_invalid_sort_and_pagination(self):
        with self.assertRaises(ValidationError):
            ComplaintQueryService.search(self.senior, {}, sort="citizen__password")
        with self.assertRaises(ValidationError):
            ComplaintQueryService.search(self.senior, {}, offset=-1)
        with self.assertRaises(ValidationError):
            ComplaintQueryService.search(self.senior, {}, limit=0)

    def test_citizens_see_their_own_complaints(self):
        _, total = ComplaintQueryService.search(self.citizen, {})
        self.assertEqual(total, 7)

        _, total = ComplaintQueryService.search(self.staff_w1_roads, {})
        self.assertEqual(total, 0)


class TestUnassignedAndReads(ComplaintScenario):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.fresh = cls.make_complaint(status=S.RECEIVED)
        cls.reviewing = cls.make_complaint(status=S.UNDER_REVIEW)
        cls.taken = cls.make_complaint(status=S.ASSIGNED, assigned_staff=cls.staff_w1_roads)
        cls.reopened = cls.make_complaint(status=S.REOPENED)
        cls.foreign = cls.make_complaint(ward=cls.ward2)

    def test_unassigned_queue(self):
        items = ComplaintQueryService.get_unassigned(self.combined_sup)
        self.assertEqual({c.pk for c in items}, {self.fresh.pk, self.reviewing.pk})

        items = ComplaintQueryService.get_unassigned(self.senior)
        self.assertEqual({c.pk for c in items}, {self.fresh.pk, self.reviewing.pk, self.foreign.pk})

    def test_unassigned_is_empty_without_supervision(self):
        self.assertEqual(ComplaintQueryService.get_unassigned(self.bare_sup), [])
        self.assertEqual(ComplaintQueryService.get_unassigned(self.staff_w1_roads), [])

    def test_single_reads(self):
        self.assertEqual(ComplaintQueryService.get_detail(self.staff_w1_roads, self.taken.pk), self.taken)
        self.assertEqual(ComplaintQueryService.get_detail(self.citizen, self.foreign.pk), self.foreign)

        with self.assertRaises(NotAuthorized):
            ComplaintQueryService.get_detail(self.staff_w1_roads, self.fresh.pk)
        with self.assertRaises(NotAuthorized):
            ComplaintQueryService.get_detail(self.ward_sup, self.foreign.pk)
        with self.assertRaises(NotFound):
            ComplaintQueryService.get_detail(self.senior, 424242)

    def test_assignment_history_is_internal(self):
        with self.assertRaises(NotAuthorized):
            ComplaintQueryService.get_assignment_history(self.citizen, self.taken.pk)
        self.assertEqual(list(ComplaintQueryService.get_assignment_history(self.staff_w1_roads, self.taken.pk)), [])
