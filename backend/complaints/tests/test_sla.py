"""
SLA Tracker tests: due-date stamping, breach classification, the
write-once breach stamp, SLA lists and the periodic sweep.
"""

from __future__ import annotations

import datetime
from io import StringIO

from django.core.management import call_command
from django.test import override_settings

from core.domain.exceptions import ValidationError
from core.models import Notification

from complaints.models import Complaint, ComplaintCategory, ComplaintStatus, SLAState
from complaints.services import ComplaintSubmissionService, SLAService

from .base import JAN_1, ComplaintScenario

S = ComplaintStatus


def _at(day: int, hour: int = 0) -> datetime.datetime:
    return datetime.datetime(2024, 1, day, hour, tzinfo=datetime.timezone.utc)


class TestDueDates(ComplaintScenario):

    def _submit(self, **data) -> Complaint:
        payload = {
            "title": "Broken kerb", "description": "Kerb stone loose.",
            "category": self.category, "ward": self.ward1,
        }
        payload.update(data)
        return ComplaintSubmissionService.submit_complaint(payload, self.citizen, submitted_at=JAN_1)

    def test_category_turnaround(self):
        complaint = self._submit()
        self.assertEqual(complaint.sla_due_at, _at(4))
        self.assertEqual(complaint.assigned_department, self.roads)
        self.assertRegex(complaint.tracking_code, r"^CMP-20240101-[0-9A-F]{6}$")

    def test_subcategory_turnaround_wins(self):
        complaint = self._submit(subcategory=self.subcategory)
        self.assertEqual(complaint.sla_due_at, _at(2))

    @override_settings(COMPLAINTS={
        "DEFAULT_SLA_DAYS": 10,
        "SLA_AT_RISK_HOURS": 24,
        "DEFAULT_PAGE_SIZE": 50,
        "MAX_PAGE_SIZE": 200,
        "TRACKING_CODE_PREFIX": "CMP",
    })
    def test_falls_back_to_default_turnaround(self):
        category = ComplaintCategory.objects.create(name="Street lights")
        complaint = self._submit(category=category)
        self.assertEqual(complaint.sla_due_at, _at(11))

    def test_submission_writes_initial_history(self):
        complaint = self._submit()
        entry = complaint.status_history.get()

        self.assertEqual(complaint.status, S.RECEIVED)
        self.assertEqual(entry.old_status, "")
        self.assertEqual(entry.new_status, S.RECEIVED)
        self.assertEqual(entry.changed_by, self.citizen)

    def test_subcategory_must_belong_to_category(self):
        other = ComplaintCategory.objects.create(name="Garbage", default_sla_days=2)
        with self.assertRaises(ValidationError):
            self._submit(category=other, subcategory=self.subcategory)
        self.assertFalse(Complaint.objects.exists())

    def test_ward_is_required(self):
        with self.assertRaises(ValidationError):
            self._submit(ward=None)
        self.assertFalse(Complaint.objects.exists())


class TestBreachDetection(ComplaintScenario):

    def test_classification(self):
        complaint = self.make_complaint(submitted_at=JAN_1)  # due Jan 4

        self.assertEqual(SLAService.check_breach(complaint, _at(2)), SLAState.ON_TRACK)
        self.assertEqual(SLAService.check_breach(complaint, _at(3, 12)), SLAState.AT_RISK)
        self.assertEqual(SLAService.check_breach(complaint, _at(5)), SLAState.BREACHED)

        complaint.status = S.RESOLVED
        self.assertEqual(SLAService.check_breach(complaint, _at(5)), SLAState.ON_TRACK)

    def test_breach_is_stamped_once(self):
        complaint = self.make_complaint(submitted_at=JAN_1, assigned_staff=self.staff_w1_roads, status=S.ASSIGNED)

        with self.captureOnCommitCallbacks(execute=True):
            self.assertTrue(SLAService.detect_breach(complaint, _at(5)))
            self.assertFalse(SLAService.detect_breach(complaint, _at(6)))

        complaint.refresh_from_db()
        self.assertEqual(complaint.sla_breached_at, _at(5))
        self.assertEqual(
            Notification.objects.filter(recipient=self.staff_w1_roads, title="SLA Breached").count(), 1,
        )

    def test_concurrent_detector_loses_the_race(self):
        first = self.make_complaint(submitted_at=JAN_1)
        stale = Complaint.objects.get(pk=first.pk)

        self.assertTrue(SLAService.detect_breach(first, _at(5)))
        self.assertFalse(SLAService.detect_breach(stale, _at(6)))

        stale.refresh_from_db()
        self.assertEqual(stale.sla_breached_at, _at(5))

    def test_not_stamped_before_deadline_or_when_stopped(self):
        on_time = self.make_complaint(submitted_at=JAN_1)
        resolved = self.make_complaint(submitted_at=JAN_1, status=S.RESOLVED)

        self.assertFalse(SLAService.detect_breach(on_time, _at(3)))
        self.assertFalse(SLAService.detect_breach(resolved, _at(9)))
        self.assertFalse(Complaint.objects.filter(sla_breached_at__isnull=False).exists())


class TestSLALists(ComplaintScenario):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.due_jan3 = cls.make_complaint(submitted_at=_at(1) - datetime.timedelta(days=1))
        cls.due_jan4 = cls.make_complaint(submitted_at=JAN_1)
        cls.due_jan4_noon = cls.make_complaint(submitted_at=_at(1, 12))
        cls.due_jan4_done = cls.make_complaint(submitted_at=JAN_1, status=S.CLOSED)
        cls.foreign = cls.make_complaint(submitted_at=JAN_1, ward=cls.ward2, assigned_department=cls.water)

    def test_overdue_is_ordered_by_deadline(self):
        items, total = SLAService.get_sla_complaints(self.combined_sup, "overdue", now=_at(5))

        self.assertEqual(total, 3)
        self.assertEqual([c.pk for c in items], [self.due_jan3.pk, self.due_jan4.pk, self.due_jan4_noon.pk])
        self.assertTrue(all(c.sla_breached_at == _at(5) for c in items))

    def test_at_risk_window(self):
        items, total = SLAService.get_sla_complaints(self.combined_sup, "at_risk", now=_at(3, 12))

        self.assertEqual(total, 2)
        self.assertEqual([c.pk for c in items], [self.due_jan4.pk, self.due_jan4_noon.pk])

    def test_lists_are_jurisdiction_scoped(self):
        items, _ = SLAService.get_sla_complaints(self.senior, "overdue", now=_at(5))
        self.assertIn(self.foreign.pk, {c.pk for c in items})

        items, total = SLAService.get_sla_complaints(self.staff_w1_roads, "overdue", now=_at(5))
        self.assertEqual((items, total), ([], 0))

    def test_unknown_mode(self):
        with self.assertRaises(ValidationError):
            SLAService.get_sla_complaints(self.combined_sup, "late", now=_at(5))

    def test_sweep_and_management_command(self):
        self.assertEqual(SLAService.sweep(_at(3, 12)), 1)

        out = StringIO()
        call_command("check_sla_breaches", now="2024-01-05T00:00:00Z", stdout=out)
        self.assertIn("3 complaint(s) newly marked", out.getvalue())

        out = StringIO()
        call_command("check_sla_breaches", now="2024-01-06T00:00:00Z", stdout=out)
        self.assertIn("No new SLA breaches", out.getvalue())
