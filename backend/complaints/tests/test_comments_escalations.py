"""
Comment thread, priority changes and the escalation lifecycle.
"""

from __future__ import annotations

from accounts.models import SupervisorProfile, User
from core.domain.exceptions import Conflict, NotAuthorized, ValidationError
from core.models import Notification

from complaints.models import (
    ComplaintComment,
    ComplaintPriority,
    ComplaintStatus,
    EscalationTarget,
)
from complaints.services import ComplaintCommentService, EscalationService

from .base import ComplaintScenario, make_supervisor

S = ComplaintStatus


class TestComments(ComplaintScenario):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.neighbour = User.objects.create_user(username="neighbour", password="Str0ng!Pass77")
        cls.complaint = cls.make_complaint(status=S.ASSIGNED, assigned_staff=cls.staff_w1_roads)

    def test_citizen_comments_publicly_on_own_complaint(self):
        comment = ComplaintCommentService.add_comment(self.complaint.pk, "Still there.", self.citizen)

        self.assertFalse(comment.is_internal)
        self.assertEqual(comment.author_role, "citizen")
        with self.assertRaises(NotAuthorized):
            ComplaintCommentService.add_comment(self.complaint.pk, "psst", self.citizen, is_internal=True)
        with self.assertRaises(NotAuthorized):
            ComplaintCommentService.add_comment(self.complaint.pk, "Me too.", self.neighbour)

    def test_internal_comments_hidden_from_citizens(self):
        ComplaintCommentService.add_comment(self.complaint.pk, "Public update.", self.staff_w1_roads)
        ComplaintCommentService.add_comment(
            self.complaint.pk, "Needs asphalt truck.", self.staff_w1_roads, is_internal=True,
        )

        citizen_view = ComplaintCommentService.list_comments(self.citizen, self.complaint.pk)
        staff_view = ComplaintCommentService.list_comments(self.staff_w1_roads, self.complaint.pk)

        self.assertEqual([c.content for c in citizen_view], ["Public update."])
        self.assertEqual(staff_view.count(), 2)

    def test_priority_change_leaves_internal_note(self):
        ComplaintCommentService.update_priority(
            self.complaint.pk, ComplaintPriority.CRITICAL, "School bus route", self.combined_sup,
        )

        self.complaint.refresh_from_db()
        self.assertEqual(self.complaint.priority, ComplaintPriority.CRITICAL)
        note = ComplaintComment.objects.get(complaint=self.complaint)
        self.assertTrue(note.is_internal)
        self.assertEqual(note.content, "Priority changed to critical. Reason: School bus route")

        with self.assertRaises(ValidationError):
            ComplaintCommentService.update_priority(
                self.complaint.pk, ComplaintPriority.CRITICAL, "Again", self.combined_sup,
            )
        with self.assertRaises(NotAuthorized):
            ComplaintCommentService.update_priority(
                self.complaint.pk, ComplaintPriority.LOW, "Meh", self.staff_w1_roads,
            )


class TestEscalations(ComplaintScenario):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.water_sup = make_supervisor(
            "water_sup", SupervisorProfile.Level.DEPARTMENT, departments=[cls.water],
        )
        cls.complaint = cls.make_complaint(status=S.IN_PROGRESS, assigned_staff=cls.staff_w1_roads)

    def _escalate_to_water(self):
        return EscalationService.escalate(
            self.complaint.pk,
            self.staff_w1_roads,
            escalated_to=EscalationTarget.OTHER_DEPARTMENT,
            reason="Burst main under the pothole",
            target_department=self.water,
        )

    def test_escalation_lifecycle(self):
        with self.captureOnCommitCallbacks(execute=True):
            escalation = self._escalate_to_water()

        self.complaint.refresh_from_db()
        self.assertTrue(self.complaint.is_escalated)
        self.assertEqual(escalation.urgency, ComplaintPriority.HIGH)
        self.assertEqual(
            list(Notification.objects.filter(title="Complaint Escalated").values_list("recipient", flat=True)),
            [self.water_sup.pk],
        )

        with self.assertRaises(NotAuthorized):
            EscalationService.acknowledge(escalation.pk, self.ward_sup)

        EscalationService.acknowledge(escalation.pk, self.water_sup)
        with self.assertRaises(Conflict):
            EscalationService.acknowledge(escalation.pk, self.water_sup)

        resolved = EscalationService.resolve(escalation.pk, self.water_sup, "Main repaired.")
        self.assertEqual(resolved.resolved_by, self.water_sup)
        self.assertEqual(resolved.acknowledged_by, self.water_sup)
        self.complaint.refresh_from_db()
        self.assertFalse(self.complaint.is_escalated)

    def test_flag_stays_while_another_escalation_is_open(self):
        first = self._escalate_to_water()
        EscalationService.escalate(
            self.complaint.pk, self.staff_w1_roads,
            escalated_to=EscalationTarget.ADMIN, reason="Press enquiry",
        )

        EscalationService.resolve(first.pk, self.senior, "Handled.")

        self.complaint.refresh_from_db()
        self.assertTrue(self.complaint.is_escalated)

    def test_escalation_validation(self):
        with self.assertRaises(ValidationError):
            EscalationService.escalate(
                self.complaint.pk, self.staff_w1_roads,
                escalated_to=EscalationTarget.OTHER_DEPARTMENT, reason="No target",
            )
        with self.assertRaises(ValidationError):
            EscalationService.escalate(
                self.complaint.pk, self.staff_w1_roads,
                escalated_to=EscalationTarget.EXTERNAL_AGENCY, reason="No agency",
            )
        with self.assertRaises(NotAuthorized):
            EscalationService.escalate(
                self.complaint.pk, self.citizen,
                escalated_to=EscalationTarget.ADMIN, reason="Hurry up",
            )

        closed = self.make_complaint(status=S.CLOSED)
        with self.assertRaises(Conflict):
            EscalationService.escalate(
                closed.pk, self.senior, escalated_to=EscalationTarget.ADMIN, reason="Too late",
            )

    def test_admin_escalation_reaches_admins_and_senior_supervisors(self):
        with self.captureOnCommitCallbacks(execute=True):
            EscalationService.escalate(
                self.complaint.pk, self.staff_w1_roads,
                escalated_to=EscalationTarget.ADMIN, reason="Council member asked",
            )

        recipients = set(
            Notification.objects.filter(title="Complaint Escalated").values_list("recipient", flat=True)
        )
        self.assertEqual(recipients, {self.admin.pk, self.senior.pk})
