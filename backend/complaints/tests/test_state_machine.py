"""
Complaint State Machine tests: legal and illegal edges, capabilities,
lifecycle stamps, and bulk transitions.
"""

from __future__ import annotations

from core.domain.exceptions import IllegalTransition, NotAuthorized, ValidationError
from core.models import Notification

from complaints.models import Complaint, ComplaintStatus, ComplaintStatusHistory
from complaints.services import ComplaintWorkflowService

from .base import ComplaintScenario

S = ComplaintStatus


class TestComplaintTransitions(ComplaintScenario):

    def test_full_lifecycle_stamps_and_history(self):
        complaint = self.make_complaint(status=S.UNDER_REVIEW, assigned_staff=self.staff_w1_roads)

        ComplaintWorkflowService.transition(complaint.pk, S.ASSIGNED, self.combined_sup)
        ComplaintWorkflowService.transition(complaint.pk, S.IN_PROGRESS, self.staff_w1_roads, "On site.")
        ComplaintWorkflowService.transition(complaint.pk, S.RESOLVED, self.staff_w1_roads, "Patched.")

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, S.RESOLVED)
        self.assertIsNotNone(complaint.resolved_at)
        self.assertEqual(complaint.resolved_by, self.staff_w1_roads)
        self.assertIsNone(complaint.closed_at)

        ComplaintWorkflowService.transition(complaint.pk, S.CLOSED, self.combined_sup)
        complaint.refresh_from_db()
        self.assertIsNotNone(complaint.closed_at)

        history = list(
            ComplaintStatusHistory.objects.filter(complaint=complaint)
            .order_by("id")
            .values_list("old_status", "new_status")
        )
        self.assertEqual(
            history,
            [
                (S.UNDER_REVIEW, S.ASSIGNED),
                (S.ASSIGNED, S.IN_PROGRESS),
                (S.IN_PROGRESS, S.RESOLVED),
                (S.RESOLVED, S.CLOSED),
            ],
        )
        last = ComplaintStatusHistory.objects.filter(complaint=complaint).latest("id")
        self.assertEqual(last.changed_by, self.combined_sup)

    def test_reopen_clears_resolution_stamps(self):
        complaint = self.make_complaint(status=S.RESOLVED, assigned_staff=self.staff_w1_roads)
        ComplaintWorkflowService.transition(complaint.pk, S.CLOSED, self.combined_sup)

        ComplaintWorkflowService.transition(complaint.pk, S.REOPENED, self.combined_sup, "Pothole is back.")

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, S.REOPENED)
        self.assertIsNone(complaint.resolved_at)
        self.assertIsNone(complaint.resolved_by)
        self.assertIsNone(complaint.closed_at)

    def test_illegal_edge_is_rejected_without_side_effects(self):
        complaint = self.make_complaint(status=S.RECEIVED)

        with self.assertRaises(IllegalTransition) as ctx:
            ComplaintWorkflowService.transition(complaint.pk, S.RESOLVED, self.combined_sup)

        self.assertEqual(ctx.exception.code, "illegal_transition")
        complaint.refresh_from_db()
        self.assertEqual(complaint.status, S.RECEIVED)
        self.assertFalse(ComplaintStatusHistory.objects.filter(complaint=complaint).exists())

    def test_terminal_states_only_reopen(self):
        closed = self.make_complaint(status=S.CLOSED)
        rejected = self.make_complaint(status=S.REJECTED)

        self.assertEqual(ComplaintWorkflowService.allowed_targets(S.CLOSED), [S.REOPENED])
        self.assertEqual(ComplaintWorkflowService.allowed_targets(S.REJECTED), [S.REOPENED])
        with self.assertRaises(IllegalTransition):
            ComplaintWorkflowService.transition(closed.pk, S.IN_PROGRESS, self.combined_sup)
        with self.assertRaises(IllegalTransition):
            ComplaintWorkflowService.transition(rejected.pk, S.UNDER_REVIEW, self.combined_sup)

    def test_staffed_status_requires_assignee(self):
        complaint = self.make_complaint(status=S.UNDER_REVIEW)

        with self.assertRaises(IllegalTransition) as ctx:
            ComplaintWorkflowService.transition(complaint.pk, S.ASSIGNED, self.combined_sup)

        self.assertIn("no assigned staff", str(ctx.exception))

    def test_edge_capability_is_enforced(self):
        complaint = self.make_complaint(status=S.UNDER_REVIEW, assigned_staff=self.staff_w1_roads)

        with self.assertRaises(NotAuthorized):
            ComplaintWorkflowService.transition(complaint.pk, S.REJECTED, self.staff_w1_roads)

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, S.UNDER_REVIEW)

    def test_out_of_jurisdiction_is_not_authorized(self):
        complaint = self.make_complaint(ward=self.ward2, status=S.RECEIVED)

        with self.assertRaises(NotAuthorized) as ctx:
            ComplaintWorkflowService.transition(complaint.pk, S.UNDER_REVIEW, self.ward_sup)

        self.assertEqual(str(ctx.exception), "This record is outside your jurisdiction.")
        self.assertNotIn(complaint.tracking_code, str(ctx.exception))
        complaint.refresh_from_db()
        self.assertEqual(complaint.status, S.RECEIVED)

    def test_unknown_status_is_a_validation_error(self):
        complaint = self.make_complaint()
        with self.assertRaises(ValidationError):
            ComplaintWorkflowService.transition(complaint.pk, "teleported", self.admin)

    def test_status_change_notifies_citizen_after_commit(self):
        complaint = self.make_complaint(status=S.RECEIVED)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            ComplaintWorkflowService.transition(complaint.pk, S.UNDER_REVIEW, self.combined_sup)

        self.assertGreaterEqual(len(callbacks), 1)
        notification = Notification.objects.get(recipient=self.citizen)
        self.assertEqual(notification.title, "Complaint Status Updated")
        self.assertIn("received to under_review", notification.message)
        self.assertFalse(Notification.objects.filter(recipient=self.combined_sup).exists())


class TestBulkTransition(ComplaintScenario):

    def test_each_item_succeeds_or_fails_independently(self):
        open_a = self.make_complaint(status=S.RECEIVED)
        open_b = self.make_complaint(status=S.RECEIVED)
        closed = self.make_complaint(status=S.CLOSED)
        foreign = self.make_complaint(ward=self.ward2, status=S.RECEIVED)

        results = ComplaintWorkflowService.bulk_transition(
            [open_a.pk, closed.pk, open_a.pk, foreign.pk, 987654, open_b.pk],
            S.UNDER_REVIEW,
            self.combined_sup,
            note="Triage",
        )

        outcome = {r.id: (r.ok, r.error_code) for r in results}
        self.assertEqual(len(results), 5)
        self.assertEqual(outcome[open_a.pk], (True, None))
        self.assertEqual(outcome[open_b.pk], (True, None))
        self.assertEqual(outcome[closed.pk], (False, "illegal_transition"))
        self.assertEqual(outcome[foreign.pk], (False, "not_authorized"))
        self.assertEqual(outcome[987654], (False, "not_found"))

        self.assertEqual(
            set(Complaint.objects.filter(status=S.UNDER_REVIEW).values_list("pk", flat=True)),
            {open_a.pk, open_b.pk},
        )
        self.assertEqual(ComplaintStatusHistory.objects.filter(complaint=open_a).count(), 1)
        closed.refresh_from_db()
        self.assertEqual(closed.status, S.CLOSED)
