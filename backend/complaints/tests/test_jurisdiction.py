"""
Jurisdiction Resolver tests: role resolution, scope semantics, and the
agreement between the in-process check and the query filter.
"""

from __future__ import annotations

from accounts.models import StaffProfile
from complaints.jurisdiction import JurisdictionResolver, can_assign_into, in_jurisdiction
from complaints.models import Complaint

from .base import ComplaintScenario, make_staff


class TestJurisdictionResolver(ComplaintScenario):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.w1_roads = cls.make_complaint(ward=cls.ward1, assigned_department=cls.roads)
        cls.w1_water = cls.make_complaint(ward=cls.ward1, assigned_department=cls.water)
        cls.w2_roads = cls.make_complaint(ward=cls.ward2, assigned_department=cls.roads)
        cls.w2_water = cls.make_complaint(ward=cls.ward2, assigned_department=cls.water)
        cls.w2_water_direct = cls.make_complaint(
            ward=cls.ward2,
            assigned_department=cls.water,
            assigned_staff=cls.staff_w1_roads,
            status="assigned",
        )

    def _visible(self, actor) -> set[int]:
        predicate = JurisdictionResolver.resolve(actor).as_predicate()
        return set(Complaint.objects.filter(predicate.to_q()).values_list("pk", flat=True))

    def test_admin_and_senior_supervisor_are_senior(self):
        self.assertTrue(JurisdictionResolver.resolve(self.admin).is_senior)
        self.assertTrue(JurisdictionResolver.resolve(self.senior).is_senior)
        self.assertEqual(self._visible(self.senior), set(Complaint.objects.values_list("pk", flat=True)))

    def test_ward_supervisor_sees_every_department_in_their_ward(self):
        self.assertEqual(self._visible(self.ward_sup), {self.w1_roads.pk, self.w1_water.pk})

    def test_department_supervisor_sees_their_department_in_every_ward(self):
        self.assertEqual(self._visible(self.roads_sup), {self.w1_roads.pk, self.w2_roads.pk})

    def test_combined_supervisor_uses_and(self):
        self.assertEqual(self._visible(self.combined_sup), {self.w1_roads.pk})

    def test_supervisor_without_profile_gets_empty_scope(self):
        jurisdiction = JurisdictionResolver.resolve(self.bare_sup)

        self.assertFalse(jurisdiction.supervises_anything)
        self.assertEqual(self._visible(self.bare_sup), set())

    def test_staff_see_only_direct_assignments(self):
        self.assertEqual(self._visible(self.staff_w1_roads), {self.w2_water_direct.pk})
        self.assertEqual(self._visible(self.citizen), set())

    def test_in_process_check_agrees_with_query_filter(self):
        actors = [
            self.admin, self.senior, self.ward_sup, self.roads_sup,
            self.combined_sup, self.bare_sup, self.staff_w1_roads, self.citizen,
        ]
        complaints = list(Complaint.objects.all())
        for actor in actors:
            jurisdiction = JurisdictionResolver.resolve(actor)
            queried = self._visible(actor)
            for complaint in complaints:
                with self.subTest(actor=actor.username, complaint=complaint.pk):
                    self.assertEqual(in_jurisdiction(complaint, jurisdiction), complaint.pk in queried)

    def test_profile_changes_apply_on_next_call(self):
        self.assertNotIn(self.w2_water.pk, self._visible(self.ward_sup))

        self.ward_sup.supervisor_profile.assigned_wards.add(self.ward2)

        self.assertIn(self.w2_water.pk, self._visible(self.ward_sup))

    def test_assignability_matches_ward_or_department(self):
        dept_only = make_staff("roads_no_ward", None, self.roads)
        w2_water = make_staff("staff_w2_water", self.ward2, self.water)
        profiles = {p.user_id: p for p in StaffProfile.objects.all()}

        combined = JurisdictionResolver.resolve(self.combined_sup)
        self.assertTrue(can_assign_into(profiles[self.staff_w1_roads.pk], combined))
        self.assertTrue(can_assign_into(profiles[self.staff_w1_water.pk], combined))
        self.assertTrue(can_assign_into(profiles[self.staff_w2_roads.pk], combined))
        self.assertTrue(can_assign_into(profiles[dept_only.pk], combined))
        self.assertFalse(can_assign_into(profiles[w2_water.pk], combined))

        ward_only = JurisdictionResolver.resolve(self.ward_sup)
        self.assertFalse(can_assign_into(profiles[dept_only.pk], ward_only))
        self.assertFalse(can_assign_into(profiles[self.staff_w2_roads.pk], ward_only))

        senior = JurisdictionResolver.resolve(self.senior)
        self.assertTrue(can_assign_into(profiles[w2_water.pk], senior))

        bare = JurisdictionResolver.resolve(self.bare_sup)
        self.assertFalse(can_assign_into(profiles[self.staff_w1_roads.pk], bare))
