"""
Integration tests — current profile (Me) endpoint.

Endpoint under test:  GET /api/accounts/me/   (named URL: accounts:me)
Access:               Authenticated only (JWT Bearer)
"""

from __future__ import annotations

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import StaffProfile, User
from core.models import Department, Ward
from core.permissions_constants import Capability, UserRole


class TestMeEndpoint(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.ward = Ward.objects.create(number=4, name="Riverside")
        cls.department = Department.objects.create(code="ROADS", name="Roads")
        cls.staff = User.objects.create_user(
            username="field_officer", password="Str0ng!Pass77", role=UserRole.STAFF,
        )
        StaffProfile.objects.create(
            user=cls.staff,
            staff_role="Field Officer",
            department=cls.department,
            ward=cls.ward,
        )
        cls.citizen = User.objects.create_user(
            username="resident", password="Str0ng!Pass77",
        )

    def setUp(self):
        self.client = APIClient()
        self.url = reverse("accounts:me")

    def _authenticate(self, user: User) -> None:
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(user)}")

    def test_unauthenticated_request_is_rejected(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_staff_profile_and_capabilities_are_returned(self):
        self._authenticate(self.staff)
        resp = self.client.get(self.url)

        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["role"], UserRole.STAFF)
        self.assertIn(Capability.CHANGE_STATUS, resp.data["capabilities"])
        self.assertNotIn(Capability.ASSIGN, resp.data["capabilities"])
        self.assertEqual(resp.data["staff_profile"]["ward_number"], 4)
        self.assertEqual(resp.data["staff_profile"]["department_name"], "Roads")

    def test_citizen_has_no_staff_profile(self):
        self._authenticate(self.citizen)
        resp = self.client.get(self.url)

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["role"], UserRole.CITIZEN)
        self.assertEqual(resp.data["capabilities"], [Capability.COMMENT])
        self.assertIsNone(resp.data["staff_profile"])
