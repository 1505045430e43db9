"""
Shared test scenario for the complaints app.

Builds a small city once per test class:

    Wards:        1 (Northgate), 2 (Riverside)
    Departments:  ROADS, WATER
    Category:     Potholes (3-day SLA, routed to ROADS)

    Users
    ─────
    citizen            — files complaints
    admin              — admin role (senior jurisdiction)
    senior             — supervisor, level senior
    ward_sup           — supervisor of ward 1 (all departments)
    roads_sup          — supervisor of ROADS (all wards)
    combined_sup       — supervisor of ward 1 AND ROADS
    bare_sup           — supervisor role without a profile
    staff_w1_roads     — field officer, ward 1 / ROADS
    staff_w1_water     — field officer, ward 1 / WATER
    staff_w2_roads     — field officer, ward 2 / ROADS
"""

from __future__ import annotations

import datetime
import itertools

from django.test import TestCase
from django.utils import timezone

from accounts.models import StaffProfile, SupervisorProfile, User
from complaints.models import (
    Complaint,
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    ComplaintSubcategory,
)
from core.models import Department, Ward
from core.permissions_constants import UserRole

JAN_1 = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

_codes = itertools.count(1)


def make_staff(username: str, ward: Ward, department: Department, **profile) -> User:
    user = User.objects.create_user(
        username=username,
        password="Str0ng!Pass77",
        first_name=username.replace("_", " ").title(),
        role=UserRole.STAFF,
    )
    StaffProfile.objects.create(
        user=user,
        staff_role="Field Officer",
        ward=ward,
        department=department,
        **profile,
    )
    return user


def make_supervisor(username: str, level: str, wards=(), departments=()) -> User:
    user = User.objects.create_user(
        username=username,
        password="Str0ng!Pass77",
        role=UserRole.SUPERVISOR,
    )
    profile = SupervisorProfile.objects.create(user=user, supervisor_level=level)
    profile.assigned_wards.set(wards)
    profile.assigned_departments.set(departments)
    return user


class ComplaintScenario(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.ward1 = Ward.objects.create(number=1, name="Northgate")
        cls.ward2 = Ward.objects.create(number=2, name="Riverside")
        cls.roads = Department.objects.create(code="ROADS", name="Roads")
        cls.water = Department.objects.create(code="WATER", name="Water Supply")

        cls.category = ComplaintCategory.objects.create(
            name="Potholes", default_sla_days=3, default_department=cls.roads,
        )
        cls.subcategory = ComplaintSubcategory.objects.create(
            category=cls.category, name="Main road", default_sla_days=1,
        )

        cls.citizen = User.objects.create_user(username="resident", password="Str0ng!Pass77")
        cls.admin = User.objects.create_user(
            username="city_admin", password="Str0ng!Pass77", role=UserRole.ADMIN,
        )

        Level = SupervisorProfile.Level
        cls.senior = make_supervisor("senior_sup", Level.SENIOR)
        cls.ward_sup = make_supervisor("ward_sup", Level.WARD, wards=[cls.ward1])
        cls.roads_sup = make_supervisor("roads_sup", Level.DEPARTMENT, departments=[cls.roads])
        cls.combined_sup = make_supervisor(
            "combined_sup", Level.COMBINED, wards=[cls.ward1], departments=[cls.roads],
        )
        cls.bare_sup = User.objects.create_user(
            username="bare_sup", password="Str0ng!Pass77", role=UserRole.SUPERVISOR,
        )

        cls.staff_w1_roads = make_staff("staff_w1_roads", cls.ward1, cls.roads)
        cls.staff_w1_water = make_staff("staff_w1_water", cls.ward1, cls.water)
        cls.staff_w2_roads = make_staff("staff_w2_roads", cls.ward2, cls.roads)

    @classmethod
    def make_complaint(cls, **overrides) -> Complaint:
        """Insert a complaint directly, bypassing intake."""
        submitted_at = overrides.pop("submitted_at", timezone.now())
        data = {
            "tracking_code": f"CMP-TEST-{next(_codes):06d}",
            "title": "Pothole outside the library",
            "description": "Deep pothole in the left lane.",
            "category": cls.category,
            "priority": ComplaintPriority.MEDIUM,
            "status": ComplaintStatus.RECEIVED,
            "ward": cls.ward1,
            "assigned_department": cls.roads,
            "citizen": cls.citizen,
            "submitted_at": submitted_at,
            "sla_due_at": submitted_at + datetime.timedelta(days=3),
        }
        data.update(overrides)
        return Complaint.objects.create(**data)
