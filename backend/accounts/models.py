"""
Accounts app models.

Defines the custom User model (one role from the closed ``UserRole`` set)
and the staffing profiles the complaint engine reads: ``StaffProfile``
for every municipal employee and ``SupervisorProfile`` for the ward /
department scope of supervisors.  Both profiles are owned by staffing
administration; the complaint core never writes them.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models

from core.models import Department, TimeStampedModel, Ward
from core.permissions_constants import UserRole


class User(AbstractUser):
    """
    Custom user model for the municipal complaint system.

    Each user holds exactly **one** role at a time.  New accounts default
    to ``citizen``; staffing administration promotes employees.
    """

    phone_number = models.CharField(
        max_length=15,
        blank=True,
        default="",
        verbose_name="Phone Number",
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.CITIZEN,
        db_index=True,
        verbose_name="Role",
    )

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def has_role(self, role: str) -> bool:
        return self.role == role

    @property
    def is_staff_member(self) -> bool:
        return self.role in (UserRole.STAFF, UserRole.SUPERVISOR, UserRole.ADMIN)


class StaffProfile(TimeStampedModel):
    """
    Employment record of a staff member.

    ``ward`` and ``department`` decide which supervisors may assign work
    to this person.  Inactive staff cannot receive new assignments.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="staff_profile",
        verbose_name="User",
    )
    staff_role = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="Staff Role",
        help_text="Job title, e.g. 'Field Officer' or 'Sanitation Inspector'.",
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="staff",
        verbose_name="Department",
    )
    ward = models.ForeignKey(
        Ward,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="staff",
        verbose_name="Ward",
    )
    is_supervisor = models.BooleanField(default=False, verbose_name="Supervisor")
    max_concurrent_assignments = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name="Max Concurrent Assignments",
        help_text="Leave blank to use the city-wide default.",
    )
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "Staff Profile"
        verbose_name_plural = "Staff Profiles"

    def __str__(self):
        return f"{self.user.username} — {self.staff_role or 'Staff'}"


class SupervisorProfile(TimeStampedModel):
    """
    Jurisdiction configuration of a supervisor.

    An empty ``assigned_wards`` (or ``assigned_departments``) means that
    dimension is unrestricted for the AND-combination; with both empty the
    supervisor sees only complaints assigned directly to them.
    """

    class Level(models.TextChoices):
        WARD = "ward", "Ward"
        DEPARTMENT = "department", "Department"
        COMBINED = "combined", "Combined"
        SENIOR = "senior", "Senior"

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="supervisor_profile",
        verbose_name="User",
    )
    supervisor_level = models.CharField(
        max_length=20,
        choices=Level.choices,
        default=Level.WARD,
        verbose_name="Supervisor Level",
    )
    assigned_wards = models.ManyToManyField(
        Ward,
        blank=True,
        related_name="supervisors",
        verbose_name="Assigned Wards",
    )
    assigned_departments = models.ManyToManyField(
        Department,
        blank=True,
        related_name="supervisors",
        verbose_name="Assigned Departments",
    )

    class Meta:
        verbose_name = "Supervisor Profile"
        verbose_name_plural = "Supervisor Profiles"

    def __str__(self):
        return f"{self.user.username} ({self.get_supervisor_level_display()})"

    @property
    def is_senior(self) -> bool:
        return self.supervisor_level == self.Level.SENIOR
