"""
Complaints app models.

``Complaint`` is the aggregate root of the municipal complaint lifecycle.
Status history, assignment history, comments and escalations hang off it;
the two history tables are append-only event logs.
"""

from django.conf import settings
from django.db import models

from core.models import Department, TimeStampedModel, Ward


class ComplaintStatus(models.TextChoices):
    RECEIVED = "received", "Received"
    UNDER_REVIEW = "under_review", "Under Review"
    ASSIGNED = "assigned", "Assigned"
    IN_PROGRESS = "in_progress", "In Progress"
    RESOLVED = "resolved", "Resolved"
    CLOSED = "closed", "Closed"
    REJECTED = "rejected", "Rejected"
    REOPENED = "reopened", "Reopened"


class ComplaintPriority(models.TextChoices):
    CRITICAL = "critical", "Critical"
    URGENT = "urgent", "Urgent"
    HIGH = "high", "High"
    MEDIUM = "medium", "Medium"
    LOW = "low", "Low"


class ComplaintSource(models.TextChoices):
    WEB = "web", "Web Portal"
    MOBILE = "mobile", "Mobile App"
    CALL_CENTER = "call_center", "Call Center"
    FIELD_OFFICE = "field_office", "Field Office"
    EMAIL = "email", "Email"


class SLAState(models.TextChoices):
    ON_TRACK = "on_track", "On Track"
    AT_RISK = "at_risk", "At Risk"
    BREACHED = "breached", "Breached"


class EscalationTarget(models.TextChoices):
    ADMIN = "admin", "Administration"
    SENIOR_SUPERVISOR = "senior_supervisor", "Senior Supervisor"
    OTHER_DEPARTMENT = "other_department", "Other Department"
    EXTERNAL_AGENCY = "external_agency", "External Agency"


class AppendOnlyModel(TimeStampedModel):
    """Abstract base for event-log rows: inserts only, never updated."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk is not None and not self._state.adding:
            raise ValueError(f"{type(self).__name__} rows are immutable once written.")
        super().save(*args, **kwargs)


class ComplaintCategory(TimeStampedModel):
    """Top-level complaint classification (e.g. Roads, Water Supply)."""

    name = models.CharField(max_length=255, unique=True, verbose_name="Name")
    default_sla_days = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name="Default SLA (days)",
    )
    default_department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Default Department",
        help_text="Department new complaints in this category are routed to.",
    )
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "Complaint Category"
        verbose_name_plural = "Complaint Categories"
        ordering = ["name"]

    def __str__(self):
        return self.name


class ComplaintSubcategory(TimeStampedModel):
    category = models.ForeignKey(
        ComplaintCategory,
        on_delete=models.CASCADE,
        related_name="subcategories",
        verbose_name="Category",
    )
    name = models.CharField(max_length=255, verbose_name="Name")
    default_sla_days = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name="Default SLA (days)",
        help_text="Overrides the category turnaround when set.",
    )
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "Complaint Subcategory"
        verbose_name_plural = "Complaint Subcategories"
        unique_together = [("category", "name")]
        ordering = ["category__name", "name"]

    def __str__(self):
        return f"{self.category.name} / {self.name}"


class Complaint(TimeStampedModel):
    """
    A citizen-submitted municipal complaint.

    Invariants maintained by ``complaints.services``:
        * ``status`` moves only along ``ComplaintWorkflowService.ALLOWED_TRANSITIONS``
          (the Assignment Engine's move to ``assigned`` is the one system edge).
        * ``assigned_staff`` is set whenever status is assigned / in_progress.
        * ``sla_breached_at`` is written at most once.
        * ``tracking_code`` never changes after creation.
    """

    tracking_code = models.CharField(
        max_length=32,
        unique=True,
        editable=False,
        verbose_name="Tracking Code",
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    description = models.TextField(verbose_name="Description")
    category = models.ForeignKey(
        ComplaintCategory,
        on_delete=models.PROTECT,
        related_name="complaints",
        verbose_name="Category",
    )
    subcategory = models.ForeignKey(
        ComplaintSubcategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="complaints",
        verbose_name="Subcategory",
    )
    priority = models.CharField(
        max_length=10,
        choices=ComplaintPriority.choices,
        default=ComplaintPriority.MEDIUM,
        db_index=True,
        verbose_name="Priority",
    )
    status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        default=ComplaintStatus.RECEIVED,
        db_index=True,
        verbose_name="Status",
    )
    source = models.CharField(
        max_length=20,
        choices=ComplaintSource.choices,
        default=ComplaintSource.WEB,
        verbose_name="Source",
    )

    # ── Routing ─────────────────────────────────────────────────────
    ward = models.ForeignKey(
        Ward,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="complaints",
        verbose_name="Ward",
    )
    assigned_department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="complaints",
        verbose_name="Assigned Department",
    )
    assigned_staff = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_complaints",
        verbose_name="Assigned Staff",
    )
    citizen = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="submitted_complaints",
        verbose_name="Citizen",
    )
    is_anonymous = models.BooleanField(default=False, verbose_name="Anonymous")

    # ── Location ────────────────────────────────────────────────────
    latitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True, verbose_name="Latitude",
    )
    longitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True, verbose_name="Longitude",
    )
    address_text = models.CharField(max_length=500, blank=True, default="", verbose_name="Address")
    landmark = models.CharField(max_length=255, blank=True, default="", verbose_name="Landmark")

    # ── Lifecycle timestamps ────────────────────────────────────────
    submitted_at = models.DateTimeField(db_index=True, verbose_name="Submitted At")
    assigned_at = models.DateTimeField(null=True, blank=True, verbose_name="Assigned At")
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name="Resolved At")
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Resolved By",
    )
    closed_at = models.DateTimeField(null=True, blank=True, verbose_name="Closed At")
    resolution_notes = models.TextField(blank=True, default="", verbose_name="Resolution Notes")

    # ── SLA ─────────────────────────────────────────────────────────
    sla_due_at = models.DateTimeField(null=True, blank=True, db_index=True, verbose_name="SLA Due At")
    sla_breached_at = models.DateTimeField(null=True, blank=True, verbose_name="SLA Breached At")

    is_escalated = models.BooleanField(default=False, verbose_name="Escalated")

    class Meta:
        verbose_name = "Complaint"
        verbose_name_plural = "Complaints"
        ordering = ["-submitted_at"]
        indexes = [
            models.Index(fields=["ward", "assigned_department"]),
            models.Index(fields=["assigned_staff", "status"]),
        ]

    def __str__(self):
        return f"{self.tracking_code} — {self.title}"


class ComplaintStatusHistory(AppendOnlyModel):
    """One row per status change, including the initial ``received`` entry."""

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="status_history",
        verbose_name="Complaint",
    )
    old_status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        blank=True,
        default="",
        verbose_name="Old Status",
    )
    new_status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        verbose_name="New Status",
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
        verbose_name="Changed By",
    )
    note = models.TextField(blank=True, default="", verbose_name="Note")

    class Meta:
        verbose_name = "Complaint Status History"
        verbose_name_plural = "Complaint Status History"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.complaint_id}: {self.old_status or '∅'} → {self.new_status}"


class ComplaintAssignmentHistory(AppendOnlyModel):
    """One row per assignment or reassignment."""

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="assignment_history",
        verbose_name="Complaint",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
        verbose_name="Assigned To",
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
        verbose_name="Assigned By",
    )
    previous_staff = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Previous Staff",
    )
    reason = models.CharField(max_length=500, blank=True, default="", verbose_name="Reason")
    notes = models.TextField(blank=True, default="", verbose_name="Notes")

    class Meta:
        verbose_name = "Complaint Assignment History"
        verbose_name_plural = "Complaint Assignment History"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.complaint_id} → {self.assigned_to_id}"


class ComplaintComment(TimeStampedModel):
    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="comments",
        verbose_name="Complaint",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Author",
    )
    author_role = models.CharField(max_length=20, blank=True, default="", verbose_name="Author Role")
    content = models.TextField(verbose_name="Content")
    is_internal = models.BooleanField(
        default=False,
        verbose_name="Internal",
        help_text="Visible to staff only.",
    )
    is_system = models.BooleanField(default=False, verbose_name="System Generated")

    class Meta:
        verbose_name = "Complaint Comment"
        verbose_name_plural = "Complaint Comments"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Comment #{self.pk} on {self.complaint_id}"


class Escalation(TimeStampedModel):
    """
    Request for attention beyond the complaint's normal jurisdiction.

    ``acknowledged_*`` and ``resolved_*`` are each stamped once.
    """

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="escalations",
        verbose_name="Complaint",
    )
    escalated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
        verbose_name="Escalated By",
    )
    escalated_to = models.CharField(
        max_length=30,
        choices=EscalationTarget.choices,
        verbose_name="Escalated To",
    )
    urgency = models.CharField(
        max_length=10,
        choices=ComplaintPriority.choices,
        default=ComplaintPriority.HIGH,
        verbose_name="Urgency",
    )
    reason = models.TextField(verbose_name="Reason")
    target_department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="escalations",
        verbose_name="Target Department",
    )
    target_external_agency = models.CharField(
        max_length=255, blank=True, default="", verbose_name="External Agency",
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True, verbose_name="Acknowledged At")
    acknowledged_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Acknowledged By",
    )
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name="Resolved At")
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Resolved By",
    )
    resolution_notes = models.TextField(blank=True, default="", verbose_name="Resolution Notes")

    class Meta:
        verbose_name = "Escalation"
        verbose_name_plural = "Escalations"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Escalation #{self.pk} ({self.get_escalated_to_display()}) on {self.complaint_id}"
