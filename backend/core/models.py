"""
Core app models.

Provides abstract base models, the municipal reference entities (wards and
departments) and the delivery channels used by the notification
dispatcher: in-app notifications and staff conversation threads.
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


class Ward(TimeStampedModel):
    """
    Administrative ward of the municipality.

    Referenced (never owned) by complaints, staff profiles and supervisor
    jurisdictions.
    """

    number = models.PositiveSmallIntegerField(
        unique=True,
        verbose_name="Ward Number",
    )
    name = models.CharField(max_length=255, verbose_name="Name")
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "Ward"
        verbose_name_plural = "Wards"
        ordering = ["number"]

    def __str__(self):
        return f"Ward {self.number} — {self.name}"


class Department(TimeStampedModel):
    """Municipal department that complaints are routed to (roads, water, ...)."""

    code = models.CharField(
        max_length=20,
        unique=True,
        verbose_name="Code",
    )
    name = models.CharField(max_length=255, verbose_name="Name")
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "Department"
        verbose_name_plural = "Departments"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"


class Notification(TimeStampedModel):
    """
    In-app notification sent to a user regarding complaint assignments,
    reassignments, status changes and SLA breaches.

    Uses a GenericForeignKey so any model instance can be the *source* of a
    notification (e.g. the complaint that was reassigned).
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    is_read = models.BooleanField(default=False, verbose_name="Read")

    # Generic relation to the object that triggered the notification
    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        verbose_name="Related Content Type",
    )
    object_id = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        verbose_name="Related Object ID",
    )
    content_object = GenericForeignKey("content_type", "object_id")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "is_read"]),
        ]

    def __str__(self):
        return f"[{self.recipient}] {self.title}"


class Conversation(TimeStampedModel):
    """
    Direct message thread between two users (supervisor ↔ staff).

    Participants are stored in a canonical order (lower PK first) so a pair
    of users always maps to a single thread.
    """

    participant_a = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        verbose_name="Participant A",
    )
    participant_b = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        verbose_name="Participant B",
    )

    class Meta:
        verbose_name = "Conversation"
        verbose_name_plural = "Conversations"
        unique_together = [("participant_a", "participant_b")]

    def __str__(self):
        return f"Conversation #{self.pk} ({self.participant_a_id} ↔ {self.participant_b_id})"


class ConversationMessage(TimeStampedModel):
    """A single message in a ``Conversation``.  ``is_system`` marks dispatcher output."""

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        verbose_name="Conversation",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
        verbose_name="Sender",
    )
    body = models.TextField(verbose_name="Body")
    is_system = models.BooleanField(default=False, verbose_name="System Message")

    class Meta:
        verbose_name = "Conversation Message"
        verbose_name_plural = "Conversation Messages"
        ordering = ["created_at"]

    def __str__(self):
        return f"Message #{self.pk} in conversation #{self.conversation_id}"
