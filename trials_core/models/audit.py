from django.conf import settings
from django.db import models

from trials_core.workflows.guards import AppendOnlyMixin

from .core import Department, Trial


class AuditAction(models.TextChoices):
    TRIAL_CREATED = "Trial created", "Trial created"
    TRIAL_UPDATED = "Trial updated", "Trial updated"
    TRIAL_ACTIVATED = "Trial activated", "Trial activated"
    SECTION_SAVED = "Section data saved", "Section data saved"
    PROGRESS_ADDED = "Department progress added", "Department progress added"
    PROGRESS_APPROVED = "Department progress approved", "Department progress approved"
    PROGRESS_REJECTED = "Department progress rejected", "Department progress rejected"
    TRIAL_COMPLETED = "Trial completed", "Trial completed"
    TRIAL_DELETED = "Trial deleted", "Trial deleted"
    TRIAL_RESTORED = "Trial restored", "Trial restored"
    TRIAL_PERMANENTLY_DELETED = "Trial permanently deleted", "Trial permanently deleted"


class AuditEntry(AppendOnlyMixin, models.Model):
    """
    Immutable, timestamped record of every state-changing action.

    ``trial`` is nullable for actions that outlive the trial (permanent
    deletion) or are not about a trial at all.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="trial_audit_entries",
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_entries",
    )
    trial = models.ForeignKey(
        Trial,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="audit_entries",
    )
    action = models.CharField(max_length=64, choices=AuditAction.choices, db_index=True)
    remarks = models.TextField(blank=True, default="")
    details = models.JSONField(default=dict, blank=True)
    action_timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-action_timestamp", "-id"]
        verbose_name_plural = "audit entries"
        indexes = [
            models.Index(fields=["department", "action"], name="audit_dept_action_idx"),
            models.Index(fields=["trial", "action"], name="audit_trial_action_idx"),
        ]

    def __str__(self):
        who = self.user.get_username() if self.user else "system"
        return f"{self.action_timestamp} - {who} - {self.action}"
