from django.conf import settings
from django.db import models
from django.db.models import Q

from .core import Department, Trial


class DepartmentProgress(models.Model):
    """
    One submission attempt of a department's section for a trial.

    Records are never deleted by the application; a rejected attempt stays
    and the department resubmits through a new row with the next attempt.
    """

    class ApprovalStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    trial = models.ForeignKey(
        Trial,
        on_delete=models.CASCADE,
        related_name="progress_records",
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name="progress_records",
    )
    attempt = models.PositiveIntegerField(default=1)

    username = models.CharField(max_length=150)
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="submitted_progress",
    )
    approval_status = models.CharField(
        max_length=20,
        choices=ApprovalStatus.choices,
        default=ApprovalStatus.PENDING,
        db_index=True,
    )
    remarks = models.TextField(blank=True, default="")

    submitted_at = models.DateTimeField(auto_now_add=True, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="decided_progress",
    )

    class Meta:
        ordering = ["submitted_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["trial", "department"],
                condition=Q(approval_status="pending"),
                name="one_pending_progress_per_department",
            ),
            models.UniqueConstraint(
                fields=["trial", "department"],
                condition=Q(approval_status="approved"),
                name="one_approved_progress_per_department",
            ),
            models.UniqueConstraint(
                fields=["trial", "department", "attempt"],
                name="progress_attempt_unique",
            ),
        ]
        indexes = [
            models.Index(fields=["username", "approval_status"], name="progress_user_status_idx"),
        ]

    def __str__(self):
        return (
            f"{self.trial_id}:{self.department_id} "
            f"#{self.attempt} {self.approval_status}"
        )
