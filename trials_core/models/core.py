# trials_core/models/core.py

from django.conf import settings
from django.db import models
from django.db.models import Q

from trials_core.workflows.guards import WorkflowWriteGuardMixin


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Department
# ============================================================
class Department(TimeStampedModel):
    """
    Reference table. Departments with a ``sequence`` are workflow stages,
    visited in ascending sequence order. Methods and Administration have
    no sequence and act across stages.
    """

    code = models.CharField(max_length=30, unique=True)
    name = models.CharField(max_length=255)
    sequence = models.PositiveIntegerField(null=True, blank=True, unique=True)
    section = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Section key this department submits (blank for non-stage departments).",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sequence", "code"]

    @property
    def is_stage(self) -> bool:
        return self.sequence is not None and self.is_active

    def __str__(self):
        return f"{self.code} - {self.name}"


# ============================================================
# User Roles
# ============================================================
class UserRole(TimeStampedModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="trial_roles",
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name="user_roles",
    )
    role = models.CharField(max_length=50, help_text="OPERATOR, HOD, METHODS or ADMIN")

    class Meta:
        unique_together = ("user", "department", "role")

    def __str__(self):
        return f"{self.user.username} - {self.department.code} - {self.role}"


# ============================================================
# Trial id counter
# ============================================================
class TrialSequence(models.Model):
    """
    Per-part-name counter. Incremented under row lock when a trial is
    created so that concurrent creations never reuse a number.
    """

    part_name = models.CharField(max_length=100, unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.part_name}: {self.last_value}"


# ============================================================
# Trial
# ============================================================
class Trial(WorkflowWriteGuardMixin, TimeStampedModel):
    WORKFLOW_FIELDS = ("status", "current_department")

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ACTIVE = "active", "Active"
        CLOSED = "closed", "Closed"
        DELETED = "deleted", "Deleted"

    trial_id = models.CharField(max_length=120, primary_key=True)

    part_name = models.CharField(max_length=100, db_index=True)
    pattern_code = models.CharField(max_length=50)
    material_grade = models.CharField(max_length=50)
    initiated_by = models.CharField(max_length=100)
    date_of_sampling = models.DateField()
    plan_moulds = models.PositiveIntegerField()
    actual_moulds = models.PositiveIntegerField(null=True, blank=True)
    reason_for_sampling = models.TextField()
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name="initiated_trials",
    )
    disa = models.CharField(max_length=50, help_text="Moulding machine")
    sample_traceability = models.CharField(max_length=100)

    chemical_composition = models.JSONField(default=dict, blank=True)
    tensile = models.JSONField(default=dict, blank=True)
    remarks = models.TextField(blank=True, default="")

    current_department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name="current_trials",
        null=True,
        blank=True,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    status_before_delete = models.CharField(max_length=20, blank=True, default="")
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deleted_trials",
    )
    closed_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_trials",
    )

    class Meta:
        ordering = ["-created_at", "-trial_id"]
        constraints = [
            models.CheckConstraint(
                name="trial_id_not_blank",
                condition=~Q(trial_id=""),
            ),
        ]
        indexes = [
            models.Index(fields=["status", "current_department"], name="trial_status_dept_idx"),
        ]

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __str__(self):
        return self.trial_id
