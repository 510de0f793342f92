# trials_core/workflows/ledger.py
"""
Department progress ledger.

Per (trial, department) the records form a chain of attempts:

    none -> pending -> approved            (terminal)
                    -> rejected -> pending (new attempt)

At most one pending and at most one approved record exist per pair; the
partial unique constraints on DepartmentProgress back the checks below.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Max, Q, QuerySet
from django.utils import timezone

from trials_core.models import AuditAction, Department, DepartmentProgress, Trial
from trials_core.permissions import global_roles, hod_department_ids
from trials_core.workflows import validate_transition
from trials_core.workflows import audit
from trials_core.workflows.errors import DuplicatePendingError, NoPendingRecordError
from trials_core.workflows.sequence import stage_departments

logger = logging.getLogger(__name__)

Status = DepartmentProgress.ApprovalStatus


def _username(user) -> str:
    if user is None:
        return ""
    return user.get_username()


def has_pending(trial: Trial, department: Department) -> bool:
    return DepartmentProgress.objects.filter(
        trial=trial, department=department, approval_status=Status.PENDING
    ).exists()


def is_approved(trial: Trial, department: Department) -> bool:
    return DepartmentProgress.objects.filter(
        trial=trial, department=department, approval_status=Status.APPROVED
    ).exists()


def latest_status(trial: Trial, department: Department) -> Optional[str]:
    record = (
        DepartmentProgress.objects.filter(trial=trial, department=department)
        .order_by("-attempt")
        .first()
    )
    return record.approval_status if record else None


# ===============================================================
# Mutations
# ===============================================================

def submit(trial: Trial, department: Department, user, remarks: str = "") -> DepartmentProgress:
    """
    Open a new pending attempt. Raises DuplicatePendingError when one is
    already awaiting a decision.
    """
    with transaction.atomic():
        if has_pending(trial, department):
            raise DuplicatePendingError()

        last = DepartmentProgress.objects.filter(trial=trial, department=department).aggregate(
            n=Max("attempt")
        )["n"]

        try:
            with transaction.atomic():
                record = DepartmentProgress.objects.create(
                    trial=trial,
                    department=department,
                    attempt=(last or 0) + 1,
                    username=_username(user),
                    submitted_by=user,
                    approval_status=Status.PENDING,
                    remarks=remarks or "",
                )
        except IntegrityError:
            raise DuplicatePendingError()

        audit.append(
            AuditAction.PROGRESS_ADDED,
            user,
            trial=trial,
            department=department,
            remarks=remarks,
            details={"progress_id": record.id, "attempt": record.attempt},
        )

    logger.info(
        "Progress submitted trial=%s department=%s attempt=%s by %s",
        trial.pk,
        department.code,
        record.attempt,
        record.username,
    )
    return record


def _lock_pending(trial: Trial, department: Department) -> DepartmentProgress:
    record = (
        DepartmentProgress.objects.select_for_update()
        .filter(trial=trial, department=department, approval_status=Status.PENDING)
        .order_by("-submitted_at", "-id")
        .first()
    )
    if record is None:
        raise NoPendingRecordError()
    return record


def _decide(record: DepartmentProgress, target: str, user) -> DepartmentProgress:
    validate_transition("progress", record.approval_status, target)
    record.approval_status = target
    record.completed_at = timezone.now()
    record.decided_by = user
    record.save(update_fields=["approval_status", "completed_at", "decided_by"])
    return record


def _advance(trial: Trial, user) -> None:
    """
    Point the trial at its first stage without an approval, or close it
    when every stage is approved.
    """
    approved = set(
        DepartmentProgress.objects.filter(trial=trial, approval_status=Status.APPROVED).values_list(
            "department_id", flat=True
        )
    )
    remaining = [d for d in stage_departments() if d.id not in approved]

    if remaining:
        nxt = remaining[0]
        if trial.current_department_id != nxt.id:
            trial.current_department = nxt
            trial.save(update_fields=["current_department", "updated_at"], _workflow_bypass=True)
        return

    validate_transition("trial", trial.status, Trial.Status.CLOSED)
    trial.status = Trial.Status.CLOSED
    trial.current_department = None
    trial.closed_at = timezone.now()
    trial.save(
        update_fields=["status", "current_department", "closed_at", "updated_at"],
        _workflow_bypass=True,
    )
    audit.append(AuditAction.TRIAL_COMPLETED, user, trial=trial)
    logger.info("Trial %s completed", trial.pk)


def approve(trial: Trial, department: Department, user, remarks: str = "") -> DepartmentProgress:
    with transaction.atomic():
        trial = Trial.objects.select_for_update().get(pk=trial.pk)
        record = _decide(_lock_pending(trial, department), Status.APPROVED, user)

        audit.append(
            AuditAction.PROGRESS_APPROVED,
            user,
            trial=trial,
            department=department,
            remarks=remarks,
            details={"progress_id": record.id, "attempt": record.attempt},
        )
        _advance(trial, user)

    logger.info("Progress approved trial=%s department=%s by %s", trial.pk, department.code, user)
    return record


def reject(trial: Trial, department: Department, user, remarks: str = "") -> DepartmentProgress:
    with transaction.atomic():
        trial = Trial.objects.select_for_update().get(pk=trial.pk)
        record = _decide(_lock_pending(trial, department), Status.REJECTED, user)

        audit.append(
            AuditAction.PROGRESS_REJECTED,
            user,
            trial=trial,
            department=department,
            remarks=remarks,
            details={"progress_id": record.id, "attempt": record.attempt},
        )

    logger.info("Progress rejected trial=%s department=%s by %s", trial.pk, department.code, user)
    return record


# ===============================================================
# Queries
# ===============================================================

def progress_for_trial(trial: Trial) -> QuerySet:
    return (
        DepartmentProgress.objects.filter(trial=trial)
        .select_related("department", "submitted_by", "decided_by")
        .order_by("submitted_at", "id")
    )


def pending_queryset(username: str) -> QuerySet:
    """
    Pending records ``username`` may see: their own submissions, every
    pending record of a department they head, and everything for
    Methods/Administration.
    """
    qs = (
        DepartmentProgress.objects.filter(approval_status=Status.PENDING)
        .exclude(trial__status=Trial.Status.DELETED)
        .select_related("trial", "department")
        .order_by("-submitted_at", "-id")
    )

    user = get_user_model().objects.filter(username=username).first() if username else None
    if user is not None and global_roles(user):
        return qs

    visible = Q(username=username)
    if user is not None:
        heads = hod_department_ids(user)
        if heads:
            visible |= Q(department_id__in=heads)

    return qs.filter(visible)


def list_pending(username: str) -> List[Dict[str, Any]]:
    return [
        {
            "id": p.id,
            "trial_id": p.trial_id,
            "department_id": p.department_id,
            "department_name": p.department.name,
            "section": p.department.section or None,
            "attempt": p.attempt,
            "username": p.username,
            "approval_status": p.approval_status,
            "remarks": p.remarks,
            "submitted_at": p.submitted_at,
            "part_name": p.trial.part_name,
            "pattern_code": p.trial.pattern_code,
            "disa": p.trial.disa,
            "date_of_sampling": p.trial.date_of_sampling,
        }
        for p in pending_queryset(username)
    ]
