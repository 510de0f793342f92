# trials_core/workflows/audit.py
"""
Audit trail service.

``append`` is the only way rows are written. Entries are immutable once
stored (see AppendOnlyMixin), so reads never need locking.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.db.models import QuerySet

from trials_core.models import AuditAction, AuditEntry, Department, DepartmentProgress, Trial
from trials_core.workflows.sequence import stage_departments

logger = logging.getLogger(__name__)

_VALID_ACTIONS = set(AuditAction.values)


def _actor(user):
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user


def append(
    action: str,
    user=None,
    *,
    trial: Optional[Trial] = None,
    department: Optional[Department] = None,
    remarks: str = "",
    details: Optional[Dict[str, Any]] = None,
) -> AuditEntry:
    if action not in _VALID_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    entry = AuditEntry.objects.create(
        user=_actor(user),
        trial=trial,
        department=department,
        action=action,
        remarks=remarks or "",
        details=details or {},
    )
    logger.debug(
        "Audit %s trial=%s department=%s",
        action,
        trial.pk if trial else None,
        department.code if department else None,
    )
    return entry


def query(
    *,
    trial_id: Optional[str] = None,
    department_id: Optional[int] = None,
    action: Optional[str] = None,
) -> QuerySet:
    qs = AuditEntry.objects.select_related("user", "department", "trial")

    if trial_id:
        qs = qs.filter(trial_id=trial_id)
    if department_id:
        qs = qs.filter(department_id=department_id)
    if action:
        qs = qs.filter(action=action)

    return qs.order_by("-action_timestamp", "-id")


# ===============================================================
# Completion queries
# ===============================================================

def completed_for_department(department: Department) -> List[Dict[str, Any]]:
    """
    Trials whose section for ``department`` has been approved, newest
    approval first. One row per trial.
    """
    entries = (
        AuditEntry.objects.filter(
            department=department,
            action=AuditAction.PROGRESS_APPROVED,
            trial__isnull=False,
        )
        .exclude(trial__status=Trial.Status.DELETED)
        .select_related("trial", "department", "user")
        .order_by("-action_timestamp", "-id")
    )

    rows: List[Dict[str, Any]] = []
    seen = set()
    for entry in entries:
        if entry.trial_id in seen:
            continue
        seen.add(entry.trial_id)

        trial = entry.trial
        rows.append(
            {
                "trial_id": trial.trial_id,
                "part_name": trial.part_name,
                "pattern_code": trial.pattern_code,
                "disa": trial.disa,
                "date_of_sampling": trial.date_of_sampling,
                "status": trial.status,
                "department_id": department.id,
                "department_name": department.name,
                "approved_by": entry.user.get_username() if entry.user else None,
                "remarks": entry.remarks,
                "completed_at": entry.action_timestamp,
            }
        )
    return rows


def completed_trials() -> List[Dict[str, Any]]:
    """
    Trials that have cleared every stage, most recently closed first.
    """
    qs = (
        Trial.objects.filter(status=Trial.Status.CLOSED)
        .select_related("department")
        .order_by("-closed_at", "-trial_id")
    )
    return [
        {
            "trial_id": t.trial_id,
            "part_name": t.part_name,
            "pattern_code": t.pattern_code,
            "disa": t.disa,
            "date_of_sampling": t.date_of_sampling,
            "department_name": t.department.name,
            "completed_at": t.closed_at,
        }
        for t in qs
    ]


def is_trial_complete(trial: Trial) -> bool:
    stage_ids = {d.id for d in stage_departments()}
    if not stage_ids:
        return False

    approved = set(
        DepartmentProgress.objects.filter(
            trial=trial,
            approval_status=DepartmentProgress.ApprovalStatus.APPROVED,
            department_id__in=stage_ids,
        ).values_list("department_id", flat=True)
    )
    return approved == stage_ids
