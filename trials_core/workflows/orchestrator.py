# trials_core/workflows/orchestrator.py
"""
Authoritative entry point for department submissions and decisions.

Each operation authorizes, validates eligibility against the ledger and
writes section data, progress and audit rows in a single transaction.
Never write sections or progress records directly from views.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from django.db import transaction

from trials_core.models import AuditAction, Department, DepartmentProgress, Trial
from trials_core.permissions import authorize
from trials_core.sections import get_section
from trials_core.serializers import SECTION_SERIALIZERS
from trials_core.workflows import audit, ledger
from trials_core.workflows.errors import (
    AlreadyApprovedError,
    DuplicatePendingError,
    NotFoundError,
    OutOfSequenceError,
    TrialNotActiveError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ===============================================================
# Helpers
# ===============================================================

def _section_department(section_key: str) -> Tuple[Dict[str, Any], Department]:
    definition = get_section(section_key)
    if definition is None:
        raise ValidationError({"section": f"Unknown section: {section_key}"})

    department = Department.objects.filter(code=definition["department"], is_active=True).first()
    if department is None:
        raise ValidationError(
            {"section": f"No active department submits section {section_key}."}
        )
    return definition, department


def _get_department(department_id) -> Department:
    try:
        return Department.objects.get(pk=department_id, is_active=True)
    except (Department.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Department {department_id} not found.")


def _lock_active_trial(trial_id: str) -> Trial:
    trial = (
        Trial.objects.select_for_update()
        .filter(trial_id=trial_id)
        .exclude(status=Trial.Status.DELETED)
        .first()
    )
    if trial is None:
        raise NotFoundError(f"Trial {trial_id} not found.")
    if trial.status != Trial.Status.ACTIVE:
        raise TrialNotActiveError(f"Trial {trial_id} is {trial.status}.")
    return trial


# ===============================================================
# Submission
# ===============================================================

def submit_section(
    trial_id: str,
    section_key: str,
    payload: Optional[Dict[str, Any]],
    user,
    remarks: str = "",
) -> DepartmentProgress:
    """
    Save a department's section and open a pending progress record.
    Nothing is written unless every step succeeds.
    """
    section_key = (section_key or "").strip().lower()
    definition, department = _section_department(section_key)
    authorize(user, "submit", department)

    with transaction.atomic():
        trial = _lock_active_trial(trial_id)

        if trial.current_department_id != department.id:
            current = trial.current_department.code if trial.current_department else None
            raise OutOfSequenceError(
                f"Trial {trial_id} is at {current}, not {department.code}."
            )
        if ledger.is_approved(trial, department):
            raise AlreadyApprovedError()
        if ledger.has_pending(trial, department):
            raise DuplicatePendingError()

        serializer = SECTION_SERIALIZERS[section_key](data=payload or {})
        serializer.is_valid(raise_exception=True)

        model = definition["model"]
        model.objects.update_or_create(
            trial=trial,
            defaults={**serializer.validated_data, "submitted_by": user},
        )

        audit.append(
            AuditAction.SECTION_SAVED,
            user,
            trial=trial,
            department=department,
            details={"section": section_key},
        )
        record = ledger.submit(trial, department, user, remarks)

    logger.info("Section %s submitted for %s by %s", section_key, trial_id, user)
    return record


# ===============================================================
# Decisions
# ===============================================================

def _decide(trial_id: str, department_id, user, remarks: str, action: str) -> DepartmentProgress:
    department = _get_department(department_id)
    authorize(user, action, department)

    with transaction.atomic():
        trial = _lock_active_trial(trial_id)
        if action == "approve":
            return ledger.approve(trial, department, user, remarks)
        return ledger.reject(trial, department, user, remarks)


def approve_department(trial_id: str, department_id, user, remarks: str = "") -> DepartmentProgress:
    return _decide(trial_id, department_id, user, remarks, "approve")


def reject_department(trial_id: str, department_id, user, remarks: str = "") -> DepartmentProgress:
    return _decide(trial_id, department_id, user, remarks, "reject")
