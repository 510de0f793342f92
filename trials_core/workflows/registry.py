# trials_core/workflows/registry.py
"""
Trial registry.

Owns the trial card lifecycle: creation with atomic id allocation, card
edits, draft activation, soft delete / restore and permanent removal.
All status changes go through here; the model write guard rejects any
other path.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date

from trials_core.models import AuditAction, Department, Trial, TrialSequence
from trials_core.permissions import authorize
from trials_core.services import master_list
from trials_core.workflows import validate_transition
from trials_core.workflows import audit
from trials_core.workflows.errors import (
    NotFoundError,
    TrialNotActiveError,
    ValidationError,
    WorkflowConflict,
)
from trials_core.workflows.sequence import first_stage

logger = logging.getLogger(__name__)


MANDATORY_FIELDS = (
    "part_name",
    "pattern_code",
    "material_grade",
    "initiated_by",
    "date_of_sampling",
    "plan_moulds",
    "reason_for_sampling",
    "department",
    "disa",
    "sample_traceability",
)

OPTIONAL_FIELDS = (
    "actual_moulds",
    "chemical_composition",
    "tensile",
    "remarks",
)

# Card fields editable after creation. part_name is part of the id.
EDITABLE_FIELDS = tuple(f for f in MANDATORY_FIELDS if f != "part_name") + OPTIONAL_FIELDS

PROTECTED_FIELDS = {
    "trial_id",
    "status",
    "current_department",
    "status_before_delete",
    "deleted_at",
    "deleted_by",
    "closed_at",
    "created_by",
}

_COUNTER_RETRIES = 3


# ===============================================================
# Helpers
# ===============================================================

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _resolve_department(value: Any) -> Department:
    if isinstance(value, Department):
        return value

    qs = Department.objects.filter(is_active=True)
    try:
        if isinstance(value, int) or str(value).strip().isdecimal():
            return qs.get(pk=int(value))
        return qs.get(code=str(value).strip().upper())
    except Department.DoesNotExist:
        raise ValidationError({"department": f"Unknown department: {value}"})


def _coerce(fields: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(fields)
    if "department" in out and not _is_blank(out["department"]):
        out["department"] = _resolve_department(out["department"])
    if isinstance(out.get("date_of_sampling"), str):
        parsed = parse_date(out["date_of_sampling"].strip())
        if parsed is None:
            raise ValidationError({"date_of_sampling": "Enter a valid date (YYYY-MM-DD)."})
        out["date_of_sampling"] = parsed
    for key in ("part_name", "pattern_code", "material_grade", "initiated_by", "disa",
                "sample_traceability"):
        if isinstance(out.get(key), str):
            out[key] = out[key].strip()
    return out


def _fill_master_targets(data: Dict[str, Any]) -> None:
    """
    Copy target chemistry and tensile from the active master card for the
    pattern code into fields the caller left out or empty.
    """
    empty = [name for name in ("chemical_composition", "tensile") if not data.get(name)]
    if not empty:
        return

    targets = master_list.trial_targets(data.get("pattern_code", ""))
    for name in empty:
        if name in targets:
            data[name] = targets[name]
        elif data.get(name) is None:
            data.pop(name, None)


def _reject_unknown(fields: Iterable[str], allowed: Iterable[str]) -> None:
    allowed = set(allowed)
    protected = sorted(set(fields) & PROTECTED_FIELDS)
    if protected:
        raise ValidationError({name: "This field cannot be set directly." for name in protected})

    unknown = sorted(set(fields) - allowed)
    if unknown:
        raise ValidationError({name: "Unknown trial field." for name in unknown})


def _suffix_pattern(part_name: str):
    return re.compile(rf"^{re.escape(part_name)}-(\d+)$")


def _highest_existing_suffix(part_name: str) -> int:
    """
    Largest numeric suffix already used for ``part_name``. Covers trials
    imported before the counter row existed.
    """
    pattern = _suffix_pattern(part_name)
    highest = 0
    for trial_id in Trial.objects.filter(trial_id__startswith=f"{part_name}-").values_list(
        "trial_id", flat=True
    ):
        match = pattern.match(trial_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def _allocate_trial_id(part_name: str) -> str:
    """
    Increment the per-part counter under row lock. Must run inside the
    caller's transaction so the number is released on rollback.
    """
    for attempt in range(1, _COUNTER_RETRIES + 1):
        try:
            with transaction.atomic():
                counter = (
                    TrialSequence.objects.select_for_update()
                    .filter(part_name=part_name)
                    .first()
                )
                if counter is None:
                    counter = TrialSequence.objects.create(
                        part_name=part_name,
                        last_value=_highest_existing_suffix(part_name),
                    )

                value = counter.last_value + 1
                while Trial.objects.filter(trial_id=f"{part_name}-{value}").exists():
                    value += 1

                counter.last_value = value
                counter.save(update_fields=["last_value"])
                return f"{part_name}-{value}"
        except IntegrityError:
            # Another transaction inserted the counter row first.
            logger.info("Trial counter race for %s (attempt %s)", part_name, attempt)

    raise WorkflowConflict(f"Could not allocate a trial id for {part_name}; try again.")


def _lock_trial(trial_id: str, *, include_deleted: bool = False) -> Trial:
    qs = Trial.objects.select_for_update().filter(trial_id=trial_id)
    if not include_deleted:
        qs = qs.exclude(status=Trial.Status.DELETED)
    trial = qs.first()
    if trial is None:
        raise NotFoundError(f"Trial {trial_id} not found.")
    return trial


# ===============================================================
# Queries
# ===============================================================

def get_trial(trial_id: str, *, include_deleted: bool = False) -> Trial:
    qs = Trial.objects.select_related("department", "current_department")
    if not include_deleted:
        qs = qs.exclude(status=Trial.Status.DELETED)
    trial = qs.filter(trial_id=trial_id).first()
    if trial is None:
        raise NotFoundError(f"Trial {trial_id} not found.")
    return trial


def list_trials(*, include_deleted: bool = False) -> QuerySet:
    qs = Trial.objects.select_related("department", "current_department")
    if not include_deleted:
        qs = qs.exclude(status=Trial.Status.DELETED)
    return qs


def list_deleted_trials() -> QuerySet:
    return (
        Trial.objects.filter(status=Trial.Status.DELETED)
        .select_related("department", "deleted_by")
        .order_by("-deleted_at", "-trial_id")
    )


def peek_next_trial_id(part_name: str) -> str:
    """
    Preview of the id the next creation would get. Allocates nothing, so
    the real id may differ under concurrent creation.
    """
    part_name = (part_name or "").strip()
    if not part_name:
        raise ValidationError({"part_name": "This field is required."})

    counter = TrialSequence.objects.filter(part_name=part_name).values_list(
        "last_value", flat=True
    ).first()
    base = counter if counter is not None else _highest_existing_suffix(part_name)
    return f"{part_name}-{base + 1}"


# ===============================================================
# Mutations
# ===============================================================

def create_trial(fields: Dict[str, Any], actor, *, draft: bool = False) -> Trial:
    authorize(actor, "create_trial")

    _reject_unknown(fields, MANDATORY_FIELDS + OPTIONAL_FIELDS)

    missing = [name for name in MANDATORY_FIELDS if _is_blank(fields.get(name))]
    if missing:
        raise ValidationError({name: "This field is required." for name in missing})

    data = _coerce(fields)
    part_name = data["part_name"]
    if "/" in part_name:
        raise ValidationError({"part_name": "Part name may not contain '/'."})
    _fill_master_targets(data)

    status = Trial.Status.DRAFT if draft else Trial.Status.ACTIVE

    with transaction.atomic():
        current = None
        if not draft:
            current = first_stage()
            if current is None:
                raise ValidationError({"department": "No workflow stages are configured."})

        trial_id = _allocate_trial_id(part_name)
        trial = Trial.objects.create(
            trial_id=trial_id,
            status=status,
            current_department=current,
            created_by=actor,
            **data,
        )

        audit.append(
            AuditAction.TRIAL_CREATED,
            actor,
            trial=trial,
            department=trial.department,
            details={"status": status},
        )

    logger.info("Trial %s created (%s) by %s", trial_id, status, actor)
    return trial


def activate_trial(trial_id: str, actor) -> Trial:
    authorize(actor, "create_trial")

    with transaction.atomic():
        trial = _lock_trial(trial_id)
        if trial.status != Trial.Status.DRAFT:
            raise ValidationError({"status": f"Only draft trials can be activated (is {trial.status})."})

        validate_transition("trial", trial.status, Trial.Status.ACTIVE)

        current = first_stage()
        if current is None:
            raise ValidationError({"department": "No workflow stages are configured."})

        trial.status = Trial.Status.ACTIVE
        trial.current_department = current
        trial.save(update_fields=["status", "current_department", "updated_at"], _workflow_bypass=True)

        audit.append(AuditAction.TRIAL_ACTIVATED, actor, trial=trial, department=current)

    logger.info("Trial %s activated by %s", trial_id, actor)
    return trial


def update_trial(trial_id: str, fields: Dict[str, Any], actor) -> Trial:
    authorize(actor, "update_trial")
    _reject_unknown(fields, EDITABLE_FIELDS + ("part_name",))

    if "part_name" in fields:
        raise ValidationError({"part_name": "Part name cannot change after creation."})

    blank = [n for n in MANDATORY_FIELDS if n in fields and _is_blank(fields[n])]
    if blank:
        raise ValidationError({name: "This field may not be blank." for name in blank})

    data = _coerce(fields)

    with transaction.atomic():
        trial = _lock_trial(trial_id, include_deleted=True)
        if trial.status in (Trial.Status.CLOSED, Trial.Status.DELETED):
            raise TrialNotActiveError(f"Trial {trial_id} is {trial.status} and cannot be edited.")

        changed: List[str] = []
        for name, value in data.items():
            if getattr(trial, name) != value:
                setattr(trial, name, value)
                changed.append(name)

        if not changed:
            return trial

        trial.save(update_fields=changed + ["updated_at"])
        audit.append(
            AuditAction.TRIAL_UPDATED,
            actor,
            trial=trial,
            details={"fields": sorted(changed)},
        )

    return trial


def soft_delete(trial_id: str, actor) -> Trial:
    """
    Move a trial to the recycle bin. Repeating the call is a no-op.
    """
    authorize(actor, "delete_trial")

    with transaction.atomic():
        trial = _lock_trial(trial_id, include_deleted=True)
        if trial.status == Trial.Status.DELETED:
            return trial

        previous = trial.status
        validate_transition("trial", previous, Trial.Status.DELETED)

        trial.status_before_delete = previous
        trial.status = Trial.Status.DELETED
        trial.deleted_at = timezone.now()
        trial.deleted_by = actor
        trial.save(
            update_fields=["status", "status_before_delete", "deleted_at", "deleted_by", "updated_at"],
            _workflow_bypass=True,
        )

        audit.append(
            AuditAction.TRIAL_DELETED,
            actor,
            trial=trial,
            details={"previous_status": previous},
        )

    logger.info("Trial %s soft-deleted by %s", trial_id, actor)
    return trial


def restore(trial_id: str, actor) -> Trial:
    """
    Bring a trial back from the recycle bin with the status it had before.
    Restoring a trial that is not deleted is a no-op.
    """
    authorize(actor, "restore_trial")

    with transaction.atomic():
        trial = _lock_trial(trial_id, include_deleted=True)
        if trial.status != Trial.Status.DELETED:
            return trial

        target = trial.status_before_delete or Trial.Status.ACTIVE
        validate_transition("trial", trial.status, target)

        trial.status = target
        trial.status_before_delete = ""
        trial.deleted_at = None
        trial.deleted_by = None
        trial.save(
            update_fields=["status", "status_before_delete", "deleted_at", "deleted_by", "updated_at"],
            _workflow_bypass=True,
        )

        audit.append(
            AuditAction.TRIAL_RESTORED,
            actor,
            trial=trial,
            details={"restored_status": target},
        )

    logger.info("Trial %s restored to %s by %s", trial_id, target, actor)
    return trial


def permanently_delete(trial_id: str, actor) -> str:
    """
    Remove a recycled trial with its progress, audit and section rows.
    Cannot be undone. The trial id is never reissued because the part
    counter keeps its value.
    """
    authorize(actor, "permanent_delete")

    with transaction.atomic():
        trial = _lock_trial(trial_id, include_deleted=True)
        if trial.status != Trial.Status.DELETED:
            raise WorkflowConflict("Only trials in the recycle bin can be permanently deleted.")

        details = {
            "trial_id": trial.trial_id,
            "part_name": trial.part_name,
            "pattern_code": trial.pattern_code,
        }
        trial.delete()

        audit.append(
            AuditAction.TRIAL_PERMANENTLY_DELETED,
            actor,
            remarks=f"Trial {trial_id} permanently deleted",
            details=details,
        )

    logger.warning("Trial %s permanently deleted by %s", trial_id, actor)
    return trial_id
