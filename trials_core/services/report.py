# trials_core/services/report.py
"""
Full trial report.

Read-only. Each section is loaded on its own; absent sections are left
out and undecodable composite fields degrade to their declared fallback
instead of failing the whole report.
"""

from __future__ import annotations

from typing import Any, Dict, List

from trials_core.models import DepartmentProgress, Trial
from trials_core.sections import SECTION_DEFINITIONS, TRIAL_COMPOSITE_FIELDS, safe_parse
from trials_core.serializers import (
    SECTION_SERIALIZERS,
    DepartmentProgressSerializer,
    TrialSerializer,
)
from trials_core.workflows.registry import get_trial
from trials_core.workflows.sequence import stage_departments


def _stage_summary(trial: Trial, progress: List[DepartmentProgress]) -> List[Dict[str, Any]]:
    latest: Dict[int, DepartmentProgress] = {}
    for record in progress:
        latest[record.department_id] = record

    out = []
    for department in stage_departments():
        record = latest.get(department.id)
        approved = record is not None and record.approval_status == DepartmentProgress.ApprovalStatus.APPROVED
        out.append(
            {
                "id": department.id,
                "code": department.code,
                "name": department.name,
                "sequence": department.sequence,
                "section": department.section or None,
                "status": record.approval_status if record else None,
                "completed_at": record.completed_at.isoformat() if approved else None,
                "is_current": trial.current_department_id == department.id,
            }
        )
    return out


def _trial_card(trial: Trial, degraded: List[Dict[str, str]]) -> Dict[str, Any]:
    card = dict(TrialSerializer(trial).data)
    for field, factory in TRIAL_COMPOSITE_FIELDS.items():
        value, bad = safe_parse(getattr(trial, field), factory(), field)
        card[field] = value
        if bad:
            degraded.append({"section": "trial", "field": field})
    return card


def _section(trial: Trial, key: str, degraded: List[Dict[str, str]]):
    definition = SECTION_DEFINITIONS[key]
    instance = definition["model"].objects.filter(trial=trial).first()
    if instance is None:
        return None

    data = dict(SECTION_SERIALIZERS[key](instance).data)
    for field, factory in definition["composite"].items():
        value, bad = safe_parse(getattr(instance, field), factory(), field)
        data[field] = value
        if bad:
            degraded.append({"section": key, "field": field})
    return data


def build_full_report(trial_id: str, *, include_deleted: bool = False) -> Dict[str, Any]:
    """
    Assemble the trial card, progress history, stage summary and every
    present section into one document.

    Raises NotFoundError for unknown trials and, unless ``include_deleted``,
    for trials in the recycle bin.
    """
    trial = get_trial(trial_id, include_deleted=include_deleted)

    progress = list(
        DepartmentProgress.objects.filter(trial=trial)
        .select_related("department", "decided_by")
        .order_by("submitted_at", "id")
    )
    degraded: List[Dict[str, str]] = []

    report: Dict[str, Any] = {
        "trial_id": trial.trial_id,
        "trial": _trial_card(trial, degraded),
        "progress": list(DepartmentProgressSerializer(progress, many=True).data),
        "departments": _stage_summary(trial, progress),
    }

    for key in SECTION_DEFINITIONS:
        section = _section(trial, key, degraded)
        if section is not None:
            report[key] = section

    report["degraded"] = degraded
    return report
