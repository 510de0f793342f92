# trials_core/workflows/sequence.py
"""
Department stage ordering.

The workflow order is data: active departments with a ``sequence`` value,
ascending. Nothing here hard-codes department codes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from trials_core.models import Department


def stage_departments() -> List[Department]:
    return list(
        Department.objects.filter(is_active=True, sequence__isnull=False).order_by("sequence")
    )


def first_stage() -> Optional[Department]:
    return (
        Department.objects.filter(is_active=True, sequence__isnull=False)
        .order_by("sequence")
        .first()
    )


def next_stage(department: Department) -> Optional[Department]:
    """
    Stage after ``department``, or None when it is the last one.
    Raises ValueError for departments that are not stages.
    """
    if department.sequence is None:
        raise ValueError(f"{department.code} is not a workflow stage.")

    return (
        Department.objects.filter(is_active=True, sequence__gt=department.sequence)
        .order_by("sequence")
        .first()
    )


def is_last_stage(department: Department) -> bool:
    return department.sequence is not None and next_stage(department) is None


def stage_definition() -> List[Dict[str, Any]]:
    """
    JSON-serializable stage list for UI and the workflow endpoint.
    """
    return [
        {
            "id": d.id,
            "code": d.code,
            "name": d.name,
            "sequence": d.sequence,
            "section": d.section or None,
        }
        for d in stage_departments()
    ]
