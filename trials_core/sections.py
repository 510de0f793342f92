# trials_core/sections.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from trials_core.models import (
    DimensionalInspection,
    MachineShopInspection,
    MetallurgicalInspection,
    MouldCorrection,
    PouringDetails,
    SandProperties,
    VisualInspection,
)
from trials_core.workflows.errors import MalformedPayloadError

logger = logging.getLogger(__name__)


# ===============================================================
# Section definitions
# ===============================================================
# Semantics:
# - model       : section payload model (one row per trial)
# - department  : Department.code that owns the section
# - composite   : JSON columns and the fallback used when the stored
#                 value is missing or cannot be decoded
# - grids       : composite columns holding a dynamic column grid
#
# Ordering of this dict is the report ordering.
# ===============================================================

def empty_grid() -> Dict[str, list]:
    return {"columns": [], "rows": []}


SECTION_DEFINITIONS: Dict[str, Dict[str, Any]] = {
    "sand_properties": {
        "title": "Sand Properties",
        "model": SandProperties,
        "department": "SAND",
        "composite": {},
        "grids": (),
    },
    "mould_correction": {
        "title": "Moulding",
        "model": MouldCorrection,
        "department": "MOULDING",
        "composite": {},
        "grids": (),
    },
    "pouring_details": {
        "title": "Pouring Details",
        "model": PouringDetails,
        "department": "MELTING",
        "composite": {
            "composition": dict,
            "inoculation": dict,
            "other_remarks": dict,
        },
        "grids": (),
    },
    "visual_inspection": {
        "title": "Visual Inspection",
        "model": VisualInspection,
        "department": "FETTLING",
        "composite": {"inspections": empty_grid},
        "grids": ("inspections",),
    },
    "dimensional_inspection": {
        "title": "Dimensional Inspection",
        "model": DimensionalInspection,
        "department": "QUALITY",
        "composite": {"inspections": empty_grid},
        "grids": ("inspections",),
    },
    "machine_shop": {
        "title": "Machine Shop Inspection",
        "model": MachineShopInspection,
        "department": "MACHINE_SHOP",
        "composite": {"inspections": empty_grid},
        "grids": ("inspections",),
    },
    "metallurgical_inspection": {
        "title": "Metallurgical Inspection",
        "model": MetallurgicalInspection,
        "department": "METALLURGY",
        "composite": {
            "mechanical_properties": list,
            "impact_strength": list,
            "hardness": list,
            "ndt_inspection": list,
            "microstructure": list,
        },
        "grids": (),
    },
}

# Composite fields on the trial card itself.
TRIAL_COMPOSITE_FIELDS: Dict[str, Any] = {
    "chemical_composition": dict,
    "tensile": dict,
}


def section_keys() -> List[str]:
    return list(SECTION_DEFINITIONS)


def get_section(key: str) -> Optional[Dict[str, Any]]:
    return SECTION_DEFINITIONS.get((key or "").strip().lower())


def section_for_department(department_code: str) -> Optional[str]:
    code = (department_code or "").strip().upper()
    for key, definition in SECTION_DEFINITIONS.items():
        if definition["department"] == code:
            return key
    return None


def composite_fallback(key: str, field: str) -> Any:
    factory = SECTION_DEFINITIONS[key]["composite"][field]
    return factory()


# ===============================================================
# Composite field parsing
# ===============================================================

def parse_composite(value: Any, field: str = "") -> Any:
    """
    Strict decode of a stored composite value.

    Dicts and lists pass through. Strings (legacy double-encoded JSON) are
    decoded. Returns None for missing or blank values.
    Raises MalformedPayloadError if a string is not valid JSON or the value
    has an unsupported type.
    """
    if value is None:
        return None

    if isinstance(value, (dict, list)):
        return value

    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        try:
            return json.loads(trimmed)
        except (TypeError, ValueError) as exc:
            raise MalformedPayloadError(field, value) from exc

    raise MalformedPayloadError(field, value)


def safe_parse(value: Any, fallback: Any, field: str = "") -> Tuple[Any, bool]:
    """
    Lenient decode used by the report.

    Returns ``(parsed, degraded)``. ``degraded`` is True only when a stored
    value existed but could not be decoded or decoded to a different
    container type than ``fallback``. ``fallback`` is returned in its place.
    """
    try:
        parsed = parse_composite(value, field)
    except MalformedPayloadError:
        logger.warning("Malformed composite field %s; using fallback", field or "<unknown>")
        return fallback, True

    if parsed is None:
        return fallback, False
    if fallback is not None and not isinstance(parsed, type(fallback)):
        logger.warning("Composite field %s has type %s; using fallback", field or "<unknown>",
                       type(parsed).__name__)
        return fallback, True
    return parsed, False


# ===============================================================
# Dynamic grid validation
# ===============================================================

def grid_errors(value: Any) -> List[str]:
    """
    Validate a dynamic column grid:
      {"columns": ["Cavity 1", ...], "rows": [[v1, ...], ...]}

    Every row must have exactly one value per column. Column names must be
    non-empty and unique.
    """
    if value in (None, {}):
        return []

    if not isinstance(value, dict):
        return ["Grid must be an object with 'columns' and 'rows'."]

    columns = value.get("columns", [])
    rows = value.get("rows", [])
    errors: List[str] = []

    if not isinstance(columns, list):
        return ["'columns' must be a list."]
    if not isinstance(rows, list):
        return ["'rows' must be a list."]

    names = [str(c).strip() if c is not None else "" for c in columns]
    if any(not n for n in names):
        errors.append("Column names must not be empty.")
    if len(set(names)) != len(names):
        errors.append("Column names must be unique.")

    for index, row in enumerate(rows):
        if not isinstance(row, list):
            errors.append(f"Row {index} must be a list.")
            continue
        if len(row) != len(columns):
            errors.append(
                f"Row {index} has {len(row)} values but there are {len(columns)} columns."
            )

    return errors
