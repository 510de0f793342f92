# trials_core/workflows/__init__.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set


# ===============================================================
# Canonical workflow definitions
# ===============================================================

TRIAL_STATES: Set[str] = {
    "draft",
    "active",
    "closed",
    "deleted",
}

# "deleted" can go back to whatever the trial was before (restore).
TRIAL_TRANSITIONS: Dict[str, Set[str]] = {
    "draft": {"active", "deleted"},
    "active": {"closed", "deleted"},
    "closed": {"deleted"},
    "deleted": {"draft", "active", "closed"},
}

PROGRESS_STATES: Set[str] = {
    "pending",
    "approved",
    "rejected",
}

# A rejected department resubmits through a NEW pending record, so both
# decisions are terminal for the record itself.
PROGRESS_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"approved", "rejected"},
    "approved": set(),
    "rejected": set(),
}


# ===============================================================
# Role normalization and permission rules
# ===============================================================

ROLE_ALIASES: Dict[str, str] = {
    "ADMIN": "ADMIN",
    "ADMINISTRATOR": "ADMIN",
    "SUPERUSER": "ADMIN",
    "METHODS": "METHODS",
    "METHOD": "METHODS",
    "HOD": "HOD",
    "HEAD": "HOD",
    "HEAD_OF_DEPARTMENT": "HOD",
    "OPERATOR": "OPERATOR",
    "USER": "OPERATOR",
    "INSPECTOR": "OPERATOR",
    "READONLY": "READONLY",
    "VIEWER": "READONLY",
}

# Roles that act for every department regardless of assignment.
GLOBAL_ROLES: Set[str] = {"METHODS", "ADMIN"}

ACTION_ROLES: Dict[str, Set[str]] = {
    "submit": {"OPERATOR", "HOD"},
    "approve": {"HOD"},
    "reject": {"HOD"},
    # Trial card management belongs to Methods/Administration only.
    "create_trial": set(),
    "update_trial": set(),
    "delete_trial": set(),
    "restore_trial": set(),
    "permanent_delete": set(),
    "manage_master_list": set(),
}

# Actions that are never granted by GLOBAL_ROLES as a whole.
ADMIN_ONLY_ACTIONS: Set[str] = {"permanent_delete"}


def normalize_state(value: str) -> str:
    return str(value or "").strip().lower()


def normalize_role(value: str) -> str:
    raw = str(value or "").strip().upper().replace(" ", "_")
    return ROLE_ALIASES.get(raw, raw or "READONLY")


def _transitions_for_kind(kind: str) -> Dict[str, Set[str]]:
    k = normalize_state(kind)
    if k == "trial":
        return TRIAL_TRANSITIONS
    if k == "progress":
        return PROGRESS_TRANSITIONS
    return {}


def _states_for_kind(kind: str) -> Set[str]:
    k = normalize_state(kind)
    if k == "trial":
        return TRIAL_STATES
    if k == "progress":
        return PROGRESS_STATES
    return set()


def role_allows(action: str, role: str, *, in_department: bool) -> bool:
    """
    Centralized role gating. Keep policy decisions here only.

    ``in_department`` is True when the role was granted for the department
    the action targets. Global roles ignore it.
    """
    r = normalize_role(role)

    if r == "READONLY":
        return False

    if action in ADMIN_ONLY_ACTIONS:
        return r == "ADMIN"

    if r in GLOBAL_ROLES:
        return True

    if not in_department:
        return False

    return r in ACTION_ROLES.get(action, set())


# ===============================================================
# Public workflow API
# ===============================================================

def validate_transition(kind: str, current: Optional[str], target: Optional[str]) -> None:
    """
    Raises ValueError if the transition is invalid for the canonical workflow.
    """
    states = _states_for_kind(kind)
    trans = _transitions_for_kind(kind)

    if not states or not trans:
        raise ValueError(f"Unknown workflow kind: {kind}")

    cur = normalize_state(current)
    tgt = normalize_state(target)

    if cur not in states:
        raise ValueError(f"Unknown {normalize_state(kind)} state: {cur}")
    if tgt not in states:
        raise ValueError(f"Unknown {normalize_state(kind)} state: {tgt}")

    if tgt not in trans.get(cur, set()):
        raise ValueError(f"Invalid {normalize_state(kind)} transition: {cur} -> {tgt}")


def allowed_next_states(kind: str, current: str) -> List[str]:
    trans = _transitions_for_kind(kind)
    if not trans:
        return []
    return sorted(trans.get(normalize_state(current), set()))


def required_roles(action: str) -> List[str]:
    """
    Roles that may perform ``action``. Department roles must also be held
    in the target department.
    """
    if action not in ACTION_ROLES:
        raise ValueError(f"Unknown workflow action: {action}")
    if action in ADMIN_ONLY_ACTIONS:
        return ["ADMIN"]
    return sorted(ACTION_ROLES[action] | GLOBAL_ROLES)


def workflow_definition(kind: Optional[str] = None) -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for UI.
    """
    def _one(k: str) -> Dict[str, Any]:
        kk = normalize_state(k)
        trans = _transitions_for_kind(kk)
        if not trans:
            raise ValueError(f"Unsupported workflow kind: {k}")
        return {
            "kind": kk,
            "states": sorted(_states_for_kind(kk)),
            "transitions": {state: sorted(nxt) for state, nxt in trans.items()},
        }

    if kind is None:
        return {"trial": _one("trial"), "progress": _one("progress")}
    return _one(kind)


__all__ = [
    "TRIAL_STATES",
    "TRIAL_TRANSITIONS",
    "PROGRESS_STATES",
    "PROGRESS_TRANSITIONS",
    "GLOBAL_ROLES",
    "normalize_state",
    "normalize_role",
    "role_allows",
    "validate_transition",
    "allowed_next_states",
    "required_roles",
    "workflow_definition",
]
