# trials_core/permissions.py
from __future__ import annotations

from typing import Optional, Set

from rest_framework.permissions import SAFE_METHODS, BasePermission

from trials_core.models import Department, UserRole
from trials_core.workflows import GLOBAL_ROLES, normalize_role, role_allows
from trials_core.workflows.errors import DepartmentAuthorizationError


# ------------------------------------------------------------------
# Role resolution
# ------------------------------------------------------------------
def _is_authenticated(user) -> bool:
    return bool(user and getattr(user, "is_authenticated", False))


def global_roles(user) -> Set[str]:
    """
    Cross-department roles held by ``user``. Superusers count as ADMIN.
    """
    if not _is_authenticated(user):
        return set()

    roles = {
        normalize_role(r)
        for r in UserRole.objects.filter(user=user).values_list("role", flat=True)
    }
    out = roles & GLOBAL_ROLES
    if user.is_superuser:
        out.add("ADMIN")
    return out


def department_roles(user, department: Optional[Department]) -> Set[str]:
    if not _is_authenticated(user) or department is None:
        return set()

    return {
        normalize_role(r)
        for r in UserRole.objects.filter(user=user, department=department).values_list(
            "role", flat=True
        )
    }


def hod_department_ids(user) -> Set[int]:
    if not _is_authenticated(user):
        return set()
    return {
        dept_id
        for dept_id, role in UserRole.objects.filter(user=user).values_list("department_id", "role")
        if normalize_role(role) == "HOD"
    }


def primary_department(user) -> Optional[Department]:
    """
    The stage department a user works in, used when a request does not name
    one explicitly. None when the user has zero or several stage roles.
    """
    if not _is_authenticated(user):
        return None

    departments = list(
        Department.objects.filter(
            user_roles__user=user,
            sequence__isnull=False,
            is_active=True,
        ).distinct()[:2]
    )
    if len(departments) == 1:
        return departments[0]
    return None


def can_perform(user, action: str, department: Optional[Department] = None) -> bool:
    if not _is_authenticated(user):
        return False

    for role in global_roles(user):
        if role_allows(action, role, in_department=False):
            return True

    for role in department_roles(user, department):
        if role_allows(action, role, in_department=True):
            return True

    return False


def authorize(user, action: str, department: Optional[Department] = None) -> None:
    """
    Raise DepartmentAuthorizationError unless ``user`` may perform ``action``
    (in ``department`` when the action is department-scoped).
    """
    if can_perform(user, action, department):
        return

    if department is not None:
        raise DepartmentAuthorizationError(
            f"You are not allowed to {action} for department {department.code}."
        )
    raise DepartmentAuthorizationError(f"Your role does not allow '{action}'.")


# ------------------------------------------------------------------
# Permission classes
# ------------------------------------------------------------------
class IsMethodsOrAdmin(BasePermission):
    """
    Read: any authenticated user
    Write: METHODS or ADMIN role (or superuser)
    """

    message = "Only Methods or Administration users may make this change."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not _is_authenticated(user):
            return False

        if request.method in SAFE_METHODS:
            return True

        return bool(global_roles(user))


class IsTrialAdmin(BasePermission):
    message = "Administrator role required."

    def has_permission(self, request, view):
        return "ADMIN" in global_roles(getattr(request, "user", None))
