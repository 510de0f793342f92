# trials_core/tests/conftest.py

from __future__ import annotations

import datetime
import uuid
from typing import Any, Callable, Dict, Optional

import pytest
from django.contrib.auth import authenticate, get_user_model
from rest_framework.test import APIClient

from trials_core.models import Department, Trial, UserRole
from trials_core.workflows import orchestrator, registry

from .helpers import SECTION_SAMPLES, STAGE_SECTIONS


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    _user = None

    def login(self, username: str, password: str, **kwargs) -> bool:  # type: ignore[override]
        user = authenticate(username=username, password=password)
        if not user:
            return False
        self.force_authenticate(user=user)
        self._user = user
        return True

    def logout(self) -> None:  # type: ignore[override]
        # DO NOT call force_authenticate(user=None) here.
        # DRF's force_authenticate(user=None) calls self.logout() internally.
        super().logout()
        self.handler._force_user = None
        self.handler._force_token = None
        self._user = None


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


# ------------------------------------------------------------
# Departments and users
# ------------------------------------------------------------
@pytest.fixture
def departments(db) -> Dict[str, Department]:
    """
    Seeded by migration 0002; keyed by code.
    """
    return {d.code: d for d in Department.objects.all()}


@pytest.fixture
def make_user(db, departments) -> Callable[..., Any]:
    def _factory(
        username: Optional[str] = None,
        *,
        role: Optional[str] = None,
        department: Optional[str] = None,
        email: Optional[str] = None,
        **extra: Any,
    ):
        User = get_user_model()
        name = username or _rand("user")
        user = User.objects.create_user(
            username=name,
            password="pass123",
            email=email if email is not None else f"{name}@example.com",
            **extra,
        )
        if role:
            UserRole.objects.create(user=user, department=departments[department], role=role)
        return user

    return _factory


@pytest.fixture
def methods_user(make_user):
    return make_user("methods", role="METHODS", department="METHODS")


@pytest.fixture
def admin_user(make_user):
    return make_user("trialadmin", role="ADMIN", department="ADMIN")


@pytest.fixture
def sand_operator(make_user):
    return make_user("sand_op", role="OPERATOR", department="SAND")


@pytest.fixture
def sand_hod(make_user):
    return make_user("sand_hod", role="HOD", department="SAND")


@pytest.fixture
def moulding_operator(make_user):
    return make_user("mould_op", role="OPERATOR", department="MOULDING")


@pytest.fixture
def moulding_hod(make_user):
    return make_user("mould_hod", role="HOD", department="MOULDING")


@pytest.fixture
def outsider(make_user):
    return make_user("outsider")


# ------------------------------------------------------------
# Trials
# ------------------------------------------------------------
@pytest.fixture
def trial_fields(departments) -> Callable[..., Dict[str, Any]]:
    def _fields(**overrides: Any) -> Dict[str, Any]:
        data = {
            "part_name": "Bracket",
            "pattern_code": "PT-01",
            "material_grade": "EN-GJS-500-7",
            "initiated_by": "Methods",
            "date_of_sampling": datetime.date(2025, 3, 1),
            "plan_moulds": 10,
            "reason_for_sampling": "New pattern",
            "department": departments["METHODS"],
            "disa": "DISA-1",
            "sample_traceability": "Heat 221",
        }
        data.update(overrides)
        return data

    return _fields


@pytest.fixture
def trial_factory(methods_user, trial_fields) -> Callable[..., Trial]:
    def _factory(*, draft: bool = False, actor=None, **overrides: Any) -> Trial:
        return registry.create_trial(trial_fields(**overrides), actor or methods_user, draft=draft)

    return _factory


@pytest.fixture
def complete_stage(methods_user, departments) -> Callable[..., None]:
    """
    Submit and approve one stage as a Methods user.
    """

    def _complete(trial: Trial, code: str, user=None) -> None:
        actor = user or methods_user
        section = STAGE_SECTIONS[code]
        orchestrator.submit_section(trial.trial_id, section, SECTION_SAMPLES[section], actor)
        orchestrator.approve_department(trial.trial_id, departments[code].id, actor)

    return _complete
