# trials_core/views_workflow_api.py

from __future__ import annotations

from typing import Optional

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, PermissionDenied, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from trials_core.models import Department
from trials_core.permissions import department_roles, global_roles, primary_department
from trials_core.sections import SECTION_DEFINITIONS
from trials_core.serializers import (
    CompletedRowSerializer,
    DecisionSerializer,
    DepartmentProgressSerializer,
    PendingProgressSerializer,
)
from trials_core.workflows import (
    required_roles,
    workflow_definition,
)
from trials_core.workflows import audit, ledger, orchestrator
from trials_core.workflows.sequence import stage_definition


# =============================================================
# Helpers
# =============================================================

def _require_auth(user) -> None:
    """
    Enforce authentication in a way that returns DRF's normal 401/403
    instead of Django login redirects (302) under session-based setups.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise NotAuthenticated("Authentication credentials were not provided.")


def _section_payload(data) -> dict:
    """
    Accepts either ``{"data": {...}, "remarks": "..."}`` or the section
    fields at top level next to ``remarks``.
    """
    if isinstance(data.get("data"), dict):
        return data["data"]
    return {k: v for k, v in data.items() if k not in {"remarks", "progress_remarks"}}


# =============================================================
# API: Submit a department section (AUTHORITATIVE)
# =============================================================

class SectionSubmitView(APIView):
    """
    POST /api/trials/<trial_id>/sections/<section_key>/

    Body:
        { "data": { ...section fields... }, "remarks": "..." }

    Saves the section and opens a pending progress record atomically.
    """
    permission_classes = [AllowAny]

    def post(self, request, trial_id: str, section_key: str):
        _require_auth(request.user)

        payload = request.data or {}
        record = orchestrator.submit_section(
            trial_id,
            section_key,
            _section_payload(payload),
            request.user,
            remarks=str(payload.get("progress_remarks", payload.get("remarks", "")) or ""),
        )
        return Response(DepartmentProgressSerializer(record).data, status=status.HTTP_201_CREATED)


# =============================================================
# API: Approve / reject a department (AUTHORITATIVE)
# =============================================================

class _DecisionView(APIView):
    permission_classes = [AllowAny]
    decision = ""

    def post(self, request, trial_id: str, department_id: int):
        _require_auth(request.user)

        body = DecisionSerializer(data=request.data or {})
        body.is_valid(raise_exception=True)
        remarks = body.validated_data.get("remarks", "")

        if self.decision == "approve":
            record = orchestrator.approve_department(trial_id, department_id, request.user, remarks)
        else:
            record = orchestrator.reject_department(trial_id, department_id, request.user, remarks)

        record.trial.refresh_from_db()
        data = DepartmentProgressSerializer(record).data
        return Response(
            {
                **data,
                "trial_status": record.trial.status,
                "current_department": record.trial.current_department_id,
            }
        )


class DepartmentApproveView(_DecisionView):
    """POST /api/trials/<trial_id>/departments/<department_id>/approve/"""
    decision = "approve"


class DepartmentRejectView(_DecisionView):
    """POST /api/trials/<trial_id>/departments/<department_id>/reject/"""
    decision = "reject"


# =============================================================
# API: Pending / completed queues
# =============================================================

class PendingProgressView(APIView):
    """
    GET /api/progress/pending/?username=<name>

    Defaults to the caller. Only Methods/Administration may look at
    another user's queue.
    """

    @extend_schema(parameters=[OpenApiParameter("username", str, required=False)])
    def get(self, request):
        username = (request.query_params.get("username") or "").strip() or request.user.get_username()

        if username != request.user.get_username() and not global_roles(request.user):
            raise PermissionDenied("You may only view your own pending submissions.")

        rows = ledger.list_pending(username)
        return Response(PendingProgressSerializer(rows, many=True).data)


def _resolve_completed_department(request) -> Department:
    raw: Optional[str] = (request.query_params.get("department") or "").strip() or None

    if raw is None:
        department = primary_department(request.user)
        if department is None:
            raise ValidationError({"department": "Specify ?department=<id>."})
        return department

    qs = Department.objects.filter(is_active=True)
    department = qs.filter(pk=int(raw)).first() if raw.isdecimal() else qs.filter(code=raw.upper()).first()
    if department is None:
        raise ValidationError({"department": f"Unknown department: {raw}"})

    if not global_roles(request.user) and not department_roles(request.user, department):
        raise PermissionDenied("You are not assigned to this department.")
    return department


class CompletedForDepartmentView(APIView):
    """
    GET /api/progress/completed/?department=<id|code>

    Trials whose section for the department has been approved.
    """

    @extend_schema(parameters=[OpenApiParameter("department", str, required=False)])
    def get(self, request):
        department = _resolve_completed_department(request)
        rows = audit.completed_for_department(department)
        data = []
        for row, base in zip(rows, CompletedRowSerializer(rows, many=True).data):
            data.append(
                {
                    **base,
                    "department_id": row["department_id"],
                    "status": row["status"],
                    "approved_by": row["approved_by"],
                    "remarks": row["remarks"],
                }
            )
        return Response(data)


class CompletedTrialsView(APIView):
    """GET /api/progress/completed-trials/ : trials that cleared every stage."""

    def get(self, request):
        return Response(CompletedRowSerializer(audit.completed_trials(), many=True).data)


# =============================================================
# API: Workflow definition (static + stage table)
# =============================================================

class WorkflowDefinitionView(APIView):
    """
    GET /api/workflow/

    States, transitions, ordered stages, sections and action roles.
    """

    def get(self, request):
        return Response(
            {
                **workflow_definition(),
                "stages": stage_definition(),
                "sections": {
                    key: {"title": d["title"], "department": d["department"]}
                    for key, d in SECTION_DEFINITIONS.items()
                },
                "roles": {
                    name: required_roles(name)
                    for name in (
                        "submit",
                        "approve",
                        "reject",
                        "create_trial",
                        "permanent_delete",
                        "manage_master_list",
                    )
                },
            }
        )
