# trials_core/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import AuditEntryFilter, MasterCardFilter, TrialFilter
from .models import Department, MasterCard, UserRole
from .permissions import IsMethodsOrAdmin, IsTrialAdmin, global_roles
from .serializers import (
    AuditEntrySerializer,
    DeletedTrialSerializer,
    DepartmentProgressSerializer,
    DepartmentSerializer,
    MasterCardSerializer,
    MasterStatusSerializer,
    TrialSerializer,
    TrialWriteSerializer,
)
from .services import master_list
from .services.report import build_full_report
from .workflows import audit, ledger, registry


def _truthy(value) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


# ===============================================================
# Health
# ===============================================================
class HealthCheckView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["System"])
    def get(self, request):
        return Response(
            {
                "status": "ok",
                "service": "foundry-trials",
                "stages": Department.objects.filter(is_active=True, sequence__isnull=False).count(),
            }
        )


# ===============================================================
# Identity
# ===============================================================
class WhoAmIView(APIView):
    """
    Returns the authenticated user with their department roles.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user

        roles_qs = (
            UserRole.objects
            .filter(user=user)
            .select_related("department")
            .order_by("department__sequence", "department__code", "role")
        )

        roles = [
            {
                "department_id": ur.department_id,
                "department": ur.department.code,
                "role": ur.role,
            }
            for ur in roles_qs
        ]

        return Response(
            {
                "id": user.id,
                "username": user.username,
                "is_superuser": bool(getattr(user, "is_superuser", False)),
                "global_roles": sorted(global_roles(user)),
                "roles": roles,
            }
        )


# ===============================================================
# Departments
# ===============================================================
class DepartmentViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Department.objects.filter(is_active=True).order_by("sequence", "code")
    serializer_class = DepartmentSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None


# ===============================================================
# Trials (registry-backed)
# ===============================================================
class TrialViewSet(viewsets.ModelViewSet):
    """
    Trial cards. Every write goes through the trial registry; status and
    the current department are never writable here.
    """

    serializer_class = TrialSerializer
    permission_classes = [IsMethodsOrAdmin]
    filterset_class = TrialFilter
    lookup_field = "trial_id"
    lookup_value_regex = r"[^/]+"
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):
        return registry.list_trials()

    def get_serializer_class(self):
        if self.action in ("create", "partial_update"):
            return TrialWriteSerializer
        return TrialSerializer

    def create(self, request, *args, **kwargs):
        serializer = TrialWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        trial = registry.create_trial(
            dict(serializer.validated_data),
            request.user,
            draft=_truthy(request.data.get("draft", False)),
        )
        return Response(TrialSerializer(trial).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = TrialWriteSerializer(instance, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        trial = registry.update_trial(instance.trial_id, dict(serializer.validated_data), request.user)
        return Response(TrialSerializer(trial).data)

    def destroy(self, request, *args, **kwargs):
        registry.soft_delete(kwargs["trial_id"], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(parameters=[OpenApiParameter("part_name", str, required=True)])
    @action(detail=False, methods=["get"], url_path="next-id")
    def next_id(self, request):
        part_name = request.query_params.get("part_name", "")
        return Response({"part_name": part_name.strip(), "trial_id": registry.peek_next_trial_id(part_name)})

    @action(detail=False, methods=["get"], permission_classes=[IsTrialAdmin])
    def deleted(self, request):
        qs = registry.list_deleted_trials()
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(DeletedTrialSerializer(page, many=True).data)
        return Response(DeletedTrialSerializer(qs, many=True).data)

    @action(detail=True, methods=["post"])
    def activate(self, request, trial_id=None):
        trial = registry.activate_trial(trial_id, request.user)
        return Response(TrialSerializer(trial).data)

    @action(detail=True, methods=["post"])
    def restore(self, request, trial_id=None):
        trial = registry.restore(trial_id, request.user)
        return Response(TrialSerializer(trial).data)

    @action(detail=True, methods=["post"], url_path="permanent-delete", permission_classes=[IsTrialAdmin])
    def permanent_delete(self, request, trial_id=None):
        deleted_id = registry.permanently_delete(trial_id, request.user)
        return Response({"trial_id": deleted_id, "deleted": True})

    @action(detail=True, methods=["get"])
    def progress(self, request, trial_id=None):
        trial = registry.get_trial(trial_id)
        records = ledger.progress_for_trial(trial)
        return Response(DepartmentProgressSerializer(records, many=True).data)

    @action(detail=True, methods=["get"])
    def report(self, request, trial_id=None):
        include_deleted = _truthy(request.query_params.get("include_deleted", "")) and bool(
            global_roles(request.user)
        )
        return Response(build_full_report(trial_id, include_deleted=include_deleted))


# ===============================================================
# Audit trail (READ-ONLY)
# ===============================================================
class AuditEntryViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = AuditEntrySerializer
    permission_classes = [IsAuthenticated]
    filterset_class = AuditEntryFilter

    def get_queryset(self):
        return audit.query()


# ===============================================================
# Master list
# ===============================================================
class MasterCardViewSet(viewsets.ModelViewSet):
    """
    Pattern-code master list. Any authenticated user reads it;
    Methods/Administration maintain it.
    """

    queryset = MasterCard.objects.select_related("created_by")
    serializer_class = MasterCardSerializer
    permission_classes = [IsMethodsOrAdmin]
    filterset_class = MasterCardFilter

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def destroy(self, request, *args, **kwargs):
        master_list.bulk_delete([kwargs["pk"]], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(parameters=[OpenApiParameter("pattern_code", str, required=True)])
    @action(detail=False, methods=["get"])
    def search(self, request):
        card = master_list.get_by_pattern_code(request.query_params.get("pattern_code", ""))
        return Response(MasterCardSerializer(card).data)

    @extend_schema(request=MasterStatusSerializer)
    @action(detail=False, methods=["put"], url_path="toggle-status")
    def toggle_status(self, request):
        serializer = MasterStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        card = master_list.set_active(
            serializer.validated_data["id"],
            serializer.validated_data["is_active"],
            request.user,
        )
        return Response(MasterCardSerializer(card).data)

    @action(detail=False, methods=["delete"], url_path="bulk")
    def bulk_delete(self, request):
        ids = request.data.get("ids") if hasattr(request.data, "get") else request.data
        deleted = master_list.bulk_delete(ids, request.user)
        return Response({"deleted": deleted})
