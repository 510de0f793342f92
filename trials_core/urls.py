# trials_core/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter

# -------------------------------------------------
# Core API ViewSets
# -------------------------------------------------
from .views import (
    AuditEntryViewSet,
    DepartmentViewSet,
    HealthCheckView,
    MasterCardViewSet,
    TrialViewSet,
    WhoAmIView,
)

# -------------------------------------------------
# Workflow APIs (submission, decisions, queues)
# -------------------------------------------------
from .views_workflow_api import (
    CompletedForDepartmentView,
    CompletedTrialsView,
    DepartmentApproveView,
    DepartmentRejectView,
    PendingProgressView,
    SectionSubmitView,
    WorkflowDefinitionView,
)


app_name = "trials_core"

# -------------------------------------------------
# Router (CRUD APIs)
# -------------------------------------------------
router = DefaultRouter()
router.register(r"trials", TrialViewSet, basename="trial")
router.register(r"departments", DepartmentViewSet, basename="department")
router.register(r"audit", AuditEntryViewSet, basename="audit")
router.register(r"master-list", MasterCardViewSet, basename="master-card")


urlpatterns = [
    # ============================================================
    # Department workflow on a trial
    # ============================================================
    path(
        "trials/<str:trial_id>/sections/<str:section_key>/",
        SectionSubmitView.as_view(),
        name="trial-section-submit",
    ),
    path(
        "trials/<str:trial_id>/departments/<int:department_id>/approve/",
        DepartmentApproveView.as_view(),
        name="trial-department-approve",
    ),
    path(
        "trials/<str:trial_id>/departments/<int:department_id>/reject/",
        DepartmentRejectView.as_view(),
        name="trial-department-reject",
    ),

    # ============================================================
    # Progress queues
    # ============================================================
    path("progress/pending/", PendingProgressView.as_view(), name="progress-pending"),
    path("progress/completed/", CompletedForDepartmentView.as_view(), name="progress-completed"),
    path(
        "progress/completed-trials/",
        CompletedTrialsView.as_view(),
        name="progress-completed-trials",
    ),

    # ============================================================
    # Workflow definition
    # ============================================================
    path("workflow/", WorkflowDefinitionView.as_view(), name="workflow-definition"),

    # ============================================================
    # System / identity
    # ============================================================
    path("health/", HealthCheckView.as_view(), name="health_check"),
    path("whoami/", WhoAmIView.as_view(), name="whoami"),

    # ============================================================
    # Core CRUD API
    # ============================================================
    path("", include(router.urls)),
]
