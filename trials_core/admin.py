# trials_core/admin.py

from django.contrib import admin

from .models import (
    AuditEntry,
    Department,
    DepartmentProgress,
    DimensionalInspection,
    MachineShopInspection,
    MasterCard,
    MetallurgicalInspection,
    MouldCorrection,
    PouringDetails,
    SandProperties,
    Trial,
    TrialSequence,
    UserRole,
    VisualInspection,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Audit trail (READ-ONLY)
# =============================================================

@admin.register(AuditEntry)
class AuditEntryAdmin(ReadOnlyAdmin):
    list_display = ("action_timestamp", "action", "trial", "department", "user")
    list_filter = ("action", "department")
    search_fields = ("trial__trial_id", "user__username", "remarks")
    ordering = ("-action_timestamp",)
    readonly_fields = [f.name for f in AuditEntry._meta.fields]


# =============================================================
# Department progress (READ-ONLY; decisions go through the API)
# =============================================================

@admin.register(DepartmentProgress)
class DepartmentProgressAdmin(ReadOnlyAdmin):
    list_display = ("trial", "department", "attempt", "username", "approval_status", "submitted_at")
    list_filter = ("approval_status", "department")
    search_fields = ("trial__trial_id", "username")
    ordering = ("-submitted_at",)
    readonly_fields = [f.name for f in DepartmentProgress._meta.fields]


# =============================================================
# Reference data
# =============================================================

@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "sequence", "section", "is_active")
    list_editable = ("is_active",)
    ordering = ("sequence", "code")


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ("user", "department", "role")
    list_filter = ("department", "role")
    search_fields = ("user__username",)


@admin.register(MasterCard)
class MasterCardAdmin(admin.ModelAdmin):
    list_display = ("pattern_code", "part_name", "material_grade", "is_active", "updated_at")
    list_filter = ("is_active",)
    list_editable = ("is_active",)
    search_fields = ("pattern_code", "part_name")
    readonly_fields = ("created_by", "created_at", "updated_at")


@admin.register(TrialSequence)
class TrialSequenceAdmin(ReadOnlyAdmin):
    list_display = ("part_name", "last_value")
    search_fields = ("part_name",)


# =============================================================
# Trials (status fields are workflow-controlled)
# =============================================================

@admin.register(Trial)
class TrialAdmin(admin.ModelAdmin):
    list_display = ("trial_id", "part_name", "pattern_code", "status", "current_department", "created_at")
    list_filter = ("status", "current_department", "department")
    search_fields = ("trial_id", "part_name", "pattern_code")
    readonly_fields = (
        "trial_id",
        "status",
        "current_department",
        "status_before_delete",
        "deleted_at",
        "deleted_by",
        "closed_at",
        "created_by",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        # Ids come from the registry counter.
        return False

    def has_delete_permission(self, request, obj=None):
        return False


for section_model in (
    SandProperties,
    MouldCorrection,
    PouringDetails,
    VisualInspection,
    DimensionalInspection,
    MachineShopInspection,
    MetallurgicalInspection,
):
    admin.site.register(section_model, ReadOnlyAdmin)
