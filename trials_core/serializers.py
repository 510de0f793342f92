from __future__ import annotations

from typing import Any, Dict, List

from django.contrib.auth.models import User
from rest_framework import serializers

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
    UserRole,
    VisualInspection,
)
from .sections import SECTION_DEFINITIONS, TRIAL_COMPOSITE_FIELDS, grid_errors, parse_composite
from .workflows import allowed_next_states
from .workflows.errors import MalformedPayloadError


# ===============================================================
# Helpers
# ===============================================================

class ImmutableFieldsMixin:
    """
    Blocks updates to selected fields if they appear in incoming validated data.
    """
    immutable_fields: tuple[str, ...] = ()

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if self.instance is not None and self.immutable_fields:
            for field in self.immutable_fields:
                if field in attrs:
                    raise serializers.ValidationError(
                        {field: "This field is immutable."}
                    )
        return super().validate(attrs)


class CompositeFieldsMixin:
    """
    Decodes JSON composite fields sent as strings and checks grid shapes.

    ``composite_fields`` maps field name to its fallback factory, whose
    result also fixes the expected container type. ``grid_fields`` lists
    the composites holding a column grid.
    """
    composite_fields: Dict[str, Any] = {}
    grid_fields: tuple[str, ...] = ()

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        errors: Dict[str, Any] = {}

        for name, factory in self.composite_fields.items():
            if name not in attrs:
                continue
            try:
                value = parse_composite(attrs[name], name)
            except MalformedPayloadError:
                errors[name] = "Malformed JSON."
                continue
            fallback = factory()
            if value is None:
                value = fallback
            if not isinstance(value, type(fallback)):
                errors[name] = f"Expected a JSON {'array' if isinstance(fallback, list) else 'object'}."
                continue
            attrs[name] = value

        for name in self.grid_fields:
            if name in attrs and name not in errors:
                problems = grid_errors(attrs[name])
                if problems:
                    errors[name] = problems

        if errors:
            raise serializers.ValidationError(errors)
        return super().validate(attrs)


class UserSlimSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ("id", "username", "email")
        read_only_fields = fields


# ===============================================================
# Department / UserRole
# ===============================================================

class DepartmentSerializer(serializers.ModelSerializer):
    is_stage = serializers.BooleanField(read_only=True)

    class Meta:
        model = Department
        fields = (
            "id",
            "code",
            "name",
            "sequence",
            "section",
            "is_stage",
            "is_active",
        )
        read_only_fields = fields


class UserRoleSerializer(serializers.ModelSerializer):
    department_code = serializers.CharField(source="department.code", read_only=True)
    user_username = serializers.CharField(source="user.username", read_only=True)

    class Meta:
        model = UserRole
        fields = (
            "id",
            "user",
            "user_username",
            "department",
            "department_code",
            "role",
        )
        read_only_fields = ("id", "user_username", "department_code")


# ===============================================================
# Trial
# ===============================================================

class TrialSerializer(serializers.ModelSerializer):
    department_code = serializers.CharField(source="department.code", read_only=True)
    department_name = serializers.CharField(source="department.name", read_only=True)
    current_department_code = serializers.CharField(
        source="current_department.code", read_only=True, default=None
    )
    current_department_name = serializers.CharField(
        source="current_department.name", read_only=True, default=None
    )
    created_by = UserSlimSerializer(read_only=True)

    allowed_next_states = serializers.SerializerMethodField()

    class Meta:
        model = Trial
        fields = (
            "trial_id",
            "part_name",
            "pattern_code",
            "material_grade",
            "initiated_by",
            "date_of_sampling",
            "plan_moulds",
            "actual_moulds",
            "reason_for_sampling",
            "department",
            "department_code",
            "department_name",
            "disa",
            "sample_traceability",
            "chemical_composition",
            "tensile",
            "remarks",
            "status",
            "current_department",
            "current_department_code",
            "current_department_name",
            "allowed_next_states",
            "deleted_at",
            "closed_at",
            "created_by",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_allowed_next_states(self, obj: Trial) -> List[str]:
        return allowed_next_states("trial", obj.status)


class TrialWriteSerializer(CompositeFieldsMixin, ImmutableFieldsMixin, serializers.ModelSerializer):
    """
    Input validation for trial cards. The registry owns the write itself.
    """

    department = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.filter(is_active=True)
    )
    chemical_composition = serializers.JSONField(required=False)
    tensile = serializers.JSONField(required=False)

    composite_fields = TRIAL_COMPOSITE_FIELDS
    immutable_fields = ("part_name",)

    class Meta:
        model = Trial
        fields = (
            "part_name",
            "pattern_code",
            "material_grade",
            "initiated_by",
            "date_of_sampling",
            "plan_moulds",
            "actual_moulds",
            "reason_for_sampling",
            "department",
            "disa",
            "sample_traceability",
            "chemical_composition",
            "tensile",
            "remarks",
        )

    def validate_part_name(self, value: str) -> str:
        value = (value or "").strip()
        if "/" in value:
            raise serializers.ValidationError("Part name may not contain '/'.")
        return value


class DeletedTrialSerializer(serializers.ModelSerializer):
    deleted_by = UserSlimSerializer(read_only=True)

    class Meta:
        model = Trial
        fields = (
            "trial_id",
            "part_name",
            "pattern_code",
            "status_before_delete",
            "deleted_at",
            "deleted_by",
        )
        read_only_fields = fields


# ===============================================================
# Master list
# ===============================================================

class MasterCardSerializer(CompositeFieldsMixin, serializers.ModelSerializer):
    chemical_composition = serializers.JSONField(required=False)
    created_by = UserSlimSerializer(read_only=True)

    composite_fields = {"chemical_composition": dict}

    class Meta:
        model = MasterCard
        fields = "__all__"
        read_only_fields = ("id", "created_by", "created_at", "updated_at")

    def validate_pattern_code(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("This field may not be blank.")

        qs = MasterCard.objects.filter(pattern_code__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(f"Pattern code {value} is already in the master list.")
        return value

    def validate_part_name(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("This field may not be blank.")
        return value


class MasterStatusSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    is_active = serializers.BooleanField()


# ===============================================================
# Department progress (READ-ONLY)
# ===============================================================

class DepartmentProgressSerializer(serializers.ModelSerializer):
    department_code = serializers.CharField(source="department.code", read_only=True)
    department_name = serializers.CharField(source="department.name", read_only=True)
    decided_by_username = serializers.CharField(
        source="decided_by.username", read_only=True, default=None
    )

    class Meta:
        model = DepartmentProgress
        fields = (
            "id",
            "trial",
            "department",
            "department_code",
            "department_name",
            "attempt",
            "username",
            "approval_status",
            "remarks",
            "submitted_at",
            "completed_at",
            "decided_by_username",
        )
        read_only_fields = fields


class PendingProgressSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    trial_id = serializers.CharField()
    department_id = serializers.IntegerField()
    department_name = serializers.CharField()
    section = serializers.CharField(allow_null=True)
    attempt = serializers.IntegerField()
    username = serializers.CharField()
    approval_status = serializers.CharField()
    remarks = serializers.CharField(allow_blank=True)
    submitted_at = serializers.DateTimeField()
    part_name = serializers.CharField()
    pattern_code = serializers.CharField()
    disa = serializers.CharField()
    date_of_sampling = serializers.DateField()


class CompletedRowSerializer(serializers.Serializer):
    trial_id = serializers.CharField()
    part_name = serializers.CharField()
    pattern_code = serializers.CharField()
    disa = serializers.CharField()
    date_of_sampling = serializers.DateField()
    department_name = serializers.CharField()
    completed_at = serializers.DateTimeField()


class DecisionSerializer(serializers.Serializer):
    remarks = serializers.CharField(required=False, allow_blank=True, default="")


# ===============================================================
# Audit (READ-ONLY)
# ===============================================================

class AuditEntrySerializer(serializers.ModelSerializer):
    department_code = serializers.CharField(source="department.code", read_only=True, default=None)
    user_username = serializers.CharField(source="user.username", read_only=True, default=None)

    class Meta:
        model = AuditEntry
        fields = (
            "id",
            "trial",
            "department",
            "department_code",
            "user",
            "user_username",
            "action",
            "remarks",
            "details",
            "action_timestamp",
        )
        read_only_fields = fields


# ===============================================================
# Section payloads
# ===============================================================

class AttachmentSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    url = serializers.CharField(max_length=1024, required=False, allow_blank=True)
    content_type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    size = serializers.IntegerField(min_value=0, required=False)


class SectionSerializer(CompositeFieldsMixin, serializers.ModelSerializer):
    """
    Base for section payload serializers. Subclasses set ``section_key``;
    composite and grid fields come from the section registry.
    """

    attachments = AttachmentSerializer(many=True, required=False)

    section_key = ""
    SECTION_READ_ONLY = ("trial", "submitted_by", "created_at", "updated_at")

    @property
    def composite_fields(self):
        return SECTION_DEFINITIONS[self.section_key]["composite"]

    @property
    def grid_fields(self):
        return SECTION_DEFINITIONS[self.section_key]["grids"]


class SandPropertiesSerializer(SectionSerializer):
    section_key = "sand_properties"

    class Meta:
        model = SandProperties
        exclude = ("id",)
        read_only_fields = SectionSerializer.SECTION_READ_ONLY


class MouldCorrectionSerializer(SectionSerializer):
    section_key = "mould_correction"

    class Meta:
        model = MouldCorrection
        exclude = ("id",)
        read_only_fields = SectionSerializer.SECTION_READ_ONLY


class PouringDetailsSerializer(SectionSerializer):
    section_key = "pouring_details"

    class Meta:
        model = PouringDetails
        exclude = ("id",)
        read_only_fields = SectionSerializer.SECTION_READ_ONLY


class VisualInspectionSerializer(SectionSerializer):
    section_key = "visual_inspection"

    class Meta:
        model = VisualInspection
        exclude = ("id",)
        read_only_fields = SectionSerializer.SECTION_READ_ONLY


class DimensionalInspectionSerializer(SectionSerializer):
    section_key = "dimensional_inspection"

    class Meta:
        model = DimensionalInspection
        exclude = ("id",)
        read_only_fields = SectionSerializer.SECTION_READ_ONLY


class MachineShopInspectionSerializer(SectionSerializer):
    section_key = "machine_shop"

    class Meta:
        model = MachineShopInspection
        exclude = ("id",)
        read_only_fields = SectionSerializer.SECTION_READ_ONLY


class MetallurgicalInspectionSerializer(SectionSerializer):
    section_key = "metallurgical_inspection"

    class Meta:
        model = MetallurgicalInspection
        exclude = ("id",)
        read_only_fields = SectionSerializer.SECTION_READ_ONLY


SECTION_SERIALIZERS = {
    "sand_properties": SandPropertiesSerializer,
    "mould_correction": MouldCorrectionSerializer,
    "pouring_details": PouringDetailsSerializer,
    "visual_inspection": VisualInspectionSerializer,
    "dimensional_inspection": DimensionalInspectionSerializer,
    "machine_shop": MachineShopInspectionSerializer,
    "metallurgical_inspection": MetallurgicalInspectionSerializer,
}
