# trials_core/filters.py
import django_filters as df
from .models import AuditEntry, MasterCard, Trial


class TrialFilter(df.FilterSet):
    part_name = df.CharFilter(field_name="part_name", lookup_expr="icontains")
    pattern_code = df.CharFilter(field_name="pattern_code", lookup_expr="icontains")
    status = df.ChoiceFilter(choices=Trial.Status.choices)
    current_department = df.NumberFilter(field_name="current_department_id")
    date_of_sampling = df.DateFromToRangeFilter()

    class Meta:
        model = Trial
        fields = ["part_name", "pattern_code", "status", "current_department", "date_of_sampling", "disa"]


class AuditEntryFilter(df.FilterSet):
    trial = df.CharFilter(field_name="trial_id")
    department = df.NumberFilter(field_name="department_id")
    action = df.CharFilter(field_name="action")
    action_timestamp = df.DateTimeFromToRangeFilter()

    class Meta:
        model = AuditEntry
        fields = ["trial", "department", "action", "user", "action_timestamp"]


class MasterCardFilter(df.FilterSet):
    pattern_code = df.CharFilter(field_name="pattern_code", lookup_expr="icontains")
    part_name = df.CharFilter(field_name="part_name", lookup_expr="icontains")
    material_grade = df.CharFilter(field_name="material_grade", lookup_expr="icontains")

    class Meta:
        model = MasterCard
        fields = ["pattern_code", "part_name", "material_grade", "is_active"]
