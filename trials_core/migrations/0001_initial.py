# trials_core/migrations/0001_initial.py

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _decimal():
    return models.DecimalField(blank=True, decimal_places=3, max_digits=8, null=True)


def _section_base(related_name):
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("remarks", models.TextField(blank=True, default="")),
        ("attachments", models.JSONField(blank=True, default=list)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        (
            "submitted_by",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to=settings.AUTH_USER_MODEL,
            ),
        ),
        (
            "trial",
            models.OneToOneField(
                on_delete=django.db.models.deletion.CASCADE,
                related_name=related_name,
                to="trials_core.trial",
            ),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ------------------------------------------------------------
        # Reference data
        # ------------------------------------------------------------
        migrations.CreateModel(
            name="Department",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("code", models.CharField(max_length=30, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("sequence", models.PositiveIntegerField(blank=True, null=True, unique=True)),
                (
                    "section",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Section key this department submits (blank for non-stage departments).",
                        max_length=50,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["sequence", "code"],
            },
        ),
        migrations.CreateModel(
            name="TrialSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("part_name", models.CharField(max_length=100, unique=True)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name="UserRole",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("role", models.CharField(help_text="OPERATOR, HOD, METHODS or ADMIN", max_length=50)),
                (
                    "department",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="user_roles",
                        to="trials_core.department",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="trial_roles",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "unique_together": {("user", "department", "role")},
            },
        ),
        # ------------------------------------------------------------
        # Trial
        # ------------------------------------------------------------
        migrations.CreateModel(
            name="Trial",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("trial_id", models.CharField(max_length=120, primary_key=True, serialize=False)),
                ("part_name", models.CharField(db_index=True, max_length=100)),
                ("pattern_code", models.CharField(max_length=50)),
                ("material_grade", models.CharField(max_length=50)),
                ("initiated_by", models.CharField(max_length=100)),
                ("date_of_sampling", models.DateField()),
                ("plan_moulds", models.PositiveIntegerField()),
                ("actual_moulds", models.PositiveIntegerField(blank=True, null=True)),
                ("reason_for_sampling", models.TextField()),
                ("disa", models.CharField(help_text="Moulding machine", max_length=50)),
                ("sample_traceability", models.CharField(max_length=100)),
                ("chemical_composition", models.JSONField(blank=True, default=dict)),
                ("tensile", models.JSONField(blank=True, default=dict)),
                ("remarks", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("active", "Active"),
                            ("closed", "Closed"),
                            ("deleted", "Deleted"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=20,
                    ),
                ),
                ("status_before_delete", models.CharField(blank=True, default="", max_length=20)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_trials",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "current_department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="current_trials",
                        to="trials_core.department",
                    ),
                ),
                (
                    "deleted_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="deleted_trials",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "department",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="initiated_trials",
                        to="trials_core.department",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-trial_id"],
                "indexes": [
                    models.Index(fields=["status", "current_department"], name="trial_status_dept_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("trial_id", ""), _negated=True), name="trial_id_not_blank"),
                ],
            },
        ),
        # ------------------------------------------------------------
        # Department progress
        # ------------------------------------------------------------
        migrations.CreateModel(
            name="DepartmentProgress",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("attempt", models.PositiveIntegerField(default=1)),
                ("username", models.CharField(max_length=150)),
                (
                    "approval_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("remarks", models.TextField(blank=True, default="")),
                ("submitted_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "decided_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="decided_progress",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "department",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="progress_records",
                        to="trials_core.department",
                    ),
                ),
                (
                    "submitted_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="submitted_progress",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "trial",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="progress_records",
                        to="trials_core.trial",
                    ),
                ),
            ],
            options={
                "ordering": ["submitted_at", "id"],
                "indexes": [
                    models.Index(fields=["username", "approval_status"], name="progress_user_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("approval_status", "pending")),
                        fields=("trial", "department"),
                        name="one_pending_progress_per_department",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("approval_status", "approved")),
                        fields=("trial", "department"),
                        name="one_approved_progress_per_department",
                    ),
                    models.UniqueConstraint(
                        fields=("trial", "department", "attempt"),
                        name="progress_attempt_unique",
                    ),
                ],
            },
        ),
        # ------------------------------------------------------------
        # Audit trail
        # ------------------------------------------------------------
        migrations.CreateModel(
            name="AuditEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("Trial created", "Trial created"),
                            ("Trial updated", "Trial updated"),
                            ("Trial activated", "Trial activated"),
                            ("Section data saved", "Section data saved"),
                            ("Department progress added", "Department progress added"),
                            ("Department progress approved", "Department progress approved"),
                            ("Department progress rejected", "Department progress rejected"),
                            ("Trial completed", "Trial completed"),
                            ("Trial deleted", "Trial deleted"),
                            ("Trial restored", "Trial restored"),
                            ("Trial permanently deleted", "Trial permanently deleted"),
                        ],
                        db_index=True,
                        max_length=64,
                    ),
                ),
                ("remarks", models.TextField(blank=True, default="")),
                ("details", models.JSONField(blank=True, default=dict)),
                ("action_timestamp", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_entries",
                        to="trials_core.department",
                    ),
                ),
                (
                    "trial",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_entries",
                        to="trials_core.trial",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="trial_audit_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "audit entries",
                "ordering": ["-action_timestamp", "-id"],
                "indexes": [
                    models.Index(fields=["department", "action"], name="audit_dept_action_idx"),
                    models.Index(fields=["trial", "action"], name="audit_trial_action_idx"),
                ],
            },
        ),
        # ------------------------------------------------------------
        # Section payloads
        # ------------------------------------------------------------
        migrations.CreateModel(
            name="SandProperties",
            fields=_section_base("sandproperties") + [
                ("date", models.DateField(blank=True, null=True)),
                ("t_clay", _decimal()),
                ("a_clay", _decimal()),
                ("vcm", _decimal()),
                ("loi", _decimal()),
                ("afs", _decimal()),
                ("gcs", _decimal()),
                ("moi", _decimal()),
                ("compactability", _decimal()),
                ("permeability", _decimal()),
            ],
            options={
                "verbose_name_plural": "sand properties",
            },
        ),
        migrations.CreateModel(
            name="MouldCorrection",
            fields=_section_base("mouldcorrection") + [
                ("date", models.DateField(blank=True, null=True)),
                ("mould_thickness", _decimal()),
                ("compressability", _decimal()),
                ("squeeze_pressure", _decimal()),
                ("mould_hardness", _decimal()),
            ],
        ),
        migrations.CreateModel(
            name="PouringDetails",
            fields=_section_base("pouringdetails") + [
                ("pour_date", models.DateField(blank=True, null=True)),
                ("heat_code", models.CharField(blank=True, default="", max_length=50)),
                ("composition", models.JSONField(blank=True, default=dict)),
                ("pouring_temp_c", _decimal()),
                ("pouring_time_sec", _decimal()),
                ("inoculation", models.JSONField(blank=True, default=dict)),
                ("other_remarks", models.JSONField(blank=True, default=dict)),
                ("no_of_mould_poured", models.PositiveIntegerField(blank=True, null=True)),
            ],
            options={
                "verbose_name_plural": "pouring details",
            },
        ),
        migrations.CreateModel(
            name="VisualInspection",
            fields=_section_base("visualinspection") + [
                ("inspection_date", models.DateField(blank=True, null=True)),
                ("inspections", models.JSONField(blank=True, default=dict)),
                ("visual_ok", models.BooleanField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name="DimensionalInspection",
            fields=_section_base("dimensionalinspection") + [
                ("inspection_date", models.DateField(blank=True, null=True)),
                ("casting_weight", _decimal()),
                ("bunch_weight", _decimal()),
                ("no_of_cavities", models.PositiveIntegerField(blank=True, null=True)),
                ("yields", _decimal()),
                ("inspections", models.JSONField(blank=True, default=dict)),
            ],
        ),
        migrations.CreateModel(
            name="MachineShopInspection",
            fields=_section_base("machineshopinspection") + [
                ("inspection_date", models.DateField(blank=True, null=True)),
                ("inspections", models.JSONField(blank=True, default=dict)),
            ],
        ),
        migrations.CreateModel(
            name="MetallurgicalInspection",
            fields=_section_base("metallurgicalinspection") + [
                ("inspection_date", models.DateField(blank=True, null=True)),
                ("mechanical_properties", models.JSONField(blank=True, default=list)),
                ("impact_strength", models.JSONField(blank=True, default=list)),
                ("hardness", models.JSONField(blank=True, default=list)),
                ("ndt_inspection", models.JSONField(blank=True, default=list)),
                ("microstructure", models.JSONField(blank=True, default=list)),
            ],
        ),
    ]
