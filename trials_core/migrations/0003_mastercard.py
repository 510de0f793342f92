# trials_core/migrations/0003_mastercard.py

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _text(max_length=100):
    return models.CharField(blank=True, default="", max_length=max_length)


class Migration(migrations.Migration):

    dependencies = [
        ("trials_core", "0002_seed_departments"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="MasterCard",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("pattern_code", models.CharField(max_length=150, unique=True)),
                ("part_name", models.CharField(max_length=200)),
                ("material_grade", _text()),
                ("chemical_composition", models.JSONField(blank=True, default=dict)),
                ("micro_structure", models.TextField(blank=True, default="")),
                ("tensile", _text()),
                ("yield_strength", _text()),
                ("elongation", _text()),
                ("impact_cold", _text()),
                ("impact_room", _text()),
                ("hardness_surface", _text()),
                ("hardness_core", _text()),
                ("xray", _text()),
                ("mpi", _text()),
                ("number_of_cavity", _text()),
                ("cavity_identification", _text()),
                ("pattern_material", _text()),
                ("core_weight", _text()),
                ("core_mask_thickness", _text()),
                ("estimated_casting_weight", _text()),
                ("estimated_bunch_weight", _text()),
                ("pattern_plate_thickness_sp", _text()),
                ("pattern_plate_weight_sp", _text()),
                ("core_mask_weight_sp", _text()),
                ("crush_pin_height_sp", _text()),
                ("pattern_plate_thickness_pp", _text()),
                ("pattern_plate_weight_pp", _text()),
                ("crush_pin_height_pp", _text()),
                ("yield_label", _text()),
                ("remarks", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="master_cards",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["pattern_code"],
            },
        ),
    ]
