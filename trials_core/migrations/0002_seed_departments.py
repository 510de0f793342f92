# trials_core/migrations/0002_seed_departments.py

from django.db import migrations


DEPARTMENTS = [
    # code, name, sequence, section
    ("SAND", "Sand Plant", 10, "sand_properties"),
    ("MOULDING", "Moulding", 20, "mould_correction"),
    ("MELTING", "Melting & Pouring", 30, "pouring_details"),
    ("FETTLING", "Fettling & Visual", 40, "visual_inspection"),
    ("QUALITY", "Quality (Dimensional)", 50, "dimensional_inspection"),
    ("MACHINE_SHOP", "Machine Shop", 60, "machine_shop"),
    ("METALLURGY", "Metallurgical Lab", 70, "metallurgical_inspection"),
    ("METHODS", "Methods", None, ""),
    ("ADMIN", "Administration", None, ""),
]


def seed_departments(apps, schema_editor):
    """
    Create the workflow stages and the two cross-stage departments.

    Idempotent: existing rows (matched by code) are left untouched.
    """
    Department = apps.get_model("trials_core", "Department")

    for code, name, sequence, section in DEPARTMENTS:
        Department.objects.get_or_create(
            code=code,
            defaults={
                "name": name,
                "sequence": sequence,
                "section": section,
                "is_active": True,
            },
        )


class Migration(migrations.Migration):

    dependencies = [
        ("trials_core", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(
            seed_departments,
            reverse_code=migrations.RunPython.noop,
        ),
    ]
