# trials_core/models/master.py
"""
Master list: one card per pattern code with the target chemistry,
mechanical properties and pattern data that new trial cards start from.
"""

from django.conf import settings
from django.db import models

from .core import TimeStampedModel


def _text(max_length=100):
    return models.CharField(max_length=max_length, blank=True, default="")


class MasterCard(TimeStampedModel):
    # Field name -> key used in a trial's ``tensile`` targets.
    MECHANICAL_TARGETS = (
        ("tensile", "tensile"),
        ("yield_strength", "yield"),
        ("elongation", "elongation"),
        ("impact_cold", "impact_cold"),
        ("impact_room", "impact_room"),
        ("hardness_surface", "hardness_surface"),
        ("hardness_core", "hardness_core"),
    )

    pattern_code = models.CharField(max_length=150, unique=True)
    part_name = models.CharField(max_length=200)
    material_grade = _text()

    # Targets
    chemical_composition = models.JSONField(default=dict, blank=True)
    micro_structure = models.TextField(blank=True, default="")
    tensile = _text()
    yield_strength = _text()
    elongation = _text()
    impact_cold = _text()
    impact_room = _text()
    hardness_surface = _text()
    hardness_core = _text()
    xray = _text()
    mpi = _text()

    # Pattern data
    number_of_cavity = _text()
    cavity_identification = _text()
    pattern_material = _text()
    core_weight = _text()
    core_mask_thickness = _text()
    estimated_casting_weight = _text()
    estimated_bunch_weight = _text()
    pattern_plate_thickness_sp = _text()
    pattern_plate_weight_sp = _text()
    core_mask_weight_sp = _text()
    crush_pin_height_sp = _text()
    pattern_plate_thickness_pp = _text()
    pattern_plate_weight_pp = _text()
    crush_pin_height_pp = _text()
    yield_label = _text()

    remarks = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="master_cards",
    )

    class Meta:
        ordering = ["pattern_code"]

    def target_tensile(self) -> dict:
        """Non-blank mechanical targets in the shape a trial card stores."""
        out = {}
        for field, key in self.MECHANICAL_TARGETS:
            value = (getattr(self, field) or "").strip()
            if value:
                out[key] = value
        return out

    def __str__(self):
        return f"{self.pattern_code} - {self.part_name}"
