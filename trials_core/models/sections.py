# trials_core/models/sections.py
"""
Per-department inspection payloads.

Each section is keyed one-to-one by trial: a trial has zero or one row per
section, and a resubmission overwrites it. Composite sub-tables are stored
in JSON columns; their fallbacks are declared in ``trials_core.sections``.
"""

from django.conf import settings
from django.db import models

from .core import Trial


def _decimal(**kwargs):
    return models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True, **kwargs)


class SectionPayload(models.Model):
    trial = models.OneToOneField(
        Trial,
        on_delete=models.CASCADE,
        related_name="%(class)s",
    )
    remarks = models.TextField(blank=True, default="")
    attachments = models.JSONField(default=list, blank=True)
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def __str__(self):
        return f"{self.__class__.__name__}({self.trial_id})"


class SandProperties(SectionPayload):
    date = models.DateField(null=True, blank=True)
    t_clay = _decimal()
    a_clay = _decimal()
    vcm = _decimal()
    loi = _decimal()
    afs = _decimal()
    gcs = _decimal()
    moi = _decimal()
    compactability = _decimal()
    permeability = _decimal()

    class Meta:
        verbose_name_plural = "sand properties"


class MouldCorrection(SectionPayload):
    date = models.DateField(null=True, blank=True)
    mould_thickness = _decimal()
    compressability = _decimal()
    squeeze_pressure = _decimal()
    mould_hardness = _decimal()


class PouringDetails(SectionPayload):
    pour_date = models.DateField(null=True, blank=True)
    heat_code = models.CharField(max_length=50, blank=True, default="")
    composition = models.JSONField(default=dict, blank=True)
    pouring_temp_c = _decimal()
    pouring_time_sec = _decimal()
    inoculation = models.JSONField(default=dict, blank=True)
    other_remarks = models.JSONField(default=dict, blank=True)
    no_of_mould_poured = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        verbose_name_plural = "pouring details"


class VisualInspection(SectionPayload):
    inspection_date = models.DateField(null=True, blank=True)
    inspections = models.JSONField(default=dict, blank=True)
    visual_ok = models.BooleanField(null=True, blank=True)


class DimensionalInspection(SectionPayload):
    inspection_date = models.DateField(null=True, blank=True)
    casting_weight = _decimal()
    bunch_weight = _decimal()
    no_of_cavities = models.PositiveIntegerField(null=True, blank=True)
    yields = _decimal()
    inspections = models.JSONField(default=dict, blank=True)


class MachineShopInspection(SectionPayload):
    inspection_date = models.DateField(null=True, blank=True)
    inspections = models.JSONField(default=dict, blank=True)


class MetallurgicalInspection(SectionPayload):
    inspection_date = models.DateField(null=True, blank=True)
    mechanical_properties = models.JSONField(default=list, blank=True)
    impact_strength = models.JSONField(default=list, blank=True)
    hardness = models.JSONField(default=list, blank=True)
    ndt_inspection = models.JSONField(default=list, blank=True)
    microstructure = models.JSONField(default=list, blank=True)
