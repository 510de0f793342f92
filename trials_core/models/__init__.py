from .core import Department, TimeStampedModel, Trial, TrialSequence, UserRole
from .progress import DepartmentProgress
from .audit import AuditAction, AuditEntry
from .master import MasterCard
from .sections import (
    DimensionalInspection,
    MachineShopInspection,
    MetallurgicalInspection,
    MouldCorrection,
    PouringDetails,
    SandProperties,
    SectionPayload,
    VisualInspection,
)

__all__ = [
    "TimeStampedModel",
    "Department",
    "UserRole",
    "TrialSequence",
    "Trial",
    "DepartmentProgress",
    "AuditAction",
    "AuditEntry",
    "MasterCard",
    "SectionPayload",
    "SandProperties",
    "MouldCorrection",
    "PouringDetails",
    "VisualInspection",
    "DimensionalInspection",
    "MachineShopInspection",
    "MetallurgicalInspection",
]
