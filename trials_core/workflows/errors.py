# trials_core/workflows/errors.py
"""
Workflow error taxonomy.

Every error a caller can correct is a DRF APIException, so views raise and
let DRF render ``{"detail": ..., "code": ...}`` with the right status code.
``MalformedPayloadError`` is internal to report building and never leaves it.
"""

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied
from rest_framework.exceptions import ValidationError  # noqa: F401  (re-exported)


class WorkflowConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The trial is not in a state that allows this action."
    default_code = "workflow_conflict"


class DuplicatePendingError(WorkflowConflict):
    default_detail = "Already submitted, awaiting approval."
    default_code = "duplicate_pending"


class NoPendingRecordError(WorkflowConflict):
    default_detail = "Nothing pending to approve or reject."
    default_code = "no_pending_record"


class OutOfSequenceError(WorkflowConflict):
    default_detail = "This department is not the trial's current department."
    default_code = "out_of_sequence"


class AlreadyApprovedError(WorkflowConflict):
    default_detail = "This department has already been approved for the trial."
    default_code = "already_approved"


class TrialNotActiveError(WorkflowConflict):
    default_detail = "Trial is not active."
    default_code = "trial_not_active"


class NotFoundError(NotFound):
    default_detail = "Trial not found."
    default_code = "not_found"


class DepartmentAuthorizationError(PermissionDenied):
    default_detail = "You are not assigned to this department."
    default_code = "department_forbidden"


class MalformedPayloadError(ValueError):
    """A stored composite field could not be decoded."""

    def __init__(self, field: str = "", raw=None):
        self.field = field
        self.raw = raw
        super().__init__(f"Malformed JSON in field '{field}'" if field else "Malformed JSON")
