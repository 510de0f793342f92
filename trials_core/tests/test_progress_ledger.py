# trials_core/tests/test_progress_ledger.py

import pytest
from django.db import IntegrityError, transaction

from trials_core.models import AuditAction, AuditEntry, DepartmentProgress, Trial
from trials_core.workflows import ledger, registry
from trials_core.workflows.errors import DuplicatePendingError, NoPendingRecordError

from .helpers import STAGE_CODES

Status = DepartmentProgress.ApprovalStatus


@pytest.mark.django_db
def test_submit_creates_pending_attempt(trial_factory, departments, sand_operator):
    trial = trial_factory()
    record = ledger.submit(trial, departments["SAND"], sand_operator, "first pass")

    assert record.approval_status == Status.PENDING
    assert record.attempt == 1
    assert record.username == "sand_op"
    assert AuditEntry.objects.filter(
        trial=trial, department=departments["SAND"], action=AuditAction.PROGRESS_ADDED
    ).count() == 1


@pytest.mark.django_db
def test_duplicate_pending_is_rejected(trial_factory, departments, sand_operator):
    trial = trial_factory()
    ledger.submit(trial, departments["SAND"], sand_operator)

    with pytest.raises(DuplicatePendingError) as exc:
        ledger.submit(trial, departments["SAND"], sand_operator)

    assert exc.value.status_code == 409
    assert str(exc.value.detail) == "Already submitted, awaiting approval."
    assert DepartmentProgress.objects.filter(trial=trial).count() == 1


@pytest.mark.django_db
def test_database_blocks_second_pending_row(trial_factory, departments, sand_operator):
    trial = trial_factory()
    ledger.submit(trial, departments["SAND"], sand_operator)

    with pytest.raises(IntegrityError):
        with transaction.atomic():
            DepartmentProgress.objects.create(
                trial=trial,
                department=departments["SAND"],
                attempt=2,
                username="sand_op",
                approval_status=Status.PENDING,
            )


@pytest.mark.django_db
def test_rejection_allows_new_attempt(trial_factory, departments, sand_operator, sand_hod):
    trial = trial_factory()
    ledger.submit(trial, departments["SAND"], sand_operator)
    rejected = ledger.reject(trial, departments["SAND"], sand_hod, "moisture too high")

    assert rejected.approval_status == Status.REJECTED
    assert rejected.decided_by == sand_hod
    assert rejected.completed_at is not None

    trial.refresh_from_db()
    assert trial.current_department == departments["SAND"]

    again = ledger.submit(trial, departments["SAND"], sand_operator)
    assert again.attempt == 2
    assert again.approval_status == Status.PENDING

    entry = AuditEntry.objects.get(action=AuditAction.PROGRESS_REJECTED)
    assert entry.remarks == "moisture too high"


@pytest.mark.django_db
def test_approve_advances_to_next_stage(trial_factory, departments, sand_operator, sand_hod):
    trial = trial_factory()
    ledger.submit(trial, departments["SAND"], sand_operator)
    record = ledger.approve(trial, departments["SAND"], sand_hod, "ok")

    assert record.approval_status == Status.APPROVED
    trial.refresh_from_db()
    assert trial.current_department == departments["MOULDING"]
    assert trial.status == Trial.Status.ACTIVE

    assert ledger.is_approved(trial, departments["SAND"])
    assert ledger.latest_status(trial, departments["SAND"]) == Status.APPROVED
    assert ledger.latest_status(trial, departments["MOULDING"]) is None


@pytest.mark.django_db
def test_approve_or_reject_without_pending_fails(trial_factory, departments, sand_hod):
    trial = trial_factory()

    with pytest.raises(NoPendingRecordError):
        ledger.approve(trial, departments["SAND"], sand_hod)
    with pytest.raises(NoPendingRecordError):
        ledger.reject(trial, departments["SAND"], sand_hod)


@pytest.mark.django_db
def test_last_approval_closes_trial(trial_factory, complete_stage):
    trial = trial_factory()
    for code in STAGE_CODES:
        complete_stage(trial, code)

    trial.refresh_from_db()
    assert trial.status == Trial.Status.CLOSED
    assert trial.current_department is None
    assert trial.closed_at is not None
    assert AuditEntry.objects.filter(trial=trial, action=AuditAction.TRIAL_COMPLETED).count() == 1


@pytest.mark.django_db
def test_progress_for_trial_is_oldest_first(trial_factory, departments, sand_operator, sand_hod):
    trial = trial_factory()
    ledger.submit(trial, departments["SAND"], sand_operator)
    ledger.reject(trial, departments["SAND"], sand_hod)
    ledger.submit(trial, departments["SAND"], sand_operator)

    attempts = [p.attempt for p in ledger.progress_for_trial(trial)]
    assert attempts == [1, 2]


# ------------------------------------------------------------
# Pending visibility
# ------------------------------------------------------------
@pytest.mark.django_db
def test_list_pending_for_submitter(trial_factory, departments, sand_operator):
    trial = trial_factory()
    ledger.submit(trial, departments["SAND"], sand_operator)

    rows = ledger.list_pending("sand_op")
    assert len(rows) == 1
    row = rows[0]
    assert row["trial_id"] == trial.trial_id
    assert row["department_name"] == "Sand Plant"
    assert row["part_name"] == "Bracket"
    assert row["pattern_code"] == "PT-01"
    assert row["disa"] == "DISA-1"
    assert row["section"] == "sand_properties"


@pytest.mark.django_db
def test_list_pending_for_hod_methods_and_strangers(
    trial_factory, departments, sand_operator, sand_hod, moulding_hod, methods_user, outsider
):
    trial = trial_factory()
    ledger.submit(trial, departments["SAND"], sand_operator)

    assert len(ledger.list_pending("sand_hod")) == 1
    assert len(ledger.list_pending("methods")) == 1
    assert ledger.list_pending("mould_hod") == []
    assert ledger.list_pending("outsider") == []
    assert ledger.list_pending("nobody") == []


@pytest.mark.django_db
def test_list_pending_excludes_deleted_and_orders_newest_first(
    trial_factory, departments, sand_operator, methods_user
):
    older = trial_factory()
    newer = trial_factory()
    hidden = trial_factory()
    for trial in (older, newer, hidden):
        ledger.submit(trial, departments["SAND"], sand_operator)

    registry.soft_delete(hidden.trial_id, methods_user)

    ids = [row["trial_id"] for row in ledger.list_pending("sand_op")]
    assert ids == [newer.trial_id, older.trial_id]
