# trials_core/tests/test_trial_registry.py

import pytest
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied

from trials_core.models import AuditAction, AuditEntry, DepartmentProgress, SandProperties, Trial, TrialSequence
from trials_core.workflows import registry
from trials_core.workflows.errors import (
    DepartmentAuthorizationError,
    NotFoundError,
    TrialNotActiveError,
    ValidationError,
    WorkflowConflict,
)


@pytest.mark.django_db
def test_create_trial_allocates_sequential_ids(trial_factory, departments):
    first = trial_factory()
    second = trial_factory()
    other = trial_factory(part_name="Housing")

    assert first.trial_id == "Bracket-1"
    assert second.trial_id == "Bracket-2"
    assert other.trial_id == "Housing-1"

    assert first.status == Trial.Status.ACTIVE
    assert first.current_department == departments["SAND"]
    assert TrialSequence.objects.get(part_name="Bracket").last_value == 2


@pytest.mark.django_db
def test_create_trial_appends_created_entry(trial_factory, methods_user):
    trial = trial_factory()

    entries = AuditEntry.objects.filter(trial=trial)
    assert [e.action for e in entries] == [AuditAction.TRIAL_CREATED]
    assert entries[0].user == methods_user


@pytest.mark.django_db
def test_create_trial_lists_every_missing_field(methods_user, trial_fields):
    fields = trial_fields()
    del fields["pattern_code"]
    fields["disa"] = "  "
    fields["plan_moulds"] = None

    with pytest.raises(ValidationError) as exc:
        registry.create_trial(fields, methods_user)

    assert set(exc.value.detail) == {"pattern_code", "disa", "plan_moulds"}
    assert not Trial.objects.exists()


@pytest.mark.django_db
def test_create_trial_rejects_slash_in_part_name(trial_factory):
    with pytest.raises(ValidationError):
        trial_factory(part_name="Bracket/A")
    assert not Trial.objects.exists()
    assert not TrialSequence.objects.exists()


@pytest.mark.django_db
def test_create_trial_requires_methods_or_admin(trial_factory, sand_operator):
    with pytest.raises(DepartmentAuthorizationError):
        trial_factory(actor=sand_operator)


@pytest.mark.django_db
def test_draft_trial_then_activate(trial_factory, methods_user, departments):
    trial = trial_factory(draft=True)
    assert trial.status == Trial.Status.DRAFT
    assert trial.current_department is None

    trial = registry.activate_trial(trial.trial_id, methods_user)
    assert trial.status == Trial.Status.ACTIVE
    assert trial.current_department == departments["SAND"]
    assert AuditEntry.objects.filter(trial=trial, action=AuditAction.TRIAL_ACTIVATED).count() == 1

    with pytest.raises(ValidationError):
        registry.activate_trial(trial.trial_id, methods_user)


@pytest.mark.django_db
def test_peek_next_trial_id_does_not_allocate(trial_factory):
    assert registry.peek_next_trial_id("Bracket") == "Bracket-1"
    assert registry.peek_next_trial_id("Bracket") == "Bracket-1"

    trial_factory()
    assert registry.peek_next_trial_id("Bracket") == "Bracket-2"


@pytest.mark.django_db
def test_counter_resumes_after_existing_ids(trial_factory):
    trial_factory()
    trial_factory()
    TrialSequence.objects.all().delete()

    assert registry.peek_next_trial_id("Bracket") == "Bracket-3"
    assert trial_factory().trial_id == "Bracket-3"


@pytest.mark.django_db
def test_get_trial_hides_soft_deleted(trial_factory, methods_user):
    trial = trial_factory()
    registry.soft_delete(trial.trial_id, methods_user)

    with pytest.raises(NotFoundError):
        registry.get_trial(trial.trial_id)

    assert registry.get_trial(trial.trial_id, include_deleted=True).status == Trial.Status.DELETED

    with pytest.raises(NotFoundError):
        registry.get_trial("Nope-1")


@pytest.mark.django_db
def test_update_trial_edits_card_fields_only(trial_factory, methods_user):
    trial = trial_factory()

    updated = registry.update_trial(trial.trial_id, {"remarks": "Re-check gating", "plan_moulds": 12}, methods_user)
    assert updated.remarks == "Re-check gating"
    assert updated.plan_moulds == 12

    entry = AuditEntry.objects.get(trial=trial, action=AuditAction.TRIAL_UPDATED)
    assert entry.details == {"fields": ["plan_moulds", "remarks"]}

    for forbidden in ({"status": "closed"}, {"trial_id": "X-1"}, {"current_department": None}):
        with pytest.raises(ValidationError):
            registry.update_trial(trial.trial_id, forbidden, methods_user)

    with pytest.raises(ValidationError):
        registry.update_trial(trial.trial_id, {"part_name": "Other"}, methods_user)


@pytest.mark.django_db
def test_update_trial_without_changes_writes_no_audit(trial_factory, methods_user):
    trial = trial_factory()
    registry.update_trial(trial.trial_id, {"remarks": ""}, methods_user)
    assert not AuditEntry.objects.filter(action=AuditAction.TRIAL_UPDATED).exists()


@pytest.mark.django_db
def test_closed_trial_cannot_be_edited(trial_factory, methods_user):
    trial = trial_factory()
    trial.status = Trial.Status.CLOSED
    trial.save(_workflow_bypass=True)

    with pytest.raises(TrialNotActiveError):
        registry.update_trial(trial.trial_id, {"remarks": "late"}, methods_user)


@pytest.mark.django_db
def test_soft_delete_and_restore_are_idempotent(trial_factory, methods_user):
    trial = trial_factory()

    registry.soft_delete(trial.trial_id, methods_user)
    registry.soft_delete(trial.trial_id, methods_user)

    trial.refresh_from_db()
    assert trial.status == Trial.Status.DELETED
    assert trial.status_before_delete == Trial.Status.ACTIVE
    assert trial.deleted_at is not None
    assert trial.deleted_by == methods_user
    assert AuditEntry.objects.filter(trial=trial, action=AuditAction.TRIAL_DELETED).count() == 1

    registry.restore(trial.trial_id, methods_user)
    registry.restore(trial.trial_id, methods_user)

    trial.refresh_from_db()
    assert trial.status == Trial.Status.ACTIVE
    assert trial.deleted_at is None
    assert trial.deleted_by is None
    assert trial.status_before_delete == ""
    assert AuditEntry.objects.filter(trial=trial, action=AuditAction.TRIAL_RESTORED).count() == 1


@pytest.mark.django_db
def test_restore_brings_back_previous_status(trial_factory, methods_user):
    trial = trial_factory(draft=True)
    registry.soft_delete(trial.trial_id, methods_user)
    restored = registry.restore(trial.trial_id, methods_user)
    assert restored.status == Trial.Status.DRAFT


@pytest.mark.django_db
def test_soft_delete_keeps_related_rows(trial_factory, methods_user, complete_stage):
    trial = trial_factory()
    complete_stage(trial, "SAND")

    progress_before = DepartmentProgress.objects.filter(trial=trial).count()
    registry.soft_delete(trial.trial_id, methods_user)

    assert DepartmentProgress.objects.filter(trial=trial).count() == progress_before
    assert SandProperties.objects.filter(trial=trial).exists()


@pytest.mark.django_db
def test_list_trials_and_recycle_bin(trial_factory, methods_user):
    kept = trial_factory()
    binned = trial_factory()
    registry.soft_delete(binned.trial_id, methods_user)

    assert [t.trial_id for t in registry.list_trials()] == [kept.trial_id]
    assert {t.trial_id for t in registry.list_trials(include_deleted=True)} == {kept.trial_id, binned.trial_id}
    assert [t.trial_id for t in registry.list_deleted_trials()] == [binned.trial_id]


@pytest.mark.django_db
def test_permanent_delete_requires_admin_and_recycle_bin(trial_factory, methods_user, admin_user, complete_stage):
    trial = trial_factory()
    complete_stage(trial, "SAND")
    trial_id = trial.trial_id

    with pytest.raises(WorkflowConflict):
        registry.permanently_delete(trial_id, admin_user)

    registry.soft_delete(trial_id, methods_user)

    with pytest.raises(DepartmentAuthorizationError):
        registry.permanently_delete(trial_id, methods_user)

    assert registry.permanently_delete(trial_id, admin_user) == trial_id

    assert not Trial.objects.filter(trial_id=trial_id).exists()
    assert not DepartmentProgress.objects.filter(trial_id=trial_id).exists()
    assert not SandProperties.objects.filter(trial_id=trial_id).exists()
    assert not AuditEntry.objects.filter(trial_id=trial_id).exists()

    entry = AuditEntry.objects.get(action=AuditAction.TRIAL_PERMANENTLY_DELETED)
    assert entry.trial is None
    assert entry.details["trial_id"] == trial_id


@pytest.mark.django_db
def test_ids_are_not_reissued_after_permanent_delete(trial_factory, methods_user, admin_user):
    trial = trial_factory()
    registry.soft_delete(trial.trial_id, methods_user)
    registry.permanently_delete(trial.trial_id, admin_user)

    assert trial_factory().trial_id == "Bracket-2"


@pytest.mark.django_db
def test_superuser_counts_as_admin(trial_factory, methods_user, make_user):
    root = make_user("root", is_superuser=True, is_staff=True)
    trial = trial_factory()
    registry.soft_delete(trial.trial_id, methods_user)
    registry.permanently_delete(trial.trial_id, root)
    assert not Trial.objects.exists()


@pytest.mark.django_db
def test_trial_id_is_immutable(trial_factory):
    trial = trial_factory()
    fresh = Trial.objects.get(pk=trial.pk)
    fresh.trial_id = "Bracket-99"

    with pytest.raises(DjangoPermissionDenied):
        fresh.save()


@pytest.mark.django_db
@pytest.mark.parametrize("value", ["²", "99999", "PAINT"])
def test_create_trial_with_unknown_department(trial_factory, value):
    with pytest.raises(ValidationError) as exc:
        trial_factory(department=value)
    assert "department" in exc.value.detail
    assert not Trial.objects.exists()
