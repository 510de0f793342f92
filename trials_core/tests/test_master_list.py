# trials_core/tests/test_master_list.py

import pytest

from trials_core.models import MasterCard, Trial
from trials_core.services import master_list
from trials_core.workflows.errors import DepartmentAuthorizationError, NotFoundError, ValidationError


@pytest.fixture
def master_card(methods_user):
    return MasterCard.objects.create(
        pattern_code="PT-01",
        part_name="Bracket",
        material_grade="EN-GJS-500-7",
        chemical_composition={"C": "3.5-3.8", "Si": "2.2-2.6"},
        tensile="500 min",
        yield_strength="320 min",
        elongation="7 min",
        hardness_surface="170-230",
        created_by=methods_user,
    )


# ------------------------------------------------------------
# Lookup and targets
# ------------------------------------------------------------
@pytest.mark.django_db
def test_lookup_ignores_case_and_padding(master_card):
    assert master_list.find_by_pattern_code("  pt-01 ") == master_card
    assert master_list.get_by_pattern_code("PT-01") == master_card
    assert master_list.find_by_pattern_code("") is None

    with pytest.raises(NotFoundError):
        master_list.get_by_pattern_code("PT-99")
    with pytest.raises(ValidationError):
        master_list.get_by_pattern_code("  ")


@pytest.mark.django_db
def test_trial_targets_come_from_active_card_only(master_card, methods_user):
    assert master_list.trial_targets("PT-01") == {
        "chemical_composition": {"C": "3.5-3.8", "Si": "2.2-2.6"},
        "tensile": {
            "tensile": "500 min",
            "yield": "320 min",
            "elongation": "7 min",
            "hardness_surface": "170-230",
        },
    }

    master_list.set_active(master_card.id, False, methods_user)
    assert master_list.trial_targets("PT-01") == {}
    assert master_list.find_by_pattern_code("PT-01") == master_card


# ------------------------------------------------------------
# Trial creation
# ------------------------------------------------------------
@pytest.mark.django_db
def test_new_trial_takes_targets_from_master_card(master_card, trial_factory):
    trial = trial_factory(pattern_code="pt-01")

    trial.refresh_from_db()
    assert trial.chemical_composition == {"C": "3.5-3.8", "Si": "2.2-2.6"}
    assert trial.tensile["yield"] == "320 min"


@pytest.mark.django_db
def test_caller_targets_win_over_master_card(master_card, trial_factory):
    trial = trial_factory(chemical_composition={"C": 3.6}, tensile={})

    trial.refresh_from_db()
    assert trial.chemical_composition == {"C": 3.6}
    assert trial.tensile["tensile"] == "500 min"


@pytest.mark.django_db
def test_trial_without_master_card_keeps_empty_targets(trial_factory):
    trial = trial_factory(pattern_code="PT-NEW", chemical_composition=None)

    trial.refresh_from_db()
    assert trial.chemical_composition == {}
    assert trial.tensile == {}


# ------------------------------------------------------------
# Status and deletion
# ------------------------------------------------------------
@pytest.mark.django_db
def test_set_active_requires_methods_or_admin(master_card, sand_hod, admin_user):
    with pytest.raises(DepartmentAuthorizationError):
        master_list.set_active(master_card.id, False, sand_hod)

    with pytest.raises(NotFoundError):
        master_list.set_active(9999, False, admin_user)

    assert master_list.set_active(master_card.id, False, admin_user).is_active is False


@pytest.mark.django_db
def test_bulk_delete(master_card, methods_user, trial_factory):
    other = MasterCard.objects.create(pattern_code="PT-02", part_name="Housing")
    trial = trial_factory()

    assert master_list.bulk_delete([master_card.id, str(other.id), 9999], methods_user) == 2
    assert not MasterCard.objects.exists()

    trial.refresh_from_db()
    assert trial.chemical_composition == {"C": "3.5-3.8", "Si": "2.2-2.6"}

    with pytest.raises(NotFoundError):
        master_list.bulk_delete([master_card.id], methods_user)


@pytest.mark.django_db
@pytest.mark.parametrize("ids", [[], None, "1,2", [True], ["x"], [1.5]])
def test_bulk_delete_rejects_bad_ids(ids, methods_user):
    with pytest.raises(ValidationError):
        master_list.bulk_delete(ids, methods_user)


# ------------------------------------------------------------
# REST surface
# ------------------------------------------------------------
@pytest.mark.django_db
def test_master_list_api(api_client, methods_user, sand_operator):
    payload = {
        "pattern_code": "PT-10",
        "part_name": "Hub",
        "material_grade": "EN-GJL-250",
        "chemical_composition": '{"C": "3.2-3.4"}',
        "tensile": "250 min",
    }

    api_client.force_authenticate(user=sand_operator)
    res = api_client.post("/api/master-list/", payload, format="json")
    assert res.status_code == 403

    api_client.force_authenticate(user=methods_user)
    res = api_client.post("/api/master-list/", payload, format="json")
    assert res.status_code == 201, res.data
    card_id = res.data["id"]
    assert res.data["chemical_composition"] == {"C": "3.2-3.4"}
    assert res.data["created_by"]["username"] == "methods"
    assert res.data["is_active"] is True

    res = api_client.post("/api/master-list/", {**payload, "pattern_code": "pt-10"}, format="json")
    assert res.status_code == 400
    assert "pattern_code" in res.data

    res = api_client.post(
        "/api/master-list/", {**payload, "pattern_code": "PT-11", "chemical_composition": "[1]"}, format="json"
    )
    assert res.status_code == 400
    assert "chemical_composition" in res.data

    api_client.force_authenticate(user=sand_operator)
    res = api_client.get("/api/master-list/search/", {"pattern_code": "pt-10"})
    assert res.status_code == 200
    assert res.data["id"] == card_id
    res = api_client.get("/api/master-list/search/", {"pattern_code": "PT-404"})
    assert res.status_code == 404
    res = api_client.get("/api/master-list/", {"part_name": "hu"})
    assert [row["pattern_code"] for row in res.data["results"]] == ["PT-10"]

    api_client.force_authenticate(user=methods_user)
    res = api_client.put("/api/master-list/toggle-status/", {"id": card_id, "is_active": False}, format="json")
    assert res.status_code == 200
    assert res.data["is_active"] is False
    res = api_client.get("/api/master-list/", {"is_active": "true"})
    assert res.data["results"] == []

    res = api_client.delete("/api/master-list/bulk/", {"ids": [card_id]}, format="json")
    assert res.status_code == 200
    assert res.data == {"deleted": 1}
    assert not MasterCard.objects.exists()


@pytest.mark.django_db
def test_trial_created_over_api_uses_master_targets(api_client, methods_user, departments, master_card):
    api_client.force_authenticate(user=methods_user)
    res = api_client.post(
        "/api/trials/",
        {
            "part_name": "Bracket",
            "pattern_code": "PT-01",
            "material_grade": "EN-GJS-500-7",
            "initiated_by": "Methods",
            "date_of_sampling": "2025-03-01",
            "plan_moulds": 10,
            "reason_for_sampling": "New pattern",
            "department": departments["METHODS"].id,
            "disa": "DISA-1",
            "sample_traceability": "Heat 221",
        },
        format="json",
    )
    assert res.status_code == 201, res.data
    assert res.data["chemical_composition"] == {"C": "3.5-3.8", "Si": "2.2-2.6"}
    assert Trial.objects.get(pk=res.data["trial_id"]).tensile["tensile"] == "500 min"
