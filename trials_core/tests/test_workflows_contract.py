# trials_core/tests/test_workflows_contract.py

import pytest

import trials_core.workflows as wf


def test_public_api_is_exported():
    for name in (
        "TRIAL_STATES",
        "TRIAL_TRANSITIONS",
        "PROGRESS_STATES",
        "PROGRESS_TRANSITIONS",
        "role_allows",
        "validate_transition",
        "allowed_next_states",
        "required_roles",
        "workflow_definition",
    ):
        assert name in wf.__all__
        assert hasattr(wf, name)


def test_every_transition_target_is_a_known_state():
    for states, transitions in (
        (wf.TRIAL_STATES, wf.TRIAL_TRANSITIONS),
        (wf.PROGRESS_STATES, wf.PROGRESS_TRANSITIONS),
    ):
        assert set(transitions) == states
        for targets in transitions.values():
            assert targets <= states


@pytest.mark.parametrize(
    "kind,current,target",
    [
        ("trial", "draft", "active"),
        ("trial", "active", "closed"),
        ("trial", "closed", "deleted"),
        ("trial", "deleted", "active"),
        ("progress", "pending", "approved"),
        ("progress", "PENDING", "Rejected"),
    ],
)
def test_valid_transitions(kind, current, target):
    wf.validate_transition(kind, current, target)


@pytest.mark.parametrize(
    "kind,current,target",
    [
        ("trial", "closed", "active"),
        ("trial", "draft", "closed"),
        ("progress", "approved", "pending"),
        ("progress", "rejected", "approved"),
        ("progress", "pending", "archived"),
        ("sample", "draft", "active"),
    ],
)
def test_invalid_transitions(kind, current, target):
    with pytest.raises(ValueError):
        wf.validate_transition(kind, current, target)


def test_allowed_next_states_are_sorted():
    assert wf.allowed_next_states("trial", "active") == ["closed", "deleted"]
    assert wf.allowed_next_states("progress", "approved") == []
    assert wf.allowed_next_states("unknown", "active") == []


@pytest.mark.parametrize(
    "action,role,in_department,expected",
    [
        ("submit", "OPERATOR", True, True),
        ("submit", "OPERATOR", False, False),
        ("submit", "hod", True, True),
        ("approve", "OPERATOR", True, False),
        ("approve", "HOD", True, True),
        ("approve", "HOD", False, False),
        ("reject", "Head of Department", True, True),
        ("approve", "METHODS", False, True),
        ("create_trial", "METHODS", False, True),
        ("create_trial", "HOD", True, False),
        ("permanent_delete", "METHODS", False, False),
        ("permanent_delete", "ADMIN", False, True),
        ("submit", "READONLY", True, False),
        ("submit", "", True, False),
    ],
)
def test_role_allows_matrix(action, role, in_department, expected):
    assert wf.role_allows(action, role, in_department=in_department) is expected


def test_required_roles():
    assert wf.required_roles("approve") == ["ADMIN", "HOD", "METHODS"]
    assert wf.required_roles("permanent_delete") == ["ADMIN"]
    with pytest.raises(ValueError):
        wf.required_roles("launch")


def test_workflow_definition_shape():
    definition = wf.workflow_definition()
    assert set(definition) == {"trial", "progress"}
    assert definition["progress"]["transitions"]["pending"] == ["approved", "rejected"]
    assert wf.workflow_definition("trial")["kind"] == "trial"
    with pytest.raises(ValueError):
        wf.workflow_definition("sample")
