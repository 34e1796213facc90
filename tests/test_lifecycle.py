from itertools import product

import pytest

from models import COMPLAINT_STATUSES
from utils.errors import ValidationError
from utils.lifecycle import (
    INITIAL_STATUS,
    TERMINAL_STATUS,
    check_transition,
    is_terminal,
    next_statuses,
    normalize_status,
    progress_steps,
    status_rank,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("open", "Open"),
        ("OPEN", "Open"),
        ("Under Review", "Under Review"),
        ("under_review", "Under Review"),
        ("review", "Under Review"),
        (" resolved ", "Resolved"),
    ],
)
def test_normalize_status_accepts_aliases(raw, expected):
    assert normalize_status(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "closed", "in progress"])
def test_normalize_status_rejects_unknown(raw):
    with pytest.raises(ValidationError):
        normalize_status(raw)


def test_initial_and_terminal_states():
    assert INITIAL_STATUS == "Open"
    assert TERMINAL_STATUS == "Resolved"
    assert is_terminal("Resolved")
    assert not is_terminal("Under Review")


def test_single_forward_steps_are_allowed():
    check_transition("Open", "Under Review")
    check_transition("Under Review", "Resolved")


@pytest.mark.parametrize("current, target", [("Under Review", "Open"), ("Resolved", "Open"), ("Resolved", "Under Review")])
def test_backward_transitions_fail_even_with_skip(current, target):
    with pytest.raises(ValidationError, match="back to"):
        check_transition(current, target, allow_skip=True)


@pytest.mark.parametrize("status", COMPLAINT_STATUSES)
def test_same_status_is_rejected(status):
    with pytest.raises(ValidationError, match="already"):
        check_transition(status, status)


def test_forward_skip_needs_permission():
    with pytest.raises(ValidationError, match="must pass through 'Under Review'"):
        check_transition("Open", "Resolved")
    check_transition("Open", "Resolved", allow_skip=True)


def test_accepted_transitions_never_decrease_rank():
    for current, target, skip in product(COMPLAINT_STATUSES, COMPLAINT_STATUSES, (False, True)):
        try:
            check_transition(current, target, allow_skip=skip)
        except ValidationError:
            continue
        assert status_rank(target) > status_rank(current)


def test_next_statuses():
    assert next_statuses("Open") == ["Under Review"]
    assert next_statuses("Open", allow_skip=True) == ["Under Review", "Resolved"]
    assert next_statuses("Resolved") == []


def test_progress_steps_mark_reached_states():
    steps = progress_steps("Under Review")
    assert [s["label"] for s in steps] == ["Open", "Review", "Resolved"]
    assert [s["reached"] for s in steps] == [True, True, False]
    assert all(s["reached"] for s in progress_steps("Resolved"))
