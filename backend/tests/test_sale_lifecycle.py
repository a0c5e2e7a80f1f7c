import pytest

from posapi.services.sale_lifecycle import (
    TERMINAL_STATUSES,
    InvalidTransitionError,
    can_transition,
    is_compensating,
    require_transition,
)


@pytest.mark.parametrize(
    "current,new",
    [
        ("pending", "completed"),
        ("pending", "cancelled"),
        ("completed", "refunded"),
    ],
)
def test_legal_transitions(current, new):
    assert can_transition(current, new)
    require_transition(current, new)


@pytest.mark.parametrize(
    "current,new",
    [
        ("completed", "pending"),
        ("completed", "cancelled"),
        ("completed", "completed"),
        ("pending", "refunded"),
        ("pending", "pending"),
        ("refunded", "completed"),
        ("refunded", "refunded"),
        ("cancelled", "pending"),
        ("cancelled", "completed"),
        ("unknown", "completed"),
    ],
)
def test_illegal_transitions(current, new):
    assert not can_transition(current, new)
    with pytest.raises(InvalidTransitionError) as exc_info:
        require_transition(current, new, sale_id=7)
    assert exc_info.value.code == "INVALID_TRANSITION"
    assert exc_info.value.details["sale_id"] == 7
    assert exc_info.value.details["current_status"] == current


def test_terminal_states_have_no_exits():
    for status in TERMINAL_STATUSES:
        for target in ("pending", "completed", "cancelled", "refunded"):
            assert not can_transition(status, target)


def test_compensating_transitions():
    assert is_compensating("pending", "cancelled")
    assert is_compensating("completed", "refunded")
    assert not is_compensating("pending", "completed")
