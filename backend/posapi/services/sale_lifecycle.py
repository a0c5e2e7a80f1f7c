# Overview: Sale status state machine; legal transitions and which of them return stock.

"""
Sale Status Lifecycle

    pending ──> completed ──> refunded
       │
       └──────> cancelled

- cancelled and refunded are terminal.
- pending -> cancelled and completed -> refunded are compensating: the
  sale's recorded quantities go back to stock (sales_service applies
  the restores).
- pending -> completed only changes the status; stock was reserved when
  the sale was created.
- A same-state request is not a transition and is rejected.
"""

from __future__ import annotations

from .errors import ServiceError

PENDING = "pending"
COMPLETED = "completed"
CANCELLED = "cancelled"
REFUNDED = "refunded"

STATUSES = (PENDING, COMPLETED, CANCELLED, REFUNDED)
INITIAL_STATUSES = (COMPLETED, PENDING)
TERMINAL_STATUSES = frozenset({CANCELLED, REFUNDED})

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset({REFUNDED}),
    CANCELLED: frozenset(),
    REFUNDED: frozenset(),
}

COMPENSATING_TRANSITIONS = frozenset({
    (PENDING, CANCELLED),
    (COMPLETED, REFUNDED),
})


class InvalidTransitionError(ServiceError):
    """Raised when a status change is not allowed from the sale's current status."""
    code = "INVALID_TRANSITION"


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def require_transition(current: str, new: str, *, sale_id: int | None = None) -> None:
    if not can_transition(current, new):
        raise InvalidTransitionError(
            f"Cannot change sale status from {current} to {new}",
            details={
                "sale_id": sale_id,
                "current_status": current,
                "requested_status": new,
                "allowed": sorted(TRANSITIONS.get(current, frozenset())),
            },
        )


def is_compensating(current: str, new: str) -> bool:
    return (current, new) in COMPENSATING_TRANSITIONS
