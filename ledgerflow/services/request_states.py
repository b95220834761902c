"""
Purchase request lifecycle and derived order status
"""
from typing import Iterable, Optional

from ledgerflow.core.errors import InvalidTransitionError

# Line item states
PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
EDIT_REQUESTED = "edit_requested"
EDIT_APPROVED = "edit_approved"

# Stored order states
ORDER_OPEN = "open"
ORDER_EDIT_REQUESTED = "edit_requested"
ORDER_EDIT_APPROVED = "edit_approved"

# Derived order states
EDITING = "editing"
EMPTY = "empty"
PARTIAL = "partial"

EDIT_STATES = (EDIT_REQUESTED, EDIT_APPROVED)

# States in which the line's purchase movement sits in the ledger
APPLIED_STATES = (APPROVED, EDIT_REQUESTED, EDIT_APPROVED)

# Valid status transitions
STATUS_TRANSITIONS = {
    PENDING: [APPROVED, REJECTED],
    APPROVED: [EDIT_REQUESTED, PENDING, REJECTED],  # pending/rejected only through a revert
    EDIT_REQUESTED: [EDIT_APPROVED],
    EDIT_APPROVED: [PENDING],
    REJECTED: [],
}

ORDER_TRANSITIONS = {
    ORDER_OPEN: [ORDER_EDIT_REQUESTED],
    ORDER_EDIT_REQUESTED: [ORDER_EDIT_APPROVED, ORDER_OPEN],
    ORDER_EDIT_APPROVED: [ORDER_OPEN],
}


def ensure_transition(request, new_status: str) -> None:
    allowed = STATUS_TRANSITIONS.get(request.status, [])
    if new_status not in allowed:
        raise InvalidTransitionError(
            f"cannot move request from {request.status} to {new_status}",
            entity_id=request.id,
            current=request.status,
            target=new_status,
        )


def ensure_order_transition(order, new_status: str) -> None:
    allowed = ORDER_TRANSITIONS.get(order.status, [])
    if new_status not in allowed:
        raise InvalidTransitionError(
            f"cannot move order from {order.status} to {new_status}",
            entity_id=order.id,
            current=order.status,
            target=new_status,
        )


def aggregate_status(line_statuses: Iterable[str], order_status: Optional[str] = None) -> str:
    """
    Effective order status.

    Precedence: stored order edit state, any line in an edit state, no lines,
    all lines sharing one status, otherwise partial.
    """
    if order_status in (ORDER_EDIT_REQUESTED, ORDER_EDIT_APPROVED):
        return EDITING

    statuses = list(line_statuses)
    if any(s in EDIT_STATES for s in statuses):
        return EDITING
    if not statuses:
        return EMPTY

    distinct = set(statuses)
    if len(distinct) == 1:
        return statuses[0]
    return PARTIAL
