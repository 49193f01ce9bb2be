# Overview: Invoice status state machine, one variant per invoice type.

"""
Invoice Status Lifecycle

================================================================================
STATE MACHINES
================================================================================

PAWN:
    active -> overdue | expired | redeemed
    overdue -> redeemed | expired
    redeemed, expired: terminal

    active:   loan running, collateral held
    overdue:  due date passed, customer can still redeem
    redeemed: customer paid back and took the goods
    expired:  collateral forfeited to the shop

SALES:
    paid <-> partially_paid
    paid | partially_paid -> returned
    returned: terminal (a returned sale is re-sold on a new invoice)

    No fixed initial state: the counter picks paid or partially_paid.

BUY:
    paid -> returned
    Buy status is informational. The only change allowed is marking the
    purchase returned (goods handed back), which also blocks importing the
    invoice into a new one.

RULES:
1. A status foreign to the invoice type is rejected (e.g. paid on a pawn).
2. Terminal states have no way out.
3. Requesting the current status again is rejected, not ignored.
================================================================================
"""

from __future__ import annotations

from datetime import datetime

from ..errors import InvalidTransition
from .invoice_schemas import (
    INVOICE_TYPE_BUY,
    INVOICE_TYPE_PAWN,
    INVOICE_TYPE_SALES,
    validate_invoice_type,
)


STATUS_ACTIVE = "active"
STATUS_OVERDUE = "overdue"
STATUS_EXPIRED = "expired"
STATUS_REDEEMED = "redeemed"
STATUS_PAID = "paid"
STATUS_PARTIALLY_PAID = "partially_paid"
STATUS_RETURNED = "returned"

TRANSITIONS: dict[str, dict[str, frozenset]] = {
    INVOICE_TYPE_PAWN: {
        STATUS_ACTIVE: frozenset({STATUS_OVERDUE, STATUS_EXPIRED, STATUS_REDEEMED}),
        STATUS_OVERDUE: frozenset({STATUS_REDEEMED, STATUS_EXPIRED}),
        STATUS_REDEEMED: frozenset(),
        STATUS_EXPIRED: frozenset(),
    },
    INVOICE_TYPE_SALES: {
        STATUS_PAID: frozenset({STATUS_PARTIALLY_PAID, STATUS_RETURNED}),
        STATUS_PARTIALLY_PAID: frozenset({STATUS_PAID, STATUS_RETURNED}),
        STATUS_RETURNED: frozenset(),
    },
    INVOICE_TYPE_BUY: {
        STATUS_PAID: frozenset({STATUS_RETURNED}),
        STATUS_RETURNED: frozenset(),
    },
}

DEFAULT_INITIAL_STATUS = {
    INVOICE_TYPE_PAWN: STATUS_ACTIVE,
    INVOICE_TYPE_SALES: STATUS_PAID,
    INVOICE_TYPE_BUY: STATUS_PAID,
}

# Statuses a caller may pick at creation time
ALLOWED_INITIAL_STATUSES = {
    INVOICE_TYPE_PAWN: frozenset({STATUS_ACTIVE}),
    INVOICE_TYPE_SALES: frozenset({STATUS_PAID, STATUS_PARTIALLY_PAID}),
    INVOICE_TYPE_BUY: frozenset({STATUS_PAID}),
}


def statuses_for(invoice_type: str) -> frozenset:
    validate_invoice_type(invoice_type)
    return frozenset(TRANSITIONS[invoice_type])


def validate_status(invoice_type: str, status: str) -> None:
    """
    Raises:
        InvalidTransition: If status is not part of the type's state machine
    """
    allowed = statuses_for(invoice_type)
    if status not in allowed:
        raise InvalidTransition(
            f"Invalid status '{status}' for {invoice_type} invoice. "
            f"Must be one of: {', '.join(sorted(allowed))}",
            details={"type": invoice_type, "status": status},
        )


def initial_status(invoice_type: str, requested: str | None = None) -> str:
    """Status a new invoice starts in; requested must be an allowed starting state."""
    if requested is None:
        return DEFAULT_INITIAL_STATUS[validate_invoice_type(invoice_type)]
    validate_status(invoice_type, requested)
    if requested not in ALLOWED_INITIAL_STATUSES[invoice_type]:
        raise InvalidTransition(
            f"A {invoice_type} invoice cannot be created as '{requested}'",
            details={"type": invoice_type, "status": requested},
        )
    return requested


def allowed_transitions(invoice_type: str, current: str) -> frozenset:
    validate_status(invoice_type, current)
    return TRANSITIONS[invoice_type][current]


def is_terminal(invoice_type: str, status: str) -> bool:
    return not allowed_transitions(invoice_type, status)


def can_transition(invoice_type: str, current: str, target: str) -> bool:
    try:
        validate_transition(invoice_type, current, target)
    except InvalidTransition:
        return False
    return True


def validate_transition(invoice_type: str, current: str, target: str) -> None:
    """
    Check a requested status change against the type's state machine.

    Raises:
        InvalidTransition: Unknown/foreign status, terminal current status,
            same-state request, or a move not in the transition table.
    """
    validate_status(invoice_type, target)
    allowed = allowed_transitions(invoice_type, current)

    if target not in allowed:
        raise InvalidTransition(
            f"Cannot change {invoice_type} invoice from '{current}' to '{target}'",
            details={
                "type": invoice_type,
                "from": current,
                "to": target,
                "allowed": sorted(allowed),
            },
        )


def is_past_due(invoice_type: str, status: str, due_date: datetime | None, as_of: datetime) -> bool:
    """An active pawn whose due date is strictly before as_of should be marked overdue."""
    return (
        invoice_type == INVOICE_TYPE_PAWN
        and status == STATUS_ACTIVE
        and due_date is not None
        and due_date < as_of
    )
