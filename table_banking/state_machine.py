"""
Loan Status State Machine

The single authority on which loan and installment status changes are
legal. Callers ask for the next status of an event; anything not in the
tables raises IllegalTransitionError.
"""

from enum import Enum
from typing import Dict, FrozenSet, Tuple

from .errors import IllegalTransitionError
from .models import LoanStatus, PaymentStatus


class LoanEvent(Enum):
    """Events that move a loan between states"""
    APPROVE = "approve"
    REJECT = "reject"
    ACTIVATE = "activate"      # Schedule generated
    COMPLETE = "complete"      # Final installment paid
    DEFAULT = "default"        # Installment unpaid past grace period


LOAN_TRANSITIONS: Dict[Tuple[LoanStatus, LoanEvent], LoanStatus] = {
    (LoanStatus.PENDING, LoanEvent.APPROVE): LoanStatus.APPROVED,
    (LoanStatus.PENDING, LoanEvent.REJECT): LoanStatus.REJECTED,
    (LoanStatus.APPROVED, LoanEvent.ACTIVATE): LoanStatus.ACTIVE,
    (LoanStatus.ACTIVE, LoanEvent.COMPLETE): LoanStatus.COMPLETED,
    (LoanStatus.ACTIVE, LoanEvent.DEFAULT): LoanStatus.DEFAULTED,
}

# Intended target of each event, used in error messages
_EVENT_TARGETS: Dict[LoanEvent, LoanStatus] = {
    event: target for (_, event), target in LOAN_TRANSITIONS.items()
}

TERMINAL_STATES: FrozenSet[LoanStatus] = frozenset({
    LoanStatus.COMPLETED, LoanStatus.REJECTED, LoanStatus.DEFAULTED
})

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.LATE, PaymentStatus.DEFAULTED}),
    PaymentStatus.PAID: frozenset(),
    PaymentStatus.LATE: frozenset(),
    PaymentStatus.DEFAULTED: frozenset(),
}


def next_status(loan_id: str, current: LoanStatus, event: LoanEvent) -> LoanStatus:
    """
    Resolve the status a loan moves to on an event

    Raises:
        IllegalTransitionError: If the event is not legal from ``current``
    """
    target = LOAN_TRANSITIONS.get((current, event))
    if target is None:
        raise IllegalTransitionError(
            loan_id, current.value, _EVENT_TARGETS[event].value,
            f"Cannot {event.value} loan {loan_id}: loan is {current.value}"
        )
    return target


def can_transition(current: LoanStatus, event: LoanEvent) -> bool:
    return (current, event) in LOAN_TRANSITIONS


def check_payment_transition(payment_id: str, current: PaymentStatus, target: PaymentStatus) -> None:
    """Raise IllegalTransitionError unless an installment may move to ``target``"""
    if target not in PAYMENT_TRANSITIONS[current]:
        raise IllegalTransitionError(
            payment_id, current.value, target.value,
            f"Installment {payment_id} is already {current.value}"
        )
