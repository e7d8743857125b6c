"""
Test suite for the loan state machine
"""

import pytest

from table_banking.errors import IllegalTransitionError
from table_banking.models import LoanStatus, PaymentStatus
from table_banking.state_machine import (
    LOAN_TRANSITIONS, PAYMENT_TRANSITIONS, TERMINAL_STATES, LoanEvent,
    can_transition, check_payment_transition, next_status
)


LEGAL = [
    (LoanStatus.PENDING, LoanEvent.APPROVE, LoanStatus.APPROVED),
    (LoanStatus.PENDING, LoanEvent.REJECT, LoanStatus.REJECTED),
    (LoanStatus.APPROVED, LoanEvent.ACTIVATE, LoanStatus.ACTIVE),
    (LoanStatus.ACTIVE, LoanEvent.COMPLETE, LoanStatus.COMPLETED),
    (LoanStatus.ACTIVE, LoanEvent.DEFAULT, LoanStatus.DEFAULTED),
]

ILLEGAL = [
    (status, event)
    for status in LoanStatus
    for event in LoanEvent
    if (status, event) not in LOAN_TRANSITIONS
]


class TestLoanTransitions:
    """Loan status changes"""

    @pytest.mark.parametrize("current,event,expected", LEGAL)
    def test_legal_transitions(self, current, event, expected):
        assert next_status("L1", current, event) == expected
        assert can_transition(current, event)

    def test_table_has_exactly_the_legal_transitions(self):
        assert len(LOAN_TRANSITIONS) == len(LEGAL)

    @pytest.mark.parametrize("current,event", ILLEGAL)
    def test_illegal_transitions_raise(self, current, event):
        assert not can_transition(current, event)
        with pytest.raises(IllegalTransitionError) as exc_info:
            next_status("L1", current, event)
        assert exc_info.value.entity_id == "L1"
        assert exc_info.value.current == current.value

    def test_error_names_intended_target(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            next_status("L1", LoanStatus.ACTIVE, LoanEvent.APPROVE)
        assert exc_info.value.target == LoanStatus.APPROVED.value
        assert "loan is active" in str(exc_info.value)

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, status):
        assert not any(can_transition(status, event) for event in LoanEvent)

    def test_terminal_states(self):
        assert TERMINAL_STATES == {LoanStatus.COMPLETED, LoanStatus.REJECTED, LoanStatus.DEFAULTED}


class TestPaymentTransitions:
    """Installment status changes"""

    @pytest.mark.parametrize("target", [PaymentStatus.PAID, PaymentStatus.LATE, PaymentStatus.DEFAULTED])
    def test_pending_may_settle_or_default(self, target):
        check_payment_transition("P1", PaymentStatus.PENDING, target)

    @pytest.mark.parametrize("current", [PaymentStatus.PAID, PaymentStatus.LATE, PaymentStatus.DEFAULTED])
    @pytest.mark.parametrize("target", list(PaymentStatus))
    def test_settled_installments_are_final(self, current, target):
        with pytest.raises(IllegalTransitionError, match="already"):
            check_payment_transition("P1", current, target)

    def test_pending_to_pending_is_not_a_transition(self):
        with pytest.raises(IllegalTransitionError):
            check_payment_transition("P1", PaymentStatus.PENDING, PaymentStatus.PENDING)

    def test_every_status_listed(self):
        assert set(PAYMENT_TRANSITIONS) == set(PaymentStatus)
