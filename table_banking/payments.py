"""
Payment Recording Module

Applies a repayment to a pending installment and decides what the loan's
remaining installments mean for its status. Everything here works on
in-memory records; LoanManager persists the results.
"""

from decimal import Decimal
from datetime import date, datetime, timedelta
from dataclasses import replace
from typing import Iterable, List, Optional

from .currency import Money
from .errors import ValidationError
from .interest import calculate_late_penalty
from .models import LoanPayment, PaymentStatus
from .state_machine import LoanEvent, check_payment_transition


class PaymentRecorder:
    """
    Settles installments and evaluates completion and default

    Args:
        late_penalty_rate: Fraction of the paid amount charged when an
            installment is paid after its due date
        grace_period_days: Days an installment may stay unpaid past its due
            date before the loan defaults
    """

    def __init__(self, late_penalty_rate: Decimal = Decimal('0.05'), grace_period_days: int = 30):
        if late_penalty_rate < 0:
            raise ValueError("Late penalty rate cannot be negative")
        if grace_period_days < 0:
            raise ValueError("Grace period cannot be negative")
        self.late_penalty_rate = late_penalty_rate
        self.grace_period = timedelta(days=grace_period_days)

    def apply(self, installment: LoanPayment, amount: Money, payment_date: date,
              recorded_by: str, recorded_at: datetime) -> LoanPayment:
        """
        Settle one pending installment

        Returns:
            A new LoanPayment in ``paid`` or ``late`` status; ``installment``
            itself is left untouched

        Raises:
            IllegalTransitionError: If the installment is not pending
            ValidationError: If the amount is not positive or below the amount due
        """
        late = payment_date > installment.due_date
        target = PaymentStatus.LATE if late else PaymentStatus.PAID
        check_payment_transition(installment.id, installment.status, target)

        if amount.currency != installment.amount.currency:
            raise ValidationError("amount", f"Payment must be in {installment.amount.currency.code}")
        if not amount.is_positive():
            raise ValidationError("amount", "Payment amount must be positive")
        if amount < installment.amount:
            raise ValidationError(
                "amount",
                f"Payment of {amount.to_string()} is less than the amount due "
                f"({installment.amount.to_string()})"
            )

        penalty = (calculate_late_penalty(amount, self.late_penalty_rate)
                   if late else Money.zero(amount.currency))

        return replace(
            installment,
            status=target,
            amount_paid=amount,
            penalty_amount=penalty,
            paid_date=payment_date,
            recorded_by=recorded_by,
            updated_at=recorded_at,
        )

    def is_past_grace(self, installment: LoanPayment, as_of: date) -> bool:
        """True if a pending installment has outrun the grace period"""
        return (installment.status == PaymentStatus.PENDING
                and installment.due_date + self.grace_period < as_of)

    def overdue(self, installments: Iterable[LoanPayment], as_of: date) -> List[LoanPayment]:
        return [p for p in installments if self.is_past_grace(p, as_of)]

    def evaluate(self, installments: Iterable[LoanPayment], as_of: date) -> Optional[LoanEvent]:
        """
        Decide the loan event implied by its installments

        Returns:
            LoanEvent.COMPLETE when nothing is pending, LoanEvent.DEFAULT when
            a pending installment is past the grace period, otherwise None
        """
        pending = [p for p in installments if p.status == PaymentStatus.PENDING]
        if not pending:
            return LoanEvent.COMPLETE
        if any(self.is_past_grace(p, as_of) for p in pending):
            return LoanEvent.DEFAULT
        return None
