"""
Loan Request Validation

Checks a proposed loan before anything is written. Checks run in a fixed
order and the first failure is raised; a request that passes comes back
with its fields parsed into domain types.
"""

from decimal import Decimal
from datetime import date, datetime
from dataclasses import dataclass
from typing import Optional

from .currency import Currency, Money, decimal_from_value
from .errors import AuthorizationError, ValidationError
from .groups import Group, GroupManager
from .models import LoanRequest, RepaymentFrequency


@dataclass(frozen=True)
class ValidatedLoanRequest:
    """Loan request with every field parsed and checked"""
    group: Group
    principal: Money
    due_date: date
    repayment_frequency: RepaymentFrequency
    purpose: str
    borrower_id: Optional[str]
    auto_approve: bool


class LoanRequestValidator:
    """
    Validates loan requests against a group and the current date

    Args:
        groups: Group and membership lookups
        currency: Deployment currency
        max_purpose_length: Longest accepted purpose text
    """

    def __init__(self, groups: GroupManager, currency: Currency, max_purpose_length: int = 500):
        self.groups = groups
        self.currency = currency
        self.max_purpose_length = max_purpose_length

    def validate(self, requester_id: str, request: LoanRequest, today: date) -> ValidatedLoanRequest:
        """
        Validate a loan request

        Raises:
            ReferentialError: Group does not exist
            AuthorizationError: Requester is not an active member of the group
            ValidationError: A field is malformed or out of range
        """
        group = self.groups.require_group(request.group_id)
        if self.groups.roles.resolve(requester_id, group.id) is None:
            raise AuthorizationError("Access denied - not an active group member",
                                     {"group_id": group.id})

        principal = self._parse_amount(request.amount)
        due_date = self._parse_due_date(request.due_date, today)
        frequency = self._parse_frequency(request.repayment_frequency)

        purpose = (request.purpose or "").strip()
        if len(purpose) > self.max_purpose_length:
            raise ValidationError(
                "purpose", f"Purpose must be at most {self.max_purpose_length} characters"
            )

        return ValidatedLoanRequest(
            group=group,
            principal=principal,
            due_date=due_date,
            repayment_frequency=frequency,
            purpose=purpose,
            borrower_id=request.borrower_id or None,
            auto_approve=bool(request.auto_approve),
        )

    def _parse_amount(self, value) -> Money:
        try:
            amount = decimal_from_value(value)
        except ValueError:
            raise ValidationError("amount", f"Invalid amount: {value!r}")
        if not amount.is_finite() or amount <= Decimal('0'):
            raise ValidationError("amount", "Amount must be a positive number")

        try:
            principal = Money(amount, self.currency)
        except ValueError as e:
            raise ValidationError("amount", str(e))
        if not principal.is_positive():
            raise ValidationError(
                "amount", f"Amount is below the smallest {self.currency.code} unit"
            )
        return principal

    @staticmethod
    def _parse_due_date(value, today: date) -> date:
        if isinstance(value, datetime):
            due_date = value.date()
        elif isinstance(value, date):
            due_date = value
        else:
            try:
                due_date = date.fromisoformat(str(value))
            except ValueError:
                raise ValidationError("due_date", f"Invalid due date: {value!r}")
        if due_date <= today:
            raise ValidationError("due_date", "Due date must be in the future")
        return due_date

    @staticmethod
    def _parse_frequency(value) -> RepaymentFrequency:
        if isinstance(value, RepaymentFrequency):
            return value
        try:
            return RepaymentFrequency(value)
        except ValueError:
            allowed = ", ".join(f.value for f in RepaymentFrequency)
            raise ValidationError(
                "repayment_frequency", f"Repayment frequency must be one of: {allowed}"
            )
