"""
Pydantic schemas for API requests and responses
"""

from datetime import date
from typing import Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, Field

from ..currency import Money
from ..groups import Group, Membership
from ..models import Loan, LoanPayment, LoanRequest, LoanSummary
from ..rbac import GroupRole


class MoneyModel(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    currency: str = Field(..., description="Currency code (KES, UGX, etc.)")

    @classmethod
    def from_money(cls, money: Optional[Money]) -> Optional['MoneyModel']:
        if money is None:
            return None
        return cls(amount=str(money.amount), currency=money.currency.code)


# Group schemas
class CreateGroupRequest(BaseModel):
    name: str
    interest_rate: Union[str, int] = "0"
    description: str = ""
    contribution_amount: Union[str, int] = "0"
    max_members: Optional[int] = Field(None, ge=1)


class UpdateInterestRateRequest(BaseModel):
    interest_rate: Union[str, int]


class AddMemberRequest(BaseModel):
    user_id: str
    role: GroupRole = GroupRole.MEMBER


class ChangeRoleRequest(BaseModel):
    role: GroupRole


# Loan schemas
class CreateLoanRequest(BaseModel):
    group_id: str
    amount: Union[str, int] = Field(..., description="Principal as a decimal string")
    due_date: str = Field(..., description="ISO date")
    repayment_frequency: str = "monthly"
    purpose: str = ""
    borrower_id: Optional[str] = None
    auto_approve: bool = False

    def to_loan_request(self) -> LoanRequest:
        return LoanRequest(
            group_id=self.group_id,
            amount=self.amount,
            due_date=self.due_date,
            repayment_frequency=self.repayment_frequency,
            purpose=self.purpose,
            borrower_id=self.borrower_id,
            auto_approve=self.auto_approve
        )


class LoanDecisionRequest(BaseModel):
    action: Literal["approve", "reject"]
    disbursement_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=500)


class RecordPaymentRequest(BaseModel):
    amount: Union[str, int]
    payment_date: Optional[str] = None  # ISO date string, defaults to today


class SweepDefaultsRequest(BaseModel):
    as_of: Optional[date] = None


# Response builders
def group_to_response(group: Group) -> Dict[str, Any]:
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "interest_rate": str(group.interest_rate),
        "contribution_amount": str(group.contribution_amount),
        "max_members": group.max_members,
        "created_by": group.created_by,
        "created_at": group.created_at.isoformat(),
    }


def membership_to_response(membership: Membership) -> Dict[str, Any]:
    return {
        "user_id": membership.user_id,
        "group_id": membership.group_id,
        "role": membership.role.value,
        "is_active": membership.is_active,
        "joined_at": membership.created_at.isoformat(),
    }


def loan_to_response(loan: Loan) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "group_id": loan.group_id,
        "borrower_id": loan.borrower_id,
        "created_by": loan.created_by,
        "approver_id": loan.approver_id,
        "status": loan.status.value,
        "principal": MoneyModel.from_money(loan.principal).model_dump(),
        "interest_rate": str(loan.interest_rate),
        "total_amount": MoneyModel.from_money(loan.total_amount).model_dump(),
        "repayment_frequency": loan.repayment_frequency.value,
        "purpose": loan.purpose,
        "due_date": loan.due_date.isoformat(),
        "disbursement_date": loan.disbursement_date.isoformat() if loan.disbursement_date else None,
        "approved_at": loan.approved_at.isoformat() if loan.approved_at else None,
        "rejection_reason": loan.rejection_reason,
        "created_at": loan.created_at.isoformat(),
    }


def payment_to_response(payment: LoanPayment) -> Dict[str, Any]:
    amount_paid = MoneyModel.from_money(payment.amount_paid)
    return {
        "id": payment.id,
        "loan_id": payment.loan_id,
        "installment_number": payment.installment_number,
        "amount": MoneyModel.from_money(payment.amount).model_dump(),
        "due_date": payment.due_date.isoformat(),
        "status": payment.status.value,
        "amount_paid": amount_paid.model_dump() if amount_paid else None,
        "penalty_amount": MoneyModel.from_money(payment.penalty_amount).model_dump(),
        "paid_date": payment.paid_date.isoformat() if payment.paid_date else None,
        "recorded_by": payment.recorded_by,
    }


def summary_to_response(summary: LoanSummary) -> Dict[str, Any]:
    return {
        "loan_id": summary.loan_id,
        "status": summary.status.value,
        "total_amount": MoneyModel.from_money(summary.total_amount).model_dump(),
        "total_paid": MoneyModel.from_money(summary.total_paid).model_dump(),
        "total_penalties": MoneyModel.from_money(summary.total_penalties).model_dump(),
        "outstanding": MoneyModel.from_money(summary.outstanding).model_dump(),
        "pending_installments": summary.pending_installments,
        "overdue_installments": summary.overdue_installments,
        "next_due_date": summary.next_due_date.isoformat() if summary.next_due_date else None,
    }
