"""
Loan Data Model

Loan, LoanPayment and request records plus their storage conversions.
"""

from decimal import Decimal
from datetime import datetime, date
from dataclasses import dataclass, field
from typing import Dict, Optional, Union
from enum import Enum

from .currency import Money, Currency
from .storage import StorageRecord


class LoanStatus(Enum):
    """Loan lifecycle states"""
    PENDING = "pending"       # Requested, awaiting review
    APPROVED = "approved"     # Approved, schedule not yet in place
    ACTIVE = "active"         # Schedule generated, being repaid
    COMPLETED = "completed"   # Every installment paid
    REJECTED = "rejected"     # Terminal
    DEFAULTED = "defaulted"   # Terminal


class PaymentStatus(Enum):
    """Installment states"""
    PENDING = "pending"
    PAID = "paid"
    LATE = "late"
    DEFAULTED = "defaulted"


class RepaymentFrequency(Enum):
    """Repayment frequency options"""
    LUMP_SUM = "lump_sum"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


def _date_or_none(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _datetime_or_none(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class LoanRequest:
    """Fields proposed by the caller for a new loan"""
    group_id: str
    amount: Union[str, int, Decimal]
    due_date: Union[str, date]
    repayment_frequency: Union[str, RepaymentFrequency] = RepaymentFrequency.MONTHLY
    purpose: str = ""
    borrower_id: Optional[str] = None
    auto_approve: bool = False


@dataclass
class Loan(StorageRecord):
    """One borrowing obligation within a group"""
    group_id: str
    borrower_id: str
    created_by: str
    principal: Money
    interest_rate: Decimal              # Percent, frozen at creation
    total_amount: Money                 # principal + flat interest
    repayment_frequency: RepaymentFrequency
    due_date: date
    purpose: str = ""
    status: LoanStatus = LoanStatus.PENDING
    approver_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    disbursement_date: Optional[date] = None
    rejection_reason: Optional[str] = None

    @property
    def currency(self) -> Currency:
        return self.principal.currency

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'group_id': self.group_id,
            'borrower_id': self.borrower_id,
            'created_by': self.created_by,
            'currency': self.currency.code,
            'principal': str(self.principal.amount),
            'interest_rate': str(self.interest_rate),
            'total_amount': str(self.total_amount.amount),
            'repayment_frequency': self.repayment_frequency.value,
            'due_date': self.due_date.isoformat(),
            'purpose': self.purpose,
            'status': self.status.value,
            'approver_id': self.approver_id,
            'approved_at': self.approved_at.isoformat() if self.approved_at else None,
            'disbursement_date': self.disbursement_date.isoformat() if self.disbursement_date else None,
            'rejection_reason': self.rejection_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Loan':
        currency = Currency[data['currency']]
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            group_id=data['group_id'],
            borrower_id=data['borrower_id'],
            created_by=data['created_by'],
            principal=Money(Decimal(data['principal']), currency),
            interest_rate=Decimal(data['interest_rate']),
            total_amount=Money(Decimal(data['total_amount']), currency),
            repayment_frequency=RepaymentFrequency(data['repayment_frequency']),
            due_date=date.fromisoformat(data['due_date']),
            purpose=data.get('purpose', ""),
            status=LoanStatus(data['status']),
            approver_id=data.get('approver_id'),
            approved_at=_datetime_or_none(data.get('approved_at')),
            disbursement_date=_date_or_none(data.get('disbursement_date')),
            rejection_reason=data.get('rejection_reason'),
        )


@dataclass
class LoanPayment(StorageRecord):
    """One scheduled installment and, once paid, its repayment record"""
    loan_id: str
    installment_number: int
    amount: Money                       # Amount due
    due_date: date
    status: PaymentStatus = PaymentStatus.PENDING
    penalty_amount: Money = None
    amount_paid: Optional[Money] = None
    paid_date: Optional[date] = None
    recorded_by: Optional[str] = None

    def __post_init__(self):
        if self.penalty_amount is None:
            self.penalty_amount = Money.zero(self.amount.currency)
        if self.penalty_amount.amount < 0:
            raise ValueError("Penalty amount cannot be negative")

    @property
    def is_settled(self) -> bool:
        return self.status in (PaymentStatus.PAID, PaymentStatus.LATE)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'loan_id': self.loan_id,
            'installment_number': self.installment_number,
            'currency': self.amount.currency.code,
            'amount': str(self.amount.amount),
            'due_date': self.due_date.isoformat(),
            'status': self.status.value,
            'penalty_amount': str(self.penalty_amount.amount),
            'amount_paid': str(self.amount_paid.amount) if self.amount_paid else None,
            'paid_date': self.paid_date.isoformat() if self.paid_date else None,
            'recorded_by': self.recorded_by,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'LoanPayment':
        currency = Currency[data['currency']]
        amount_paid = data.get('amount_paid')
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            loan_id=data['loan_id'],
            installment_number=data['installment_number'],
            amount=Money(Decimal(data['amount']), currency),
            due_date=date.fromisoformat(data['due_date']),
            status=PaymentStatus(data['status']),
            penalty_amount=Money(Decimal(data.get('penalty_amount', '0')), currency),
            amount_paid=Money(Decimal(amount_paid), currency) if amount_paid else None,
            paid_date=_date_or_none(data.get('paid_date')),
            recorded_by=data.get('recorded_by'),
        )


@dataclass(frozen=True)
class ScheduledInstallment:
    """Installment produced by the schedule generator before persistence"""
    number: int
    due_date: date
    amount: Money


@dataclass
class LoanSummary:
    """Repayment position of one loan"""
    loan_id: str
    status: LoanStatus
    total_amount: Money
    total_paid: Money
    total_penalties: Money
    outstanding: Money
    pending_installments: int
    overdue_installments: int
    next_due_date: Optional[date] = None
    installments: list = field(default_factory=list)
