"""
Loan Management Module

Group loan lifecycle: request, approval or rejection, schedule generation,
repayment, completion and default. Every status change goes through the
state machine and is persisted with a compare-and-set on the current status,
so concurrent callers cannot both win the same transition.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import uuid

from .audit import AuditTrail, AuditEventType
from .config import LendingConfig, get_config
from .currency import Currency, Money, decimal_from_value
from .errors import (
    IllegalTransitionError, PartialFailureError, ReferentialError, ValidationError
)
from .groups import GroupManager
from .interest import calculate_total_amount
from .logging_config import get_logger, log_action
from .models import (
    Loan, LoanPayment, LoanRequest, LoanStatus, LoanSummary, PaymentStatus,
    ScheduledInstallment
)
from .notifications import NotificationDispatcher, NotificationType
from .payments import PaymentRecorder
from .rbac import (
    GroupRole, Permission, authorize_decision, authorize_loan_request,
    has_permission, require_permission
)
from .schedule import generate_schedule
from .state_machine import LoanEvent, check_payment_transition, next_status
from .storage import StorageInterface
from .validation import LoanRequestValidator


class LoanManager:
    """
    Manages loan lifecycle from request through repayment or default

    Args:
        storage: Loan and installment store
        group_manager: Group and membership lookups
        audit_trail: Receives an event for every state change
        notifier: Optional dispatcher for borrower and reviewer alerts
        config: Loan rules; defaults to the global configuration
        clock: Source of the current time, timezone-aware
    """

    def __init__(
        self,
        storage: StorageInterface,
        group_manager: GroupManager,
        audit_trail: AuditTrail,
        notifier: Optional[NotificationDispatcher] = None,
        config: Optional[LendingConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        config = config or get_config()

        self.storage = storage
        self.groups = group_manager
        self.audit_trail = audit_trail
        self.notifier = notifier
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("table_banking.loans")

        self.currency = Currency[config.currency.upper()]
        self.validator = LoanRequestValidator(group_manager, self.currency, config.max_purpose_length)
        self.recorder = PaymentRecorder(config.late_penalty_rate, config.grace_period_days)

        self.loans_table = "loans"
        self.payments_table = "loan_payments"

    # Lifecycle operations

    def create_loan_request(self, requester_id: str, request: LoanRequest) -> Loan:
        """
        Create a loan in ``pending`` status

        The group's current interest rate is frozen into the loan. When an
        admin or treasurer creates a loan for another member with
        ``auto_approve`` set, the loan is approved by its creator straight
        away and returned ``active``.

        Args:
            requester_id: Acting user
            request: Proposed loan fields

        Returns:
            Created Loan

        Raises:
            ReferentialError: Group does not exist
            AuthorizationError: Requester may not create this loan
            ValidationError: A request field is invalid
        """
        now = self.clock()
        validated = self.validator.validate(requester_id, request, now.date())
        group = validated.group

        target = validated.borrower_id
        target_role = None
        if target and target != requester_id:
            target_role = self.groups.roles.resolve(target, group.id)

        authorization = authorize_loan_request(
            requester_id,
            self.groups.roles.resolve(requester_id, group.id),
            target_borrower_id=target,
            target_role=target_role,
            auto_approve=validated.auto_approve
        )

        try:
            total_amount = calculate_total_amount(validated.principal, group.interest_rate)
        except ValueError as e:
            raise ValidationError("amount", str(e))
        # Reject requests that could never produce a schedule
        generate_schedule(total_amount, validated.due_date, validated.repayment_frequency, now.date())

        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            group_id=group.id,
            borrower_id=authorization.borrower_id,
            created_by=requester_id,
            principal=validated.principal,
            interest_rate=group.interest_rate,
            total_amount=total_amount,
            repayment_frequency=validated.repayment_frequency,
            due_date=validated.due_date,
            purpose=validated.purpose
        )
        self.storage.save(self.loans_table, loan.id, loan.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_REQUESTED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "group_id": loan.group_id,
                "borrower_id": loan.borrower_id,
                "principal": loan.principal.to_string(),
                "interest_rate": loan.interest_rate,
                "total_amount": loan.total_amount.to_string(),
                "repayment_frequency": loan.repayment_frequency,
                "due_date": loan.due_date.isoformat(),
                "auto_approve": authorization.auto_approve
            },
            user_id=requester_id
        )
        log_action(self.logger, "info", "Loan requested", user_id=requester_id,
                   action="create_loan_request", resource=loan.id,
                   extra={"group_id": loan.group_id, "borrower_id": loan.borrower_id})

        if authorization.auto_approve:
            return self.approve_loan(requester_id, loan.id)

        self._notify_reviewers(loan)
        return loan

    def approve_loan(self, actor_id: str, loan_id: str,
                     disbursement_date: Optional[date] = None) -> Loan:
        """
        Approve a pending loan and put its repayment schedule in place

        The schedule is computed first, so a loan that cannot produce one
        stays ``pending``. Approval is then committed on its own; the
        schedule rows and the ``approved -> active`` change follow in a
        single storage transaction.

        Args:
            actor_id: Acting admin or treasurer (never the borrower)
            loan_id: Loan to approve
            disbursement_date: Date funds are handed over; defaults to today

        Returns:
            The loan in ``active`` status

        Raises:
            ReferentialError: Loan does not exist
            AuthorizationError: Actor may not approve, or is the borrower
            IllegalTransitionError: Loan is not pending, or another approver won
            ScheduleGenerationError: Due date is not after disbursement
            PartialFailureError: Approval was committed but the schedule was not
        """
        loan = self.require_loan(loan_id)
        authorize_decision(actor_id, self._role(actor_id, loan.group_id),
                           loan.borrower_id, Permission.APPROVE_LOAN)
        next_status(loan.id, loan.status, LoanEvent.APPROVE)

        now = self.clock()
        disbursed_on = disbursement_date or now.date()
        schedule = generate_schedule(loan.total_amount, loan.due_date,
                                     loan.repayment_frequency, disbursed_on)

        approved = self._transition(
            loan, LoanEvent.APPROVE,
            approver_id=actor_id,
            approved_at=now,
            disbursement_date=disbursed_on
        )
        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_APPROVED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={"disbursement_date": disbursed_on.isoformat(),
                      "installments": len(schedule)},
            user_id=actor_id
        )
        log_action(self.logger, "info", "Loan approved", user_id=actor_id,
                   action="approve_loan", resource=loan.id)

        try:
            active, _ = self._activate(approved, schedule)
        except Exception as e:
            self.logger.exception("Schedule generation failed for approved loan %s", loan.id)
            self.audit_trail.log_event(
                event_type=AuditEventType.SCHEDULE_FAILED,
                entity_type="loan",
                entity_id=loan.id,
                metadata={"stage": "schedule_generation", "error": str(e)},
                user_id=actor_id
            )
            raise PartialFailureError(loan.id, "schedule_generation", e) from e

        self._notify(NotificationType.LOAN_APPROVED, active, active.borrower_id)
        return active

    def reject_loan(self, actor_id: str, loan_id: str, reason: Optional[str] = None) -> Loan:
        """
        Reject a pending loan

        Raises:
            ReferentialError: Loan does not exist
            AuthorizationError: Actor may not reject, or is the borrower
            IllegalTransitionError: Loan is not pending
        """
        loan = self.require_loan(loan_id)
        authorize_decision(actor_id, self._role(actor_id, loan.group_id),
                           loan.borrower_id, Permission.REJECT_LOAN)

        rejected = self._transition(
            loan, LoanEvent.REJECT,
            approver_id=actor_id,
            approved_at=self.clock(),
            rejection_reason=reason
        )
        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_REJECTED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={"reason": reason},
            user_id=actor_id
        )
        log_action(self.logger, "info", "Loan rejected", user_id=actor_id,
                   action="reject_loan", resource=loan.id)

        self._notify(NotificationType.LOAN_REJECTED, rejected, rejected.borrower_id,
                     reason=reason or "not given")
        return rejected

    def record_payment(
        self,
        actor_id: str,
        payment_id: str,
        amount: Union[str, int, Decimal, Money],
        payment_date: Optional[Union[str, date]] = None
    ) -> LoanPayment:
        """
        Record the repayment of one installment

        Installments paid after their due date are marked ``late`` and carry
        the late penalty. Once nothing is left pending the loan completes;
        otherwise any installment past the grace period defaults the loan.

        Args:
            actor_id: The borrower, or an admin or treasurer of the group
            payment_id: Installment being paid
            amount: Amount paid, at least the amount due
            payment_date: Date paid; defaults to today

        Returns:
            The updated installment

        Raises:
            ReferentialError: Installment or loan does not exist
            AuthorizationError: Actor may not record this payment
            IllegalTransitionError: Loan is not active or installment already settled
            ValidationError: Amount or date is invalid
        """
        payment = self.require_payment(payment_id)
        loan = self.require_loan(payment.loan_id)

        role = self._role(actor_id, loan.group_id)
        if actor_id == loan.borrower_id:
            require_permission(role, Permission.RECORD_OWN_PAYMENT,
                               "Access denied - not an active group member")
        else:
            require_permission(role, Permission.RECORD_PAYMENT,
                               "Access denied - admin or treasurer role required")

        self._require_active(loan, payment)

        now = self.clock()
        paid_on = self._parse_payment_date(payment_date, loan, now.date())
        recorded = self.recorder.apply(payment, self._parse_payment_amount(amount),
                                       paid_on, actor_id, now)

        # The loan may have defaulted since it was read
        with self.storage.atomic():
            self._require_active(self.require_loan(loan.id), payment)
            if not self.storage.compare_and_set(self.payments_table, payment.id,
                                                {"status": PaymentStatus.PENDING.value},
                                                recorded.to_dict()):
                current = self.require_payment(payment.id)
                raise IllegalTransitionError(payment.id, current.status.value,
                                             recorded.status.value)

        self.audit_trail.log_event(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="loan_payment",
            entity_id=payment.id,
            metadata={
                "loan_id": loan.id,
                "installment_number": recorded.installment_number,
                "status": recorded.status,
                "amount_paid": recorded.amount_paid.to_string(),
                "penalty_amount": recorded.penalty_amount.to_string(),
                "paid_date": paid_on.isoformat()
            },
            user_id=actor_id
        )
        log_action(self.logger, "info", "Payment recorded", user_id=actor_id,
                   action="record_payment", resource=payment.id,
                   extra={"loan_id": loan.id, "status": recorded.status.value})

        self._notify(NotificationType.PAYMENT_RECORDED, loan, loan.borrower_id,
                     installment_number=recorded.installment_number,
                     amount_paid=recorded.amount_paid.to_string(),
                     penalty_amount=recorded.penalty_amount.to_string())

        self._settle(self.require_loan(loan.id), now.date(), actor_id)
        return recorded

    # Maintenance operations

    def repair_schedule(self, actor_id: str, loan_id: str) -> Loan:
        """
        Finish the activation of an approved loan

        Safe to call repeatedly: an approved loan without installments gets
        its schedule generated, an approved loan with installments is only
        activated, and an active loan is returned unchanged.

        Raises:
            ReferentialError: Loan does not exist
            AuthorizationError: Actor may not repair schedules
            IllegalTransitionError: Loan is neither approved nor active
        """
        loan = self.require_loan(loan_id)
        require_permission(self._role(actor_id, loan.group_id), Permission.REPAIR_SCHEDULE,
                           "Access denied - admin or treasurer role required")

        if loan.status == LoanStatus.ACTIVE:
            return loan
        if loan.status != LoanStatus.APPROVED:
            raise IllegalTransitionError(
                loan.id, loan.status.value, LoanStatus.ACTIVE.value,
                f"Only approved loans can have their schedule repaired; loan is {loan.status.value}"
            )

        disbursed_on = loan.disbursement_date or loan.approved_at.date()
        schedule = generate_schedule(loan.total_amount, loan.due_date,
                                     loan.repayment_frequency, disbursed_on)
        active, created = self._activate(loan, schedule)

        self.audit_trail.log_event(
            event_type=AuditEventType.SCHEDULE_REPAIRED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={"installments_created": created},
            user_id=actor_id
        )
        log_action(self.logger, "info", "Loan schedule repaired", user_id=actor_id,
                   action="repair_schedule", resource=loan.id,
                   extra={"installments_created": created})

        self._notify(NotificationType.LOAN_APPROVED, active, active.borrower_id)
        return active

    def sweep_defaults(self, as_of: Optional[date] = None,
                       group_id: Optional[str] = None) -> List[Loan]:
        """
        Default every active loan with an installment past the grace period

        Args:
            as_of: Evaluation date; defaults to today
            group_id: Restrict the sweep to one group

        Returns:
            Loans moved to ``defaulted`` by this sweep
        """
        as_of = as_of or self.clock().date()
        filters: Dict[str, Any] = {"status": LoanStatus.ACTIVE.value}
        if group_id:
            filters["group_id"] = group_id

        defaulted = []
        for data in self.storage.find(self.loans_table, filters):
            loan = Loan.from_dict(data)
            installments = self.get_loan_payments(loan.id)
            if not self.recorder.overdue(installments, as_of):
                continue
            result = self._default(loan, installments, as_of, "system")
            if result.status == LoanStatus.DEFAULTED:
                defaulted.append(result)

        log_action(self.logger, "info", "Default sweep finished", action="sweep_defaults",
                   resource=group_id,
                   extra={"as_of": as_of.isoformat(), "defaulted": len(defaulted)})
        return defaulted

    def sweep_group_defaults(self, actor_id: str, group_id: str,
                             as_of: Optional[date] = None) -> List[Loan]:
        """Run the default sweep for one group on behalf of an admin or treasurer"""
        self.groups.require_group(group_id)
        require_permission(self._role(actor_id, group_id), Permission.SWEEP_DEFAULTS,
                           "Access denied - admin or treasurer role required")
        return self.sweep_defaults(as_of, group_id)

    def find_loans_needing_repair(self, group_id: Optional[str] = None) -> List[Loan]:
        """Approved loans whose schedule was never put in place"""
        filters: Dict[str, Any] = {"status": LoanStatus.APPROVED.value}
        if group_id:
            filters["group_id"] = group_id
        loans = [Loan.from_dict(data) for data in self.storage.find(self.loans_table, filters)]
        loans.sort(key=lambda l: l.created_at)
        return loans

    # Queries

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        data = self.storage.load(self.loans_table, loan_id)
        if data:
            return Loan.from_dict(data)
        return None

    def require_loan(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        if loan is None:
            raise ReferentialError("loan", loan_id)
        return loan

    def get_payment(self, payment_id: str) -> Optional[LoanPayment]:
        data = self.storage.load(self.payments_table, payment_id)
        if data:
            return LoanPayment.from_dict(data)
        return None

    def require_payment(self, payment_id: str) -> LoanPayment:
        payment = self.get_payment(payment_id)
        if payment is None:
            raise ReferentialError("payment", payment_id)
        return payment

    def get_loan_payments(self, loan_id: str) -> List[LoanPayment]:
        """Installments of a loan in schedule order"""
        payments = [
            LoanPayment.from_dict(data)
            for data in self.storage.find(self.payments_table, {"loan_id": loan_id})
        ]
        payments.sort(key=lambda p: p.installment_number)
        return payments

    def view_loan(self, actor_id: str, loan_id: str) -> Loan:
        """Fetch a loan the actor is allowed to see"""
        loan = self.require_loan(loan_id)
        self._require_visibility(actor_id, loan)
        return loan

    def view_loan_payments(self, actor_id: str, loan_id: str) -> List[LoanPayment]:
        loan = self.require_loan(loan_id)
        self._require_visibility(actor_id, loan)
        return self.get_loan_payments(loan.id)

    def list_group_loans(self, actor_id: str, group_id: str,
                         status: Optional[LoanStatus] = None) -> List[Loan]:
        """
        Loans of a group visible to the actor, newest first

        Admins and treasurers see every loan; members see their own.
        """
        self.groups.require_group(group_id)
        role = require_permission(self._role(actor_id, group_id), Permission.REQUEST_OWN_LOAN,
                                  "Access denied - not an active group member")

        filters: Dict[str, Any] = {"group_id": group_id}
        if status:
            filters["status"] = status.value
        if not has_permission(role, Permission.VIEW_GROUP_LOANS):
            filters["borrower_id"] = actor_id

        loans = [Loan.from_dict(data) for data in self.storage.find(self.loans_table, filters)]
        loans.sort(key=lambda l: l.created_at, reverse=True)
        return loans

    def get_loan_summary(self, loan_id: str, as_of: Optional[date] = None) -> LoanSummary:
        """Repayment position of a loan"""
        loan = self.require_loan(loan_id)
        installments = self.get_loan_payments(loan.id)
        as_of = as_of or self.clock().date()
        zero = Money.zero(loan.currency)

        settled = [p for p in installments if p.is_settled]
        unpaid = [p for p in installments
                  if p.status in (PaymentStatus.PENDING, PaymentStatus.DEFAULTED)]
        pending = [p for p in installments if p.status == PaymentStatus.PENDING]

        return LoanSummary(
            loan_id=loan.id,
            status=loan.status,
            total_amount=loan.total_amount,
            total_paid=sum((p.amount_paid for p in settled), zero),
            total_penalties=sum((p.penalty_amount for p in settled), zero),
            outstanding=sum((p.amount for p in unpaid), zero),
            pending_installments=len(pending),
            overdue_installments=len([p for p in pending if p.due_date < as_of]),
            next_due_date=min((p.due_date for p in pending), default=None),
            installments=installments
        )

    # Internal helpers

    def _role(self, user_id: str, group_id: str) -> Optional[GroupRole]:
        return self.groups.roles.resolve(user_id, group_id)

    def _require_visibility(self, actor_id: str, loan: Loan) -> None:
        if actor_id == loan.borrower_id:
            return
        require_permission(self._role(actor_id, loan.group_id), Permission.VIEW_GROUP_LOANS,
                           "Access denied - admin or treasurer role required")

    def _transition(self, loan: Loan, event: LoanEvent, **changes) -> Loan:
        """Move a loan to its next status, guarded on the status it was read with"""
        target = next_status(loan.id, loan.status, event)
        updated = replace(loan, status=target, updated_at=self.clock(), **changes)

        if not self.storage.compare_and_set(self.loans_table, loan.id,
                                            {"status": loan.status.value},
                                            updated.to_dict()):
            current = self.require_loan(loan.id)
            raise IllegalTransitionError(
                loan.id, current.status.value, target.value,
                f"Loan {loan.id} was changed concurrently and is now {current.status.value}"
            )
        return updated

    def _build_installments(self, loan: Loan,
                            schedule: List[ScheduledInstallment]) -> List[LoanPayment]:
        now = self.clock()
        return [
            LoanPayment(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                loan_id=loan.id,
                installment_number=item.number,
                amount=item.amount,
                due_date=item.due_date
            )
            for item in schedule
        ]

    def _activate(self, loan: Loan, schedule: List[ScheduledInstallment]) -> Tuple[Loan, bool]:
        """
        Persist the schedule (unless already present) and activate the loan

        Returns:
            The active loan and whether installment rows were created
        """
        with self.storage.atomic():
            created = not self.storage.find(self.payments_table, {"loan_id": loan.id})
            if created:
                rows = self._build_installments(loan, schedule)
                self.storage.save_many(self.payments_table, {p.id: p.to_dict() for p in rows})
            active = self._transition(loan, LoanEvent.ACTIVATE)

        if created:
            self.audit_trail.log_event(
                event_type=AuditEventType.SCHEDULE_GENERATED,
                entity_type="loan",
                entity_id=loan.id,
                metadata={
                    "installments": len(schedule),
                    "first_due_date": schedule[0].due_date.isoformat(),
                    "final_due_date": schedule[-1].due_date.isoformat()
                }
            )
        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_ACTIVATED,
            entity_type="loan",
            entity_id=loan.id
        )
        return active, created

    def _settle(self, loan: Loan, as_of: date, actor_id: str) -> Loan:
        """Complete or default an active loan according to its installments"""
        if loan.status != LoanStatus.ACTIVE:
            return loan
        installments = self.get_loan_payments(loan.id)
        if not installments:
            return loan

        event = self.recorder.evaluate(installments, as_of)
        if event == LoanEvent.COMPLETE:
            return self._complete(loan, actor_id)
        if event == LoanEvent.DEFAULT:
            return self._default(loan, installments, as_of, actor_id)
        return loan

    def _complete(self, loan: Loan, actor_id: str) -> Loan:
        try:
            completed = self._transition(loan, LoanEvent.COMPLETE)
        except IllegalTransitionError as e:
            self.logger.warning("Loan %s settled concurrently: %s", loan.id, e)
            return self.require_loan(loan.id)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_COMPLETED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={"total_amount": loan.total_amount.to_string()},
            user_id=actor_id
        )
        log_action(self.logger, "info", "Loan completed", user_id=actor_id,
                   action="complete_loan", resource=loan.id)
        self._notify(NotificationType.LOAN_COMPLETED, completed, completed.borrower_id)
        return completed

    def _default(self, loan: Loan, installments: List[LoanPayment],
                 as_of: date, actor_id: str) -> Loan:
        """Mark overdue installments and the loan itself as defaulted"""
        overdue = self.recorder.overdue(installments, as_of)
        now = self.clock()
        try:
            with self.storage.atomic():
                for installment in overdue:
                    check_payment_transition(installment.id, installment.status, PaymentStatus.DEFAULTED)
                    marked = replace(installment, status=PaymentStatus.DEFAULTED, updated_at=now)
                    if not self.storage.compare_and_set(self.payments_table, installment.id,
                                                        {"status": PaymentStatus.PENDING.value},
                                                        marked.to_dict()):
                        raise IllegalTransitionError(installment.id, "settled",
                                                     PaymentStatus.DEFAULTED.value)
                defaulted = self._transition(loan, LoanEvent.DEFAULT)
        except IllegalTransitionError as e:
            self.logger.warning("Default of loan %s skipped: %s", loan.id, e)
            return self.require_loan(loan.id)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_DEFAULTED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "as_of": as_of.isoformat(),
                "overdue_installments": [p.installment_number for p in overdue]
            },
            user_id=actor_id
        )
        log_action(self.logger, "warning", "Loan defaulted", user_id=actor_id,
                   action="default_loan", resource=loan.id,
                   extra={"overdue_count": len(overdue)})
        self._notify(NotificationType.LOAN_DEFAULTED, defaulted, defaulted.borrower_id,
                     overdue_count=len(overdue))
        return defaulted

    @staticmethod
    def _require_active(loan: Loan, payment: LoanPayment) -> None:
        if loan.status != LoanStatus.ACTIVE:
            raise IllegalTransitionError(
                payment.id, payment.status.value, PaymentStatus.PAID.value,
                f"Loan {loan.id} is {loan.status.value}; payments are accepted only on active loans"
            )

    def _parse_payment_amount(self, amount) -> Money:
        if isinstance(amount, Money):
            return amount
        try:
            value = decimal_from_value(amount)
        except ValueError:
            raise ValidationError("amount", f"Invalid amount: {amount!r}")
        if not value.is_finite():
            raise ValidationError("amount", "Amount must be a finite number")
        try:
            return Money(value, self.currency)
        except ValueError as e:
            raise ValidationError("amount", str(e))

    @staticmethod
    def _parse_payment_date(value, loan: Loan, today: date) -> date:
        if value is None:
            paid_on = today
        elif isinstance(value, datetime):
            paid_on = value.date()
        elif isinstance(value, date):
            paid_on = value
        else:
            try:
                paid_on = date.fromisoformat(str(value))
            except ValueError:
                raise ValidationError("payment_date", f"Invalid payment date: {value!r}")

        if paid_on > today:
            raise ValidationError("payment_date", "Payment date cannot be in the future")
        if loan.disbursement_date and paid_on < loan.disbursement_date:
            raise ValidationError("payment_date", "Payment date cannot precede disbursement")
        return paid_on

    def _notify_reviewers(self, loan: Loan) -> None:
        for membership in self.groups.list_members(loan.group_id):
            if membership.user_id == loan.borrower_id:
                continue
            if has_permission(membership.role, Permission.APPROVE_LOAN):
                self._notify(NotificationType.LOAN_REQUESTED, loan, membership.user_id)

    def _notify(self, notification_type: NotificationType, loan: Loan,
                recipient_id: str, **extra) -> None:
        if self.notifier is None:
            return
        data = {
            "loan_id": loan.id,
            "group_id": loan.group_id,
            "borrower_id": loan.borrower_id,
            "principal": loan.principal.to_string(),
            "total_amount": loan.total_amount.to_string(),
            "due_date": loan.due_date.isoformat(),
        }
        data.update(extra)
        try:
            self.notifier.notify(notification_type, recipient_id, data)
        except Exception:
            self.logger.exception("Notification %s for loan %s could not be dispatched",
                                  notification_type.value, loan.id)
