"""
Payment Schedule Generator

Turns a loan's total amount into dated installments. Dates step from the
disbursement date by whole periods; amounts are split in integer minor units
so the installments always add up to the total exactly.
"""

from datetime import date, timedelta
from typing import List
import calendar

from .currency import Money
from .errors import ScheduleGenerationError, ValidationError
from .models import RepaymentFrequency, ScheduledInstallment


# Period length in months; weekly is handled in days
_MONTHS_PER_PERIOD = {
    RepaymentFrequency.MONTHLY: 1,
    RepaymentFrequency.QUARTERLY: 3,
    RepaymentFrequency.ANNUAL: 12,
}


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def period_boundary(disbursement_date: date, frequency: RepaymentFrequency, periods: int) -> date:
    """
    Date ``periods`` whole periods after disbursement

    Always measured from the disbursement date, so a loan disbursed on the
    31st keeps falling on month-end instead of drifting to the 28th.
    """
    if frequency == RepaymentFrequency.WEEKLY:
        return disbursement_date + timedelta(days=7 * periods)
    if frequency in _MONTHS_PER_PERIOD:
        return add_months(disbursement_date, _MONTHS_PER_PERIOD[frequency] * periods)
    raise ValueError(f"Unsupported repayment frequency: {frequency}")


def installment_dates(due_date: date, frequency: RepaymentFrequency,
                      disbursement_date: date) -> List[date]:
    """
    Installment dates for a loan

    Every period boundary strictly before the due date, then the due date
    itself. Lump-sum loans have only the due date.
    """
    if due_date <= disbursement_date:
        raise ScheduleGenerationError(
            f"Due date {due_date.isoformat()} must be after the disbursement date "
            f"{disbursement_date.isoformat()}"
        )

    if frequency == RepaymentFrequency.LUMP_SUM:
        return [due_date]

    dates = []
    periods = 1
    boundary = period_boundary(disbursement_date, frequency, periods)
    while boundary < due_date:
        dates.append(boundary)
        periods += 1
        boundary = period_boundary(disbursement_date, frequency, periods)
    dates.append(due_date)
    return dates


def split_amount(total: Money, count: int) -> List[Money]:
    """
    Split a total into ``count`` parts in whole minor units

    Each part gets floor(total / count); the remainder lands on the last part.
    """
    if count < 1:
        raise ScheduleGenerationError("A repayment schedule needs at least one installment")

    units = total.to_minor_units()
    base, remainder = divmod(units, count)
    if base <= 0:
        raise ValidationError(
            "amount",
            f"{total.to_string()} is too small to split into {count} installments"
        )

    parts = [Money.from_minor_units(base, total.currency) for _ in range(count - 1)]
    parts.append(Money.from_minor_units(base + remainder, total.currency))
    return parts


def generate_schedule(total: Money, due_date: date, frequency: RepaymentFrequency,
                      disbursement_date: date) -> List[ScheduledInstallment]:
    """
    Build the installment schedule of a loan

    Args:
        total: Total repayable amount (principal plus interest)
        due_date: Date the loan must be fully repaid
        frequency: Repayment frequency
        disbursement_date: Date funds were handed over

    Returns:
        Installments numbered from 1, amounts summing exactly to ``total``

    Raises:
        ScheduleGenerationError: If the due date is not after disbursement
        ValidationError: If the total is smaller than one minor unit per installment
    """
    dates = installment_dates(due_date, frequency, disbursement_date)
    amounts = split_amount(total, len(dates))
    return [
        ScheduledInstallment(number=i, due_date=due, amount=amount)
        for i, (due, amount) in enumerate(zip(dates, amounts), start=1)
    ]
