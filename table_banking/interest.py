"""
Interest Calculation Module

Flat simple interest on group loans and the late-payment penalty. Rates are
percentages (Decimal('5') means 5%); every result is rounded half-up to the
currency's minor unit by Money.
"""

from decimal import Decimal

from .currency import Money

HUNDRED = Decimal('100')


def calculate_interest(principal: Money, interest_rate: Decimal) -> Money:
    """Interest charged on the principal for the life of the loan"""
    if interest_rate < 0:
        raise ValueError("Interest rate cannot be negative")
    return Money(principal.amount * interest_rate / HUNDRED, principal.currency)


def calculate_total_amount(principal: Money, interest_rate: Decimal) -> Money:
    """
    Total repayable amount

    total = round(principal * (1 + rate / 100)), computed in one step so the
    result is rounded once rather than per component.
    """
    if interest_rate < 0:
        raise ValueError("Interest rate cannot be negative")
    return Money(principal.amount * (Decimal('1') + interest_rate / HUNDRED), principal.currency)


def calculate_late_penalty(amount_paid: Money, penalty_rate: Decimal) -> Money:
    """Penalty on a late installment, a fraction of the amount actually paid"""
    return amount_paid * penalty_rate
