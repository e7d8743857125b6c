"""
Test suite for payment schedule generation

Installment dates fall on each period boundary before the due date plus the
due date itself; amounts always add up to the loan total exactly.
"""

import pytest
from datetime import date
from decimal import Decimal

from table_banking.currency import Money, Currency
from table_banking.errors import ScheduleGenerationError, ValidationError
from table_banking.models import RepaymentFrequency
from table_banking.schedule import (
    add_months, generate_schedule, installment_dates, split_amount
)


DISBURSED = date(2026, 1, 15)


def kes(amount: str) -> Money:
    return Money(Decimal(amount), Currency.KES)


class TestInstallmentDates:
    """Period stepping from the disbursement date"""

    def test_monthly_three_months(self):
        assert installment_dates(date(2026, 4, 15), RepaymentFrequency.MONTHLY, DISBURSED) == [
            date(2026, 2, 15), date(2026, 3, 15), date(2026, 4, 15)
        ]

    def test_due_date_between_boundaries(self):
        assert installment_dates(date(2026, 3, 1), RepaymentFrequency.MONTHLY, DISBURSED) == [
            date(2026, 2, 15), date(2026, 3, 1)
        ]

    def test_weekly(self):
        assert installment_dates(date(2026, 2, 5), RepaymentFrequency.WEEKLY, DISBURSED) == [
            date(2026, 1, 22), date(2026, 1, 29), date(2026, 2, 5)
        ]

    def test_quarterly(self):
        assert installment_dates(date(2026, 12, 31), RepaymentFrequency.QUARTERLY, DISBURSED) == [
            date(2026, 4, 15), date(2026, 7, 15), date(2026, 10, 15), date(2026, 12, 31)
        ]

    def test_annual_shorter_than_a_year(self):
        assert installment_dates(date(2026, 7, 15), RepaymentFrequency.ANNUAL, DISBURSED) == [
            date(2026, 7, 15)
        ]

    def test_annual_multi_year(self):
        assert installment_dates(date(2028, 1, 15), RepaymentFrequency.ANNUAL, DISBURSED) == [
            date(2027, 1, 15), date(2028, 1, 15)
        ]

    def test_lump_sum(self):
        assert installment_dates(date(2026, 12, 1), RepaymentFrequency.LUMP_SUM, DISBURSED) == [
            date(2026, 12, 1)
        ]

    def test_month_end_does_not_drift(self):
        dates = installment_dates(date(2026, 4, 30), RepaymentFrequency.MONTHLY, date(2026, 1, 31))
        assert dates == [date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]

    @pytest.mark.parametrize("due", [DISBURSED, date(2026, 1, 1)])
    def test_due_not_after_disbursement(self, due):
        with pytest.raises(ScheduleGenerationError) as exc_info:
            installment_dates(due, RepaymentFrequency.MONTHLY, DISBURSED)
        assert exc_info.value.field == "due_date"
        assert isinstance(exc_info.value, ValidationError)

    def test_add_months_leap_year(self):
        assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)
        assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)


class TestSplitAmount:
    """Integer minor-unit division with the remainder on the last part"""

    def test_even_split(self):
        assert split_amount(kes('10500'), 3) == [kes('3500')] * 3

    def test_remainder_on_final_installment(self):
        assert split_amount(kes('100'), 3) == [kes('33.33'), kes('33.33'), kes('33.34')]

    def test_zero_precision_currency(self):
        parts = split_amount(Money(Decimal('1000'), Currency.UGX), 3)
        assert [p.amount for p in parts] == [Decimal('333'), Decimal('333'), Decimal('334')]

    def test_too_small_to_split(self):
        with pytest.raises(ValidationError) as exc_info:
            split_amount(kes('0.02'), 3)
        assert exc_info.value.field == "amount"


class TestGenerateSchedule:
    """Full schedule generation"""

    def test_scenario_schedule(self):
        schedule = generate_schedule(kes('10500'), date(2026, 4, 15),
                                     RepaymentFrequency.MONTHLY, DISBURSED)

        assert [item.number for item in schedule] == [1, 2, 3]
        assert all(item.amount == kes('3500') for item in schedule)
        assert schedule[-1].due_date == date(2026, 4, 15)

    @pytest.mark.parametrize("frequency", list(RepaymentFrequency))
    @pytest.mark.parametrize("total", ["10500.00", "9999.99", "1234.57", "50.03"])
    def test_installments_sum_to_total(self, frequency, total):
        schedule = generate_schedule(kes(total), date(2026, 9, 30), frequency, DISBURSED)

        assert sum((item.amount for item in schedule), Money.zero(Currency.KES)) == kes(total)
        assert schedule[-1].due_date == date(2026, 9, 30)
        assert all(a.due_date < b.due_date for a, b in zip(schedule, schedule[1:]))
