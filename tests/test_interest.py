"""
Test suite for interest calculation

Flat interest must equal round(principal * (1 + rate / 100)) with half-up
rounding to the currency's minor unit.
"""

import pytest
from decimal import Decimal, ROUND_HALF_UP

from table_banking.currency import Money, Currency
from table_banking.interest import (
    calculate_interest, calculate_late_penalty, calculate_total_amount
)


def kes(amount: str) -> Money:
    return Money(Decimal(amount), Currency.KES)


class TestTotalAmount:
    """Principal plus flat interest"""

    def test_scenario_total(self):
        assert calculate_total_amount(kes('10000'), Decimal('5')) == kes('10500.00')

    def test_zero_rate(self):
        assert calculate_total_amount(kes('2500.50'), Decimal('0')) == kes('2500.50')

    def test_rounds_half_up_once(self):
        # 333.33 * 1.075 = 358.32975
        assert calculate_total_amount(kes('333.33'), Decimal('7.5')).amount == Decimal('358.33')
        # 0.01 * 1.5 = 0.015
        assert calculate_total_amount(kes('0.01'), Decimal('50')).amount == Decimal('0.02')

    def test_zero_precision_currency(self):
        total = calculate_total_amount(Money(Decimal('1001'), Currency.UGX), Decimal('2.5'))
        # 1001 * 1.025 = 1026.025
        assert total == Money(Decimal('1026'), Currency.UGX)

    @pytest.mark.parametrize("principal,rate", [
        ("1", "0"), ("99.99", "3"), ("1234.56", "12.5"), ("50000", "33.333"),
        ("0.05", "10"), ("777777.77", "0.01"),
    ])
    def test_matches_formula(self, principal, rate):
        expected = (Decimal(principal) * (1 + Decimal(rate) / 100)).quantize(
            Decimal('0.01'), rounding=ROUND_HALF_UP
        )
        assert calculate_total_amount(kes(principal), Decimal(rate)).amount == expected

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            calculate_total_amount(kes('100'), Decimal('-1'))

    def test_interest_component(self):
        assert calculate_interest(kes('10000'), Decimal('5')) == kes('500')
        with pytest.raises(ValueError):
            calculate_interest(kes('100'), Decimal('-0.5'))


class TestLatePenalty:
    """Penalty is a fraction of the amount paid"""

    def test_five_percent(self):
        assert calculate_late_penalty(kes('3500'), Decimal('0.05')) == kes('175.00')

    def test_rounding(self):
        # 3333.33 * 0.05 = 166.6665
        assert calculate_late_penalty(kes('3333.33'), Decimal('0.05')).amount == Decimal('166.67')

    def test_zero_rate(self):
        assert calculate_late_penalty(kes('3500'), Decimal('0')).is_zero()
