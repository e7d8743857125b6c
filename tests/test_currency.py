"""
Test suite for currency module

Tests Money precision, minor-unit conversion and safe Decimal parsing.
All monetary calculations must use Decimal precision.
"""

import pytest
from decimal import Decimal

from table_banking.currency import Money, Currency, decimal_from_value


class TestMoney:
    """Test Money class operations"""

    def test_money_creation(self):
        """Test Money object creation and rounding"""
        money = Money(Decimal('100.50'), Currency.KES)
        assert money.amount == Decimal('100.50')
        assert money.currency == Currency.KES

        # Rounded half-up to two places
        assert Money(Decimal('100.555'), Currency.KES).amount == Decimal('100.56')
        assert Money(Decimal('100.554'), Currency.KES).amount == Decimal('100.55')

        # UGX has no minor unit
        assert Money(Decimal('100.5'), Currency.UGX).amount == Decimal('101')

    def test_money_arithmetic(self):
        """Test Money arithmetic operations"""
        money1 = Money(Decimal('100.50'), Currency.KES)
        money2 = Money(Decimal('50.25'), Currency.KES)

        assert (money1 + money2).amount == Decimal('150.75')
        assert (money1 - money2).amount == Decimal('50.25')
        assert (money1 * Decimal('2')).amount == Decimal('201.00')
        assert (-money1).amount == Decimal('-100.50')

    def test_money_comparison(self):
        """Test Money comparison operations"""
        money1 = Money(Decimal('100.00'), Currency.KES)
        money2 = Money(Decimal('50.00'), Currency.KES)
        money3 = Money(Decimal('100'), Currency.KES)

        assert money1 == money3
        assert money1 != money2
        assert money1 > money2
        assert money2 < money1
        assert money1 >= money3
        assert money1 <= money3

    def test_money_currency_mismatch(self):
        """Test that operations with different currencies raise errors"""
        kes = Money(Decimal('100.00'), Currency.KES)
        usd = Money(Decimal('100.00'), Currency.USD)

        with pytest.raises(ValueError, match="Cannot add KES and USD"):
            kes + usd

        with pytest.raises(ValueError, match="Cannot subtract KES and USD"):
            kes - usd

        with pytest.raises(ValueError, match="Cannot compare KES and USD"):
            kes < usd

        assert kes != usd

    def test_money_state_checks(self):
        """Test Money state checking methods"""
        assert Money.zero(Currency.KES).is_zero()
        assert not Money.zero(Currency.KES).is_positive()
        assert Money(Decimal('0.01'), Currency.KES).is_positive()
        assert not Money(Decimal('-0.01'), Currency.KES).is_positive()

    def test_money_string_formatting(self):
        """Test Money string representation"""
        assert Money(Decimal('1234.5'), Currency.KES).to_string() == "KES 1,234.50"
        assert Money(Decimal('1234'), Currency.UGX).to_string() == "UGX 1,234"

    def test_amount_beyond_decimal_precision(self):
        with pytest.raises(ValueError, match="significant digits"):
            Money(Decimal('1e27'), Currency.KES)
        # 26 whole digits still fit alongside the two decimal places
        assert Money(Decimal('1e25'), Currency.KES).to_minor_units() == 10 ** 27

    def test_money_is_hashable(self):
        amounts = {Money(Decimal('1.00'), Currency.KES), Money(Decimal('1'), Currency.KES)}
        assert len(amounts) == 1


class TestMinorUnits:
    """Integer minor-unit conversion used by schedule splitting"""

    def test_to_minor_units(self):
        assert Money(Decimal('10500.00'), Currency.KES).to_minor_units() == 1050000
        assert Money(Decimal('0.07'), Currency.KES).to_minor_units() == 7
        assert Money(Decimal('1500'), Currency.UGX).to_minor_units() == 1500

    def test_from_minor_units(self):
        assert Money.from_minor_units(350000, Currency.KES) == Money(Decimal('3500.00'), Currency.KES)
        assert Money.from_minor_units(333, Currency.UGX) == Money(Decimal('333'), Currency.UGX)

    def test_quantum(self):
        assert Currency.KES.quantum == Decimal('0.01')
        assert Currency.UGX.quantum == Decimal('1')


class TestDecimalFromValue:
    """Test user input conversion"""

    def test_valid_values(self):
        assert decimal_from_value("100.50") == Decimal('100.50')
        assert decimal_from_value(" 1,000.25 ") == Decimal('1000.25')
        assert decimal_from_value(250) == Decimal('250')
        assert decimal_from_value(Decimal('7.5')) == Decimal('7.5')

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            decimal_from_value("abc")
        with pytest.raises(ValueError):
            decimal_from_value("")
        with pytest.raises(ValueError):
            decimal_from_value(None)

    def test_floats_and_bools_rejected(self):
        """Floats never reach the money layer"""
        with pytest.raises(ValueError, match="float"):
            decimal_from_value(10.5)
        with pytest.raises(ValueError, match="bool"):
            decimal_from_value(True)

    def test_non_finite_values_parse_but_are_not_finite(self):
        assert not decimal_from_value("NaN").is_finite()
        assert not decimal_from_value("Infinity").is_finite()
