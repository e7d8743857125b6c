"""
Test suite for loan request validation

Checks run in a fixed order: group, membership, amount, due date,
frequency, purpose. The first failing check is the one reported.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from table_banking.currency import Currency, Money
from table_banking.errors import AuthorizationError, ReferentialError, ValidationError
from table_banking.models import RepaymentFrequency
from table_banking.validation import LoanRequestValidator

from conftest import TODAY, make_request


@pytest.fixture
def validator(group_manager):
    return LoanRequestValidator(group_manager, Currency.KES, max_purpose_length=20)


class TestValidRequests:
    """Parsing of accepted requests"""

    def test_scenario_request(self, validator, group):
        result = validator.validate("alice", make_request(group.id, purpose="Seeds"), TODAY)

        assert result.group.id == group.id
        assert result.principal == Money(Decimal('10000'), Currency.KES)
        assert result.due_date == date(2026, 4, 15)
        assert result.repayment_frequency == RepaymentFrequency.MONTHLY
        assert result.borrower_id is None
        assert result.auto_approve is False

    def test_string_fields_are_parsed(self, validator, group):
        request = make_request(group.id, amount="1,500.50", due_date="2026-02-01",
                               repayment_frequency="weekly", purpose="  Seeds  ",
                               borrower_id="bob", auto_approve=True)
        result = validator.validate("treasurer", request, TODAY)

        assert result.principal.amount == Decimal('1500.50')
        assert result.due_date == date(2026, 2, 1)
        assert result.repayment_frequency == RepaymentFrequency.WEEKLY
        assert result.purpose == "Seeds"
        assert result.borrower_id == "bob"
        assert result.auto_approve is True

    def test_datetime_due_date(self, validator, group):
        request = make_request(group.id, due_date=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
                               purpose="Seeds")
        assert validator.validate("alice", request, TODAY).due_date == date(2026, 3, 1)

    def test_integer_amount(self, validator, group):
        result = validator.validate("alice", make_request(group.id, amount=2500, purpose="Seeds"), TODAY)
        assert result.principal.amount == Decimal('2500')


class TestRejectedRequests:
    """Each failure names the offending field"""

    def test_missing_group(self, validator):
        with pytest.raises(ReferentialError):
            validator.validate("alice", make_request("no-such-group", amount="-1"), TODAY)

    def test_non_member(self, validator, group):
        with pytest.raises(AuthorizationError):
            validator.validate("mallory", make_request(group.id, amount="-1"), TODAY)

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "", "0.001", "NaN", "Infinity", "1e27", 10.5])
    def test_invalid_amount(self, validator, group, amount):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("alice", make_request(group.id, amount=amount), TODAY)
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("due_date", [TODAY, date(2025, 12, 31), "2026-13-01", "soon"])
    def test_invalid_due_date(self, validator, group, due_date):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("alice", make_request(group.id, due_date=due_date), TODAY)
        assert exc_info.value.field == "due_date"

    def test_invalid_frequency(self, validator, group):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("alice", make_request(group.id, repayment_frequency="daily"), TODAY)
        assert exc_info.value.field == "repayment_frequency"
        assert "lump_sum" in str(exc_info.value)

    def test_purpose_too_long(self, validator, group):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("alice", make_request(group.id, purpose="x" * 21), TODAY)
        assert exc_info.value.field == "purpose"

    def test_amount_checked_before_due_date(self, validator, group):
        request = make_request(group.id, amount="0", due_date=TODAY, repayment_frequency="daily")
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("alice", request, TODAY)
        assert exc_info.value.field == "amount"

    def test_due_date_checked_before_frequency(self, validator, group):
        request = make_request(group.id, due_date=TODAY, repayment_frequency="daily",
                               purpose="x" * 50)
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("alice", request, TODAY)
        assert exc_info.value.field == "due_date"

    def test_frequency_checked_before_purpose(self, validator, group):
        request = make_request(group.id, repayment_frequency="daily", purpose="x" * 50)
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("alice", request, TODAY)
        assert exc_info.value.field == "repayment_frequency"
