"""
Shared fixtures for the table banking test suite
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from table_banking.audit import AuditTrail
from table_banking.config import LendingConfig
from table_banking.groups import GroupManager
from table_banking.loans import LoanManager
from table_banking.models import LoanRequest, RepaymentFrequency
from table_banking.notifications import NotificationDispatcher
from table_banking.rbac import GroupRole
from table_banking.storage import InMemoryStorage


TODAY = date(2026, 1, 15)


class FixedClock:
    """Controllable clock; tests move it forward explicitly"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set_date(self, day: date) -> None:
        self.now = datetime(day.year, day.month, day.day, 9, 0, tzinfo=timezone.utc)

    def advance(self, days: int) -> None:
        self.now += timedelta(days=days)


def make_request(group_id: str, **overrides) -> LoanRequest:
    """Scenario loan: 10,000 monthly, due three months from TODAY"""
    fields = {
        "group_id": group_id,
        "amount": "10000",
        "due_date": date(2026, 4, 15),
        "repayment_frequency": RepaymentFrequency.MONTHLY,
        "purpose": "Stock for the market stall",
    }
    fields.update(overrides)
    return LoanRequest(**fields)


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def config():
    return LendingConfig(_env_file=None, database_url="memory://", currency="KES",
                         grace_period_days=30, jwt_secret="test-secret")


@pytest.fixture
def storage():
    """Create in-memory storage for tests"""
    return InMemoryStorage()


@pytest.fixture
def audit(storage):
    """Create audit trail for tests"""
    return AuditTrail(storage)


@pytest.fixture
def group_manager(storage, audit):
    return GroupManager(storage, audit)


@pytest.fixture
def notifier(storage, audit, clock):
    return NotificationDispatcher(storage, audit, clock=clock)


@pytest.fixture
def loan_manager(storage, group_manager, audit, notifier, config, clock):
    return LoanManager(storage, group_manager, audit, notifier=notifier, config=config, clock=clock)


@pytest.fixture
def group(group_manager):
    """Group at 5% with an admin, two treasurers and two members"""
    created = group_manager.create_group("admin", "Umoja Women Group", interest_rate="5")
    group_manager.add_member("admin", created.id, "treasurer", GroupRole.TREASURER)
    group_manager.add_member("admin", created.id, "treasurer2", GroupRole.TREASURER)
    group_manager.add_member("admin", created.id, "alice")
    group_manager.add_member("admin", created.id, "bob")
    return created
