"""
Shared fixtures.

Every test runs against in-memory storage and a frozen clock;
nothing touches the network or the real filesystem outside tmp_path.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from ledgerflow.audit import AuditLogger
from ledgerflow.config import LedgerSettings
from ledgerflow.engine import LedgerEngine
from ledgerflow.models.ledger import Account, AccountType
from ledgerflow.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 16, 12, 0, 0))


@pytest.fixture
def settings():
    return LedgerSettings(
        _env_file=None,
        default_profile_name="Personal",
        fixed_payment_post_hour=9,
        free_account_limit=3,
        free_monthly_transaction_limit=200,
        backup_indent=2,
    )


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def engine(storage, audit_logger, settings, clock):
    return LedgerEngine(
        storage=storage,
        audit_logger=audit_logger,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def cash_account(engine):
    account = Account(
        bank_name="DBS",
        account_name="Savings",
        type=AccountType.CASH,
        balance=Decimal("1000"),
    )
    assert engine.add_account(account)
    return account


@pytest.fixture
def credit_account(engine):
    account = Account(
        bank_name="UOB",
        account_name="One",
        type=AccountType.CREDIT,
        balance=Decimal("5000"),
        credit_limit=Decimal("5000"),
        billing_cycle_start_day=25,
    )
    assert engine.add_account(account)
    return account
