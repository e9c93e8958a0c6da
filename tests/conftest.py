"""
Shared fixtures.

Every test gets its own partition root under ``tmp_path``; nothing touches a
real data directory.
"""

from datetime import datetime
from decimal import Decimal
from itertools import count

import pytest

from account_book.audit import AuditLogger
from account_book.models.transaction import CategorySnapshot, CategoryType, Transaction
from account_book.queries import TransactionLedger
from account_book.reconciliation import (
    CardBillingConfig,
    ReconciliationEngine,
    StaticBillingCycleResolver,
)
from account_book.services.storage import JsonPartitionStore, JsonReconciliationReportStore

CARD_ID = "card-C"
BANK_ACCOUNT_ID = "bank-main"
TOLERANCE = Decimal("100")
WINDOW_BUSINESS_DAYS = 3

CATEGORIES = {
    CategoryType.INCOME: CategorySnapshot(id="cat-salary", name="Salary", type=CategoryType.INCOME),
    CategoryType.EXPENSE: CategorySnapshot(id="cat-food", name="Food", type=CategoryType.EXPENSE),
    CategoryType.TRANSFER: CategorySnapshot(id="cat-transfer", name="Transfer", type=CategoryType.TRANSFER),
    CategoryType.REPAYMENT: CategorySnapshot(id="cat-card", name="Card payment", type=CategoryType.REPAYMENT),
    CategoryType.INVESTMENT: CategorySnapshot(id="cat-invest", name="Investment", type=CategoryType.INVESTMENT),
}


class RecordingAuditLogger(AuditLogger):
    """Audit logger that keeps events in memory instead of logging them."""

    def __init__(self):
        super().__init__()
        self.events = []

    def log(self, event):
        self.events.append(event)
        return True

    def event_types(self):
        return [event.event_type for event in self.events]


@pytest.fixture
def make_tx():
    """Factory for transactions with sensible defaults."""
    sequence = count(1)

    def _make(
        date,
        amount,
        category_type=CategoryType.EXPENSE,
        institution_id=CARD_ID,
        account_id="card-account",
        tx_id=None,
        **extra,
    ):
        if isinstance(date, str):
            date = datetime.fromisoformat(date)
        return Transaction(
            id=tx_id or f"tx-{next(sequence):04d}",
            date=date,
            amount=Decimal(str(amount)),
            category=CATEGORIES[category_type],
            description=extra.pop("description", "test transaction"),
            institution_id=institution_id,
            account_id=account_id,
            **extra,
        )

    return _make


@pytest.fixture
def make_withdrawal(make_tx):
    """Factory for bank debits paying the card statement."""

    def _make(date, amount, category_type=CategoryType.REPAYMENT, **kwargs):
        kwargs.setdefault("institution_id", "bank")
        kwargs.setdefault("account_id", BANK_ACCOUNT_ID)
        return make_tx(date, amount, category_type=category_type, **kwargs)

    return _make


@pytest.fixture
def audit_logger():
    return RecordingAuditLogger()


@pytest.fixture
def partition_store(tmp_path):
    return JsonPartitionStore(tmp_path / "transactions", retry_attempts=1)


@pytest.fixture
def report_store(tmp_path):
    return JsonReconciliationReportStore(tmp_path / "reconciliation", retry_attempts=1)


@pytest.fixture
def ledger(partition_store, audit_logger):
    return TransactionLedger(partition_store, audit_logger=audit_logger)


@pytest.fixture
def card_config():
    return CardBillingConfig(
        card_id=CARD_ID,
        closing_day=15,
        payment_day=5,
        bank_account_id=BANK_ACCOUNT_ID,
    )


@pytest.fixture
def resolver(card_config):
    return StaticBillingCycleResolver([card_config], payment_window_business_days=WINDOW_BUSINESS_DAYS)


@pytest.fixture
def engine(ledger, report_store, resolver, audit_logger):
    return ReconciliationEngine(
        ledger=ledger,
        report_store=report_store,
        cycle_resolver=resolver,
        amount_tolerance=TOLERANCE,
        audit_logger=audit_logger,
    )
