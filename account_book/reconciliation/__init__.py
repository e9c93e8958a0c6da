"""Credit-card statement reconciliation."""

from account_book.reconciliation.errors import ConfigurationError, InvalidPaymentDateError
from account_book.reconciliation.billing_cycle import (
    BillingCycleResolver,
    CardBillingConfig,
    StaticBillingCycleResolver,
    build_billing_cycle,
    determine_billing_month,
)
from account_book.reconciliation.matching import MatchResult, match_charges
from account_book.reconciliation.engine import ReconciliationEngine

__all__ = [
    "BillingCycleResolver",
    "CardBillingConfig",
    "ConfigurationError",
    "InvalidPaymentDateError",
    "MatchResult",
    "ReconciliationEngine",
    "StaticBillingCycleResolver",
    "build_billing_cycle",
    "determine_billing_month",
    "match_charges",
]
